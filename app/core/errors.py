"""Domain error taxonomy.

Services raise these; only the API layer maps them onto HTTP responses
(see ``app.main.handle_domain_error``).
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for expected failures of the fulfillment core."""

    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str = "") -> None:
        self.message = message or (self.__doc__ or self.code).strip()
        super().__init__(self.message)


class ValidationError(DomainError):
    """Request data failed validation."""

    status_code = 400
    code = "validation_error"


class NotFound(DomainError):
    """The referenced record does not exist."""

    status_code = 404
    code = "not_found"


class Unauthorized(DomainError):
    """The actor is not allowed to perform this operation."""

    status_code = 403
    code = "unauthorized"


class InvalidTransition(DomainError):
    """The requested order status change is not an allowed edge."""

    status_code = 409
    code = "invalid_transition"


class NoZoneCoverage(DomainError):
    """Delivery is unavailable for this distance."""

    status_code = 422
    code = "no_zone_coverage"


class InsufficientBalance(DomainError):
    """Wallet balance is too low for this debit."""

    status_code = 402
    code = "insufficient_balance"


class InvalidAmount(DomainError):
    """Amount must be a positive number."""

    status_code = 400
    code = "invalid_amount"


class DistanceUnavailable(DomainError):
    """Distance could not be determined."""

    status_code = 503
    code = "distance_unavailable"


class ConcurrencyConflict(DomainError):
    """A concurrent update won the race; re-read and retry."""

    status_code = 409
    code = "concurrency_conflict"


# Business outcomes surfaced to users, not system faults.
EXPECTED_OUTCOMES: tuple[type[DomainError], ...] = (NoZoneCoverage, InsufficientBalance)
