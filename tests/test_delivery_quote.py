"""Persisted delivery quotes, the distance provider and the quote endpoint."""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.orm import Session

from app.api.v1.endpoints.delivery import get_distance_provider
from app.core.errors import DistanceUnavailable, NoZoneCoverage
from app.main import app
from app.models import DeliveryLog, DeliveryZone
from app.services.delivery_pricing import compute_delivery_price, quote_delivery
from app.services.distance import HttpDistanceProvider


class FixedDistanceProvider:
    def __init__(self, km: float) -> None:
        self.km = km
        self.calls: list[tuple[str, str]] = []

    def distance_km(self, origin: str, destination: str) -> float:
        self.calls.append((origin, destination))
        return self.km


class BrokenDistanceProvider:
    def distance_km(self, origin: str, destination: str) -> float:
        raise DistanceUnavailable("Distance provider timed out")


def test_compute_delivery_price_persists_log(db: Session, standard_zones, make_promotion, make_user) -> None:
    make_promotion()
    customer = make_user("CUSTOMER")

    log = compute_delivery_price(db, distance_km=1.5, subtotal="2000", promo_code=" save10 ", user=customer)

    assert log.id is not None
    assert log.user_id == customer.id
    assert log.order_id is None
    assert log.zone_name == "Near"
    assert log.base_price == Decimal("500.00")
    assert log.promo_code == "SAVE10"
    assert log.discount_amount == Decimal("50.00")
    assert log.final_price == Decimal("450.00")
    assert log.details["promotion_found"] is True
    assert log.details["promotion"]["code"] == "SAVE10"


def test_unknown_promo_code_is_recorded_without_discount(db: Session, standard_zones) -> None:
    log = compute_delivery_price(db, distance_km=5, subtotal="2000", promo_code="nope")

    assert log.promo_code == "NOPE"
    assert log.promotion_id is None
    assert log.final_price == Decimal("1000.00")
    assert log.details["promotion_found"] is False


def test_no_coverage_writes_no_log(db: Session, standard_zones) -> None:
    with pytest.raises(NoZoneCoverage):
        compute_delivery_price(db, distance_km=12, subtotal="2000")

    assert db.query(DeliveryLog).count() == 0


def test_quote_delivery_uses_provider_distance(db: Session, standard_zones) -> None:
    provider = FixedDistanceProvider(4.25)

    log = quote_delivery(db, provider, origin="Shop", destination="Home", subtotal="1200")

    assert provider.calls == [("Shop", "Home")]
    assert log.distance_km == Decimal("4.25")
    assert log.zone_name == "Far"
    assert log.destination == "home"
    assert log.details["origin"] == "Shop"


def test_provider_failure_writes_no_log(db: Session, standard_zones) -> None:
    with pytest.raises(DistanceUnavailable):
        quote_delivery(db, BrokenDistanceProvider(), origin="Shop", destination="Home", subtotal="1200")

    assert db.query(DeliveryLog).count() == 0


def _provider_with(handler) -> HttpDistanceProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpDistanceProvider(base_url="https://distance.test/matrix", api_key="k", timeout_seconds=1, client=client)


def test_http_provider_converts_meters_to_km() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["origins"] == "A"
        assert request.url.params["destinations"] == "B"
        assert request.url.params["key"] == "k"
        return httpx.Response(
            200,
            json={"status": "OK", "rows": [{"elements": [{"status": "OK", "distance": {"value": 7300}}]}]},
        )

    assert _provider_with(handler).distance_km("A", "B") == pytest.approx(7.3)


def test_http_provider_timeout_is_distance_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(DistanceUnavailable):
        _provider_with(handler).distance_km("A", "B")


@pytest.mark.parametrize(
    "payload",
    [
        {"status": "REQUEST_DENIED"},
        {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]},
        {"status": "OK", "rows": []},
    ],
)
def test_http_provider_rejects_unusable_payloads(payload) -> None:
    provider = _provider_with(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(DistanceUnavailable):
        provider.distance_km("A", "B")


def test_http_provider_server_error_is_distance_unavailable() -> None:
    provider = _provider_with(lambda request: httpx.Response(500, json={}))
    with pytest.raises(DistanceUnavailable):
        provider.distance_km("A", "B")


def test_quote_endpoint_prices_provider_distance(client, login, session_factory) -> None:
    headers = login(client, "quoter@example.com")
    with session_factory() as db:
        db.add(DeliveryZone(name="City", min_distance_km=Decimal("0"), max_distance_km=Decimal("8"), price=Decimal("700")))
        db.commit()

    app.dependency_overrides[get_distance_provider] = lambda: FixedDistanceProvider(2)
    try:
        ok = client.post(
            "/api/v1/delivery/quote",
            json={"origin": "Shop", "destination": "12 Allen Avenue", "subtotal": "3000"},
            headers=headers,
        )
    finally:
        app.dependency_overrides.pop(get_distance_provider, None)
    assert ok.status_code == 200
    body = ok.json()
    assert body["quote_id"] > 0
    assert body["zone_name"] == "City"
    assert body["destination"] == "12 allen avenue"
    assert Decimal(body["final_price"]) == Decimal("700")

    app.dependency_overrides[get_distance_provider] = BrokenDistanceProvider
    try:
        unavailable = client.post(
            "/api/v1/delivery/quote",
            json={"origin": "Shop", "destination": "Home", "subtotal": "3000"},
            headers=headers,
        )
    finally:
        app.dependency_overrides.pop(get_distance_provider, None)
    assert unavailable.status_code == 503
    assert unavailable.json()["code"] == "distance_unavailable"


def test_raw_distance_quotes_are_admin_only(client, login, admin_headers, session_factory) -> None:
    with session_factory() as db:
        db.add(DeliveryZone(name="City", min_distance_km=Decimal("0"), max_distance_km=Decimal("8"), price=Decimal("700")))
        db.commit()

    customer = login(client, "cheapskate@example.com")
    forged = client.post("/api/v1/delivery/quote", json={"distance_km": 0, "subtotal": "3000"}, headers=customer)
    assert forged.status_code == 403
    assert forged.json()["code"] == "unauthorized"

    ok = client.post("/api/v1/delivery/quote", json={"distance_km": 2, "subtotal": "3000"}, headers=admin_headers)
    assert ok.status_code == 200
    assert ok.json()["zone_name"] == "City"

    too_far = client.post("/api/v1/delivery/quote", json={"distance_km": 9, "subtotal": "3000"}, headers=admin_headers)
    assert too_far.status_code == 422
    assert too_far.json()["code"] == "no_zone_coverage"


def test_quote_endpoint_requires_auth(client) -> None:
    response = client.post("/api/v1/delivery/quote", json={"distance_km": 2, "subtotal": "3000"})
    assert response.status_code in (401, 403)
