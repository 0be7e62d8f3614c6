"""Per-key in-process locks and conflict retry helper."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyedLocks:
    """Hands out one re-entrant lock per key; entries are dropped when nobody holds them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[object, tuple[threading.RLock, int]] = {}

    @contextmanager
    def hold(self, key: object) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (threading.RLock(), 0))
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                lock, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)


wallet_locks = KeyedLocks()
order_locks = KeyedLocks()


def run_with_retry(db: Session, operation: Callable[[], T], *, attempts: int | None = None) -> T:
    """Run operation, re-running it from a clean session state on ConcurrencyConflict."""
    max_attempts = attempts or settings.concurrency_retry_attempts
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except ConcurrencyConflict:
            db.rollback()
            if attempt == max_attempts:
                logger.warning("[CONCURRENCY] Giving up after %d attempts", attempt)
                raise
            logger.info("[CONCURRENCY] Conflict on attempt %d; retrying", attempt)
    raise ConcurrencyConflict()
