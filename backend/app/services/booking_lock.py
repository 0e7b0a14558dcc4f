from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
import logging
import time
from typing import Iterator

from app.core.exceptions import SystemBusyError

logger = logging.getLogger(__name__)


class BookingLock:
    """Process-wide mutual exclusion for every operation that writes bookings."""

    def __init__(self) -> None:
        self._lock = Lock()

    @contextmanager
    def hold(self, timeout_seconds: float) -> Iterator[None]:
        started = time.monotonic()
        if not self._lock.acquire(timeout=max(0.0, timeout_seconds)):
            logger.warning("Booking lock not acquired after %.1fs", time.monotonic() - started)
            raise SystemBusyError()
        try:
            yield
        finally:
            self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()


booking_lock = BookingLock()
