# groundops_api/services/clock.py
from __future__ import annotations

from datetime import datetime, timedelta


class SystemClock:
    """Server wall clock (naive local time)."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Clock pinned to a given instant; used by tests and seed scripts."""

    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = at

    def advance(self, **delta) -> datetime:
        self._at = self._at + timedelta(**delta)
        return self._at
