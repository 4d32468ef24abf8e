from datetime import date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def today(self) -> date:
        ...


class SystemClock:
    """Wall-clock date in the configured timezone."""

    def __init__(self, tz: str = "UTC") -> None:
        self._tz = ZoneInfo(tz)

    def today(self) -> date:
        return datetime.now(self._tz).date()


class FixedClock:
    def __init__(self, day: date) -> None:
        self.day = day

    def today(self) -> date:
        return self.day
