"""Clock capability injected into services that timestamp writes."""

from datetime import UTC, date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock that returns a settable instant. Used by tests and replays."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **kwargs: float) -> None:
        """Move the clock forward by a timedelta built from kwargs."""
        self.instant = self.instant + timedelta(**kwargs)


def business_date(instant: datetime, timezone: str) -> date:
    """Calendar day an instant falls on in the business timezone.

    The day is the half-open window [00:00, next day 00:00) of local time.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(ZoneInfo(timezone)).date()
