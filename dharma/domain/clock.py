"""Injectable clock and civil-day helpers used by every temporal decision."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Protocol

# India Standard Time, the app's home civil offset.
DEFAULT_CIVIL_OFFSET_MINUTES = 330


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the wall clock, always returning aware UTC instants."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock pinned to a settable instant, for deterministic tests."""

    def __init__(self, instant: Optional[datetime] = None) -> None:
        self._instant = ensure_aware(instant or datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_aware(instant)

    def advance(self, **delta: float) -> datetime:
        self._instant = self._instant + timedelta(**delta)
        return self._instant


def ensure_aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def civil_day(instant: datetime, offset_minutes: int = DEFAULT_CIVIL_OFFSET_MINUTES) -> date:
    """Return the calendar date of ``instant`` in a fixed-offset civil timezone."""
    tz = timezone(timedelta(minutes=offset_minutes))
    return ensure_aware(instant).astimezone(tz).date()
