from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    app_streak: int
    sin_free_streak: int
    changed: bool


def advance_streak(
    last_activity: Optional[date],
    today: date,
    app_streak: int,
    sin_free_streak: int,
) -> StreakUpdate:
    """Apply one daily check-in to the streak counters."""
    if last_activity == today:
        return StreakUpdate(app_streak, sin_free_streak, changed=False)
    if last_activity == today - timedelta(days=1):
        return StreakUpdate(app_streak + 1, sin_free_streak + 1, changed=True)
    # First check-in, a missed day, or a clock that moved backwards.
    return StreakUpdate(1, 1, changed=True)
