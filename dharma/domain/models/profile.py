from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

POINTS_PER_LEVEL = 100


@dataclass(slots=True)
class Profile:
    user_id: str
    dharma_points: int
    current_level: int
    app_streak: int
    sin_free_streak: int
    last_activity_date: Optional[date]
    created_at: datetime
    updated_at: datetime


def level_for_points(points: int) -> int:
    return max(points, 0) // POINTS_PER_LEVEL + 1
