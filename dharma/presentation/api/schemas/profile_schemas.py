from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from ....domain.models.profile import Profile


class ProfileResponse(BaseModel):
    dharma_points: int
    current_level: int
    app_streak: int
    sin_free_streak: int
    last_activity_date: Optional[date]

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            dharma_points=profile.dharma_points,
            current_level=profile.current_level,
            app_streak=profile.app_streak,
            sin_free_streak=profile.sin_free_streak,
            last_activity_date=profile.last_activity_date,
        )


class AddPointsRequest(BaseModel):
    points: int = Field(gt=0, le=1000)
