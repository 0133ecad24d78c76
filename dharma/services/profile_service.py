"""Daily check-in streaks and dharma points."""

import logging
from typing import Optional

from dharma.domain.clock import Clock, SystemClock, civil_day
from dharma.domain.models.profile import Profile, level_for_points
from dharma.domain.ports.persistence import ProfileStore
from dharma.domain.streak import advance_streak

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(
        self,
        profile_repository: ProfileStore,
        clock: Optional[Clock] = None,
        civil_offset_minutes: int = 330,
    ):
        self.profile_repository = profile_repository
        self.clock = clock or SystemClock()
        self.civil_offset_minutes = civil_offset_minutes

    def get_profile(self, user_id: str) -> Profile:
        return self.profile_repository.get_or_create(user_id, self.clock.now())

    def check_in(self, user_id: str) -> Profile:
        """Record today's visit, extending or resetting both streaks."""
        now = self.clock.now()
        profile = self.profile_repository.get_or_create(user_id, now)
        today = civil_day(now, self.civil_offset_minutes)

        update = advance_streak(
            profile.last_activity_date,
            today,
            profile.app_streak,
            profile.sin_free_streak,
        )
        if not update.changed:
            return profile

        logger.debug("User %s streak now %s", user_id, update.app_streak)
        return self.profile_repository.update(
            user_id,
            now,
            app_streak=update.app_streak,
            sin_free_streak=update.sin_free_streak,
            last_activity_date=today,
        )

    def add_points(self, user_id: str, points: int) -> Profile:
        """
        Award dharma points and recompute the level.

        Raises:
            ValueError: If ``points`` is not positive
        """
        if points <= 0:
            raise ValueError("Points must be positive")
        now = self.clock.now()
        profile = self.profile_repository.get_or_create(user_id, now)
        total = profile.dharma_points + points
        return self.profile_repository.update(
            user_id,
            now,
            dharma_points=total,
            current_level=level_for_points(total),
        )
