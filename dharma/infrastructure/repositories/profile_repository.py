"""Repository for gamified profile counters."""

import sqlite3
from datetime import date, datetime
from typing import Any, Dict, Optional

from dharma.domain.models.profile import Profile
from dharma.infrastructure.persistence.sqlite import (
    SQLiteDatabase,
    from_db_date,
    from_db_datetime,
    to_db_date,
    to_db_datetime,
)


class ProfileRepository:
    def __init__(self, database: SQLiteDatabase):
        self.database = database

    def get_or_create(self, user_id: str, now: datetime) -> Profile:
        stamp = to_db_datetime(now)
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO profiles (user_id, created_at, updated_at)
                VALUES (?, ?, ?)
                """,
                (user_id, stamp, stamp),
            )
            row = conn.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_profile(row)

    def update(
        self,
        user_id: str,
        now: datetime,
        *,
        dharma_points: Optional[int] = None,
        current_level: Optional[int] = None,
        app_streak: Optional[int] = None,
        sin_free_streak: Optional[int] = None,
        last_activity_date: Optional[date] = None,
    ) -> Profile:
        changes: Dict[str, Any] = {
            "dharma_points": dharma_points,
            "current_level": current_level,
            "app_streak": app_streak,
            "sin_free_streak": sin_free_streak,
            "last_activity_date": to_db_date(last_activity_date),
        }
        changes = {key: value for key, value in changes.items() if value is not None}
        assignments = "".join(f"{key} = ?, " for key in changes)

        with self.database.transaction() as conn:
            conn.execute(
                f"UPDATE profiles SET {assignments}updated_at = ? WHERE user_id = ?",
                (*changes.values(), to_db_datetime(now), user_id),
            )
            row = conn.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
        if row is None:
            raise LookupError(f"No profile for user {user_id}")
        return self._row_to_profile(row)

    def _row_to_profile(self, row: sqlite3.Row) -> Profile:
        return Profile(
            user_id=row["user_id"],
            dharma_points=row["dharma_points"],
            current_level=row["current_level"],
            app_streak=row["app_streak"],
            sin_free_streak=row["sin_free_streak"],
            last_activity_date=from_db_date(row["last_activity_date"]),
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
