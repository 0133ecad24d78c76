"""Repository for User persistence."""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Optional

from dharma.domain.models.user import User
from dharma.infrastructure.persistence.sqlite import (
    SQLiteDatabase,
    from_db_datetime,
    to_db_datetime,
)


class UserRepository:
    """Repository for managing User entities in SQLite."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    def create(self, email: str, password_hash: str, full_name: Optional[str] = None) -> User:
        """Create a new user."""
        user_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        with self.database.connect() as conn:
            conn.execute(
                """
                INSERT INTO users (id, email, password_hash, full_name, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    email.lower(),
                    password_hash,
                    full_name,
                    to_db_datetime(now),
                    to_db_datetime(now),
                ),
            )

        return User(
            id=user_id,
            email=email.lower(),
            password_hash=password_hash,
            full_name=full_name,
            created_at=now,
            updated_at=now,
        )

    def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.lower(),)
            ).fetchone()

        return self._row_to_user(row) if row else None

    def _row_to_user(self, row: sqlite3.Row) -> User:
        """Convert database row to User entity."""
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            full_name=row["full_name"],
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
