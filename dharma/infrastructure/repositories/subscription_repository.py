"""Repository for SubscriptionRecord persistence."""

import sqlite3
from dataclasses import fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from dharma.domain.models.subscription import (
    DeactivationReason,
    PlanType,
    SubscriptionRecord,
)
from dharma.infrastructure.persistence.sqlite import (
    SQLiteDatabase,
    from_db_datetime,
    to_db_datetime,
)

_DATETIME_FIELDS = {"trial_start", "trial_end", "paid_start", "paid_end", "created_at", "updated_at"}
_BOOL_FIELDS = {"is_active", "has_completed_onboarding", "confirmed_by_gateway"}
_WRITABLE_FIELDS = {
    f.name for f in fields(SubscriptionRecord) if f.name not in ("user_id", "created_at", "updated_at")
}
_REQUIRED_ON_CREATE = ("plan_type", "trial_start", "trial_end")


class SubscriptionRepository:
    """Repository for managing one subscription row per user in SQLite."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    def get_by_user(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Get the subscription record for a user."""
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_subscriptions WHERE user_id = ?", (user_id,)
            ).fetchone()

        return self._row_to_record(row) if row else None

    def get_by_external_subscription_ref(
        self, subscription_ref: str
    ) -> Optional[SubscriptionRecord]:
        """Get subscription by gateway subscription ID."""
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_subscriptions WHERE external_subscription_ref = ?",
                (subscription_ref,),
            ).fetchone()

        return self._row_to_record(row) if row else None

    def get_by_external_customer_ref(self, customer_ref: str) -> Optional[SubscriptionRecord]:
        """Get the most recently updated subscription for a gateway customer ID."""
        with self.database.connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM user_subscriptions
                WHERE external_customer_ref = ?
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                (customer_ref,),
            ).fetchone()

        return self._row_to_record(row) if row else None

    def create_if_absent(self, record: SubscriptionRecord) -> SubscriptionRecord:
        """Insert ``record`` unless the user already has one; return the stored row."""
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO user_subscriptions (
                    user_id, plan_type, trial_start, trial_end, is_active,
                    has_completed_onboarding, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.user_id,
                    record.plan_type.value,
                    to_db_datetime(record.trial_start),
                    to_db_datetime(record.trial_end),
                    int(record.is_active),
                    int(record.has_completed_onboarding),
                    to_db_datetime(record.created_at),
                    to_db_datetime(record.updated_at),
                ),
            )
            row = conn.execute(
                "SELECT * FROM user_subscriptions WHERE user_id = ?", (record.user_id,)
            ).fetchone()

        return self._row_to_record(row)

    def upsert(self, user_id: str, **changes: Any) -> SubscriptionRecord:
        """
        Merge ``changes`` into the user's record, creating it if absent.

        The read and the write share one IMMEDIATE transaction, so concurrent
        upserts for the same user serialize and the last writer wins.

        Raises:
            ValueError: If an unknown field is given, or a new row lacks trial fields
            StoreUnavailableError: If the database cannot be reached
        """
        unknown = set(changes) - _WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown subscription fields: {', '.join(sorted(unknown))}")

        now = to_db_datetime(datetime.now(timezone.utc))
        values = {name: self._to_db(name, value) for name, value in changes.items()}

        with self.database.transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM user_subscriptions WHERE user_id = ?", (user_id,)
            ).fetchone()

            if exists:
                if values:
                    assignments = ", ".join(f"{name} = ?" for name in values)
                    conn.execute(
                        f"UPDATE user_subscriptions SET {assignments}, updated_at = ? WHERE user_id = ?",
                        (*values.values(), now, user_id),
                    )
            else:
                missing = [name for name in _REQUIRED_ON_CREATE if values.get(name) is None]
                if missing:
                    raise ValueError(
                        f"Cannot create subscription for {user_id} without {', '.join(missing)}"
                    )
                columns = ["user_id", *values, "created_at", "updated_at"]
                placeholders = ", ".join("?" for _ in columns)
                conn.execute(
                    f"INSERT INTO user_subscriptions ({', '.join(columns)}) VALUES ({placeholders})",
                    (user_id, *values.values(), now, now),
                )

            row = conn.execute(
                "SELECT * FROM user_subscriptions WHERE user_id = ?", (user_id,)
            ).fetchone()

        return self._row_to_record(row)

    @staticmethod
    def _to_db(name: str, value: Any) -> Any:
        if name in _DATETIME_FIELDS:
            return to_db_datetime(value)
        if name in _BOOL_FIELDS:
            return int(bool(value))
        if isinstance(value, Enum):
            return value.value
        return value

    def _row_to_record(self, row: sqlite3.Row) -> SubscriptionRecord:
        """Convert database row to SubscriptionRecord entity."""
        reason = row["deactivation_reason"]
        return SubscriptionRecord(
            user_id=row["user_id"],
            plan_type=PlanType(row["plan_type"]),
            trial_start=from_db_datetime(row["trial_start"]),
            trial_end=from_db_datetime(row["trial_end"]),
            paid_start=from_db_datetime(row["paid_start"]),
            paid_end=from_db_datetime(row["paid_end"]),
            is_active=bool(row["is_active"]),
            has_completed_onboarding=bool(row["has_completed_onboarding"]),
            external_customer_ref=row["external_customer_ref"],
            external_subscription_ref=row["external_subscription_ref"],
            external_plan_ref=row["external_plan_ref"],
            external_payment_ref=row["external_payment_ref"],
            deactivation_reason=DeactivationReason(reason) if reason else None,
            confirmed_by_gateway=bool(row["confirmed_by_gateway"]),
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
