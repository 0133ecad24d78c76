"""Repository for the processed payment event ledger."""

from datetime import datetime
from typing import Optional

from dharma.infrastructure.persistence.sqlite import SQLiteDatabase, to_db_datetime


class PaymentEventRepository:
    """Tracks gateway event ids that have already been applied."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    def has_processed(self, event_id: str) -> bool:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM processed_payment_events WHERE event_id = ?", (event_id,)
            ).fetchone()
        return row is not None

    def mark_processed(
        self,
        event_id: str,
        kind: str,
        user_id: Optional[str],
        processed_at: datetime,
    ) -> bool:
        """Record an event id; returns False if it was already recorded."""
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO processed_payment_events (event_id, kind, user_id, processed_at)
                VALUES (?, ?, ?, ?)
                """,
                (event_id, kind, user_id, to_db_datetime(processed_at)),
            )
        return cursor.rowcount == 1
