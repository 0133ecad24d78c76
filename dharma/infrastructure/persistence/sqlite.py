import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from ...domain.clock import ensure_aware
from ...domain.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    full_name TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL UNIQUE,
    plan_type TEXT NOT NULL DEFAULT 'trial',
    trial_start TEXT NOT NULL,
    trial_end TEXT NOT NULL,
    paid_start TEXT,
    paid_end TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    has_completed_onboarding INTEGER NOT NULL DEFAULT 0,
    external_customer_ref TEXT,
    external_subscription_ref TEXT,
    external_plan_ref TEXT,
    external_payment_ref TEXT,
    deactivation_reason TEXT,
    confirmed_by_gateway INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_user_subscriptions_subscription_ref
    ON user_subscriptions(external_subscription_ref);

CREATE INDEX IF NOT EXISTS idx_user_subscriptions_customer_ref
    ON user_subscriptions(external_customer_ref);

CREATE TABLE IF NOT EXISTS processed_payment_events (
    event_id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    user_id TEXT,
    processed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    dharma_points INTEGER NOT NULL DEFAULT 0,
    current_level INTEGER NOT NULL DEFAULT 1,
    app_streak INTEGER NOT NULL DEFAULT 0,
    sin_free_streak INTEGER NOT NULL DEFAULT 0,
    last_activity_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SQLiteDatabase:
    """Owns the sqlite file and hands out short-lived connections."""

    def __init__(self, path: Union[str, Path], timeout: float = 5.0) -> None:
        self.path = Path(path)
        self.timeout = timeout
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def _initialize(self) -> None:
        with self.connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Autocommit connection for reads and single statements."""
        try:
            conn = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as exc:
            logger.error("Unable to open database %s: %s", self.path, exc)
            raise StoreUnavailableError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.error("Database operation failed: %s", exc)
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction holding the database write lock until commit."""
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.rollback()
                raise
            else:
                conn.commit()


def to_db_datetime(value: Optional[datetime]) -> Optional[str]:
    return ensure_aware(value).isoformat() if value is not None else None


def from_db_datetime(value: Optional[str]) -> Optional[datetime]:
    return ensure_aware(datetime.fromisoformat(value)) if value else None


def to_db_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_db_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None
