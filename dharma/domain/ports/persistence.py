from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Protocol

from ..models import Profile, SubscriptionRecord, User


class SubscriptionStore(Protocol):
    """Row-per-user durable store for subscription records."""

    def get_by_user(self, user_id: str) -> Optional[SubscriptionRecord]:
        ...

    def create_if_absent(self, record: SubscriptionRecord) -> SubscriptionRecord:
        ...

    def upsert(self, user_id: str, **fields: Any) -> SubscriptionRecord:
        ...

    def get_by_external_subscription_ref(self, subscription_ref: str) -> Optional[SubscriptionRecord]:
        ...

    def get_by_external_customer_ref(self, customer_ref: str) -> Optional[SubscriptionRecord]:
        ...


class ProcessedEventStore(Protocol):
    """Ledger of gateway event ids already applied."""

    def has_processed(self, event_id: str) -> bool:
        ...

    def mark_processed(
        self,
        event_id: str,
        kind: str,
        user_id: Optional[str],
        processed_at: datetime,
    ) -> bool:
        ...


class UserStore(Protocol):
    """Persistence functions related to app user accounts."""

    def create(self, email: str, password_hash: str, full_name: Optional[str] = None) -> User:
        ...

    def get_by_id(self, user_id: str) -> Optional[User]:
        ...

    def get_by_email(self, email: str) -> Optional[User]:
        ...


class ProfileStore(Protocol):
    """Persistence functions for gamified profile counters."""

    def get_or_create(self, user_id: str, now: datetime) -> Profile:
        ...

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
        ...
