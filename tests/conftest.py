import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from dharma.core.app_factory import create_application
from dharma.core.config import Settings
from dharma.domain.clock import FrozenClock
from dharma.infrastructure.persistence.sqlite import SQLiteDatabase
from dharma.infrastructure.repositories.payment_event_repository import PaymentEventRepository
from dharma.infrastructure.repositories.subscription_repository import SubscriptionRepository
from dharma.services.subscription_service import SubscriptionService
from dharma.services.subscription_state import SubscriptionStateCache

DAY0 = datetime(2025, 3, 1, 6, 0, tzinfo=timezone.utc)
WEBHOOK_SECRET = "whsec_test_secret"
PRICE_IDS = {
    "weekly": "price_weekly_test",
    "monthly": "price_monthly_test",
    "yearly": "price_yearly_test",
}


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(DAY0)


@pytest.fixture()
def database(tmp_path: Path) -> SQLiteDatabase:
    return SQLiteDatabase(tmp_path / "dharma.db")


@pytest.fixture()
def subscription_repository(database: SQLiteDatabase) -> SubscriptionRepository:
    return SubscriptionRepository(database)


@pytest.fixture()
def payment_event_repository(database: SQLiteDatabase) -> PaymentEventRepository:
    return PaymentEventRepository(database)


@pytest.fixture()
def subscription_service(
    subscription_repository: SubscriptionRepository,
    payment_event_repository: PaymentEventRepository,
    clock: FrozenClock,
) -> SubscriptionService:
    return SubscriptionService(
        store=subscription_repository,
        processed_events=payment_event_repository,
        cache=SubscriptionStateCache(subscription_repository),
        clock=clock,
    )


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Settings:
    """Settings for an isolated app with Stripe configured against fake ids."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("STRIPE_PRICE_WEEKLY", PRICE_IDS["weekly"])
    monkeypatch.setenv("STRIPE_PRICE_MONTHLY", PRICE_IDS["monthly"])
    monkeypatch.setenv("STRIPE_PRICE_YEARLY", PRICE_IDS["yearly"])
    monkeypatch.setenv("FRONTEND_BASE_URL", "http://app.test")
    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
    monkeypatch.delenv("CIVIL_TZ_OFFSET_MINUTES", raising=False)
    return Settings()


@pytest.fixture()
def client(settings: Settings, clock: FrozenClock) -> Iterator[TestClient]:
    app = create_application(settings=settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def register_user(client: TestClient) -> Callable[..., Dict[str, str]]:
    """Register a user and return bearer headers plus the user id."""

    def _register(email: str = "seeker@example.com", password: str = "s3cret-pass") -> Dict[str, str]:
        response = client.post("/api/users/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "user_id": body["user"]["id"],
            "Authorization": f"Bearer {body['access_token']}",
        }

    return _register


def auth_headers(registered: Dict[str, str]) -> Dict[str, str]:
    return {"Authorization": registered["Authorization"]}


def signed_webhook(event: Dict[str, Any], secret: str = WEBHOOK_SECRET) -> Dict[str, Any]:
    """Serialize ``event`` and sign it the way Stripe does."""
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return {
        "content": payload,
        "headers": {
            "Stripe-Signature": f"t={timestamp},v1={signature}",
            "Content-Type": "application/json",
        },
    }
