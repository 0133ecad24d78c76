from datetime import timedelta

import pytest

from dharma.domain.errors import StoreUnavailableError
from dharma.domain.models.subscription import DeactivationReason, PlanType, SubscriptionRecord

from conftest import DAY0


def test_create_if_absent_keeps_first_record(subscription_repository):
    first = subscription_repository.create_if_absent(SubscriptionRecord.new_trial("u1", DAY0))
    second = subscription_repository.create_if_absent(
        SubscriptionRecord.new_trial("u1", DAY0 + timedelta(days=3))
    )
    assert first.trial_start == DAY0
    assert second.trial_start == DAY0
    assert second.trial_end == DAY0 + timedelta(days=7)


def test_round_trip_preserves_aware_datetimes(subscription_repository):
    subscription_repository.create_if_absent(SubscriptionRecord.new_trial("u1", DAY0))
    record = subscription_repository.get_by_user("u1")
    assert record.trial_start == DAY0
    assert record.trial_start.tzinfo is not None
    assert record.plan_type is PlanType.TRIAL
    assert record.is_active is True
    assert record.has_completed_onboarding is False


def test_upsert_merges_partial_changes(subscription_repository):
    subscription_repository.create_if_absent(SubscriptionRecord.new_trial("u1", DAY0))
    updated = subscription_repository.upsert(
        "u1",
        plan_type=PlanType.MONTHLY,
        paid_start=DAY0,
        paid_end=DAY0 + timedelta(days=30),
        external_subscription_ref="sub_123",
        external_customer_ref="cus_123",
    )
    assert updated.plan_type is PlanType.MONTHLY
    assert updated.trial_start == DAY0
    assert updated.paid_end == DAY0 + timedelta(days=30)

    deactivated = subscription_repository.upsert(
        "u1", is_active=False, deactivation_reason=DeactivationReason.CANCELLED
    )
    assert deactivated.is_active is False
    assert deactivated.deactivation_reason is DeactivationReason.CANCELLED
    assert deactivated.external_subscription_ref == "sub_123"


def test_upsert_creates_row_with_trial_fields(subscription_repository):
    created = subscription_repository.upsert(
        "u2",
        plan_type=PlanType.YEARLY,
        trial_start=DAY0,
        trial_end=DAY0 + timedelta(days=7),
        paid_start=DAY0,
        paid_end=DAY0 + timedelta(days=365),
        confirmed_by_gateway=True,
    )
    assert created.user_id == "u2"
    assert created.confirmed_by_gateway is True


def test_upsert_new_row_requires_trial_window(subscription_repository):
    with pytest.raises(ValueError):
        subscription_repository.upsert("u3", plan_type=PlanType.MONTHLY)
    assert subscription_repository.get_by_user("u3") is None


def test_upsert_rejects_unknown_fields(subscription_repository):
    subscription_repository.create_if_absent(SubscriptionRecord.new_trial("u1", DAY0))
    with pytest.raises(ValueError):
        subscription_repository.upsert("u1", favourite_colour="saffron")


def test_lookup_by_external_refs(subscription_repository):
    subscription_repository.create_if_absent(SubscriptionRecord.new_trial("u1", DAY0))
    subscription_repository.upsert(
        "u1", external_subscription_ref="sub_1", external_customer_ref="cus_1"
    )
    assert subscription_repository.get_by_external_subscription_ref("sub_1").user_id == "u1"
    assert subscription_repository.get_by_external_customer_ref("cus_1").user_id == "u1"
    assert subscription_repository.get_by_external_subscription_ref("sub_missing") is None


def test_processed_events_are_recorded_once(payment_event_repository):
    assert not payment_event_repository.has_processed("evt_1")
    assert payment_event_repository.mark_processed("evt_1", "activated", "u1", DAY0) is True
    assert payment_event_repository.mark_processed("evt_1", "activated", "u1", DAY0) is False
    assert payment_event_repository.has_processed("evt_1")


def test_unreachable_database_raises_store_unavailable(database, subscription_repository, tmp_path):
    database.path = tmp_path / "missing-dir" / "nested" / "gone.db"
    with pytest.raises(StoreUnavailableError):
        subscription_repository.get_by_user("u1")


def test_fresh_schema_has_every_record_column(database):
    with database.connect() as conn:
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(user_subscriptions)")}
    assert {"deactivation_reason", "confirmed_by_gateway", "external_subscription_ref"} <= columns
