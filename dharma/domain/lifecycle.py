"""
Pure access-control policy over a subscription record and an instant.

``has_active_access`` is the single predicate the rest of the application
should consult. The other predicates exist for distinct upgrade-screen copy
and for testing. Every end instant is inclusive: access is still granted
when ``now`` equals the end of the window.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from .clock import ensure_aware
from .models.subscription import DeactivationReason, PlanType, SubscriptionRecord

_SECONDS_PER_DAY = 24 * 60 * 60


class AccessStatus(str, Enum):
    NO_SUBSCRIPTION = "no_subscription"
    ACTIVE = "active"
    TRIAL_EXPIRED = "trial_expired"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    CANCELLED = "cancelled"
    PAYMENT_FAILED = "payment_failed"


_STATUS_MESSAGES = {
    AccessStatus.NO_SUBSCRIPTION: "Start your free 7-day trial to continue your journey.",
    AccessStatus.ACTIVE: "Your access is active.",
    AccessStatus.TRIAL_EXPIRED: "Your free trial has ended. Choose a plan to keep going.",
    AccessStatus.SUBSCRIPTION_EXPIRED: "Your subscription has expired. Renew to regain access.",
    AccessStatus.CANCELLED: "Your subscription was cancelled. Choose a plan to resubscribe.",
    AccessStatus.PAYMENT_FAILED: "We could not process your last payment. Update your plan to continue.",
}


def is_trial_expired(record: SubscriptionRecord, now: datetime) -> bool:
    return record.plan_type == PlanType.TRIAL and ensure_aware(now) > record.trial_end


def is_paid_expired(record: SubscriptionRecord, now: datetime) -> bool:
    if record.plan_type == PlanType.TRIAL:
        return False
    # A paid plan without an end date never grants access.
    return record.paid_end is None or ensure_aware(now) > record.paid_end


def is_expired(record: SubscriptionRecord, now: datetime) -> bool:
    if record.plan_type == PlanType.TRIAL:
        return is_trial_expired(record, now)
    return is_paid_expired(record, now)


def has_active_access(record: Optional[SubscriptionRecord], now: datetime) -> bool:
    if record is None:
        return False
    return record.is_active and not is_expired(record, now)


def is_paid_subscriber(record: Optional[SubscriptionRecord]) -> bool:
    return record is not None and record.plan_type != PlanType.TRIAL


def is_cancelled(record: Optional[SubscriptionRecord]) -> bool:
    return is_paid_subscriber(record) and not record.is_active


def effective_end(record: SubscriptionRecord, now: datetime) -> datetime:
    if record.plan_type == PlanType.TRIAL:
        return record.trial_end
    return record.paid_end or ensure_aware(now)


def days_remaining(record: Optional[SubscriptionRecord], now: datetime) -> int:
    """Whole days left in the current window, rounded up and never negative."""
    if record is None:
        return 0
    now = ensure_aware(now)
    seconds = (effective_end(record, now) - now).total_seconds()
    return max(0, math.ceil(seconds / _SECONDS_PER_DAY))


def access_status(record: Optional[SubscriptionRecord], now: datetime) -> AccessStatus:
    """Classify why a user does or does not have access."""
    if record is None:
        return AccessStatus.NO_SUBSCRIPTION
    if has_active_access(record, now):
        return AccessStatus.ACTIVE
    if not record.is_active:
        if record.deactivation_reason == DeactivationReason.PAYMENT_FAILED:
            return AccessStatus.PAYMENT_FAILED
        if record.deactivation_reason == DeactivationReason.EXPIRED:
            return AccessStatus.SUBSCRIPTION_EXPIRED
        if record.plan_type == PlanType.TRIAL:
            return AccessStatus.TRIAL_EXPIRED
        return AccessStatus.CANCELLED
    if record.plan_type == PlanType.TRIAL:
        return AccessStatus.TRIAL_EXPIRED
    return AccessStatus.SUBSCRIPTION_EXPIRED


def status_message(status: AccessStatus) -> str:
    return _STATUS_MESSAGES[status]
