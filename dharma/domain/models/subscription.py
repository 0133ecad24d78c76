"""Subscription domain model: one access record per user."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional


class PlanType(str, Enum):
    TRIAL = "trial"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def is_paid(self) -> bool:
        return self is not PlanType.TRIAL


class DeactivationReason(str, Enum):
    """Why ``is_active`` was last cleared, used for upgrade-screen copy."""

    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAYMENT_FAILED = "payment_failed"


TRIAL_LENGTH = timedelta(days=7)

PLAN_DURATION_DAYS: Dict[PlanType, int] = {
    PlanType.WEEKLY: 7,
    PlanType.MONTHLY: 30,
    PlanType.YEARLY: 365,
}

# Display prices in paise.
PLAN_AMOUNTS: Dict[PlanType, int] = {
    PlanType.WEEKLY: 9900,
    PlanType.MONTHLY: 19900,
    PlanType.YEARLY: 199900,
}

PLAN_CURRENCY = "inr"


def duration_days(plan_type: PlanType) -> int:
    """Length of a paid window for ``plan_type``."""
    try:
        return PLAN_DURATION_DAYS[PlanType(plan_type)]
    except KeyError:
        raise ValueError(f"Plan {plan_type!s} has no paid duration") from None


def paid_window(plan_type: PlanType, start: datetime) -> tuple[datetime, datetime]:
    """Return ``(paid_start, paid_end)`` for a plan bought at ``start``."""
    return start, start + timedelta(days=duration_days(plan_type))


@dataclass(slots=True)
class SubscriptionRecord:
    """
    Per-user subscription state.

    Attributes:
        user_id: Owning user
        plan_type: Current plan
        trial_start: Start of the free trial window
        trial_end: End of the free trial window (always trial_start + 7 days)
        paid_start: Start of the current paid window, if any
        paid_end: End of the current paid window, if any
        is_active: False once cancelled or deactivated by the gateway
        has_completed_onboarding: Monotonic onboarding flag
        external_customer_ref: Gateway customer id
        external_subscription_ref: Gateway subscription id
        external_plan_ref: Gateway price/plan id
        external_payment_ref: Gateway payment/invoice id
        deactivation_reason: Why is_active was cleared
        confirmed_by_gateway: True once the paid window came from a verified gateway event
    """

    user_id: str
    plan_type: PlanType
    trial_start: datetime
    trial_end: datetime
    paid_start: Optional[datetime] = None
    paid_end: Optional[datetime] = None
    is_active: bool = True
    has_completed_onboarding: bool = False
    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    external_plan_ref: Optional[str] = None
    external_payment_ref: Optional[str] = None
    deactivation_reason: Optional[DeactivationReason] = None
    confirmed_by_gateway: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def new_trial(cls, user_id: str, now: datetime) -> "SubscriptionRecord":
        return cls(
            user_id=user_id,
            plan_type=PlanType.TRIAL,
            trial_start=now,
            trial_end=now + TRIAL_LENGTH,
            is_active=True,
            has_completed_onboarding=False,
            created_at=now,
            updated_at=now,
        )

    def __repr__(self) -> str:
        return (
            f"<SubscriptionRecord user_id={self.user_id} plan={self.plan_type.value} "
            f"active={self.is_active}>"
        )
