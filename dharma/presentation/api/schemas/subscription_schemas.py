"""Pydantic schemas for subscription API endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ....domain.models.subscription import PlanType
from ....services.subscription_service import SubscriptionSnapshot


class SubscriptionResponse(BaseModel):
    """Response schema for the stored subscription record."""

    plan_type: PlanType
    trial_start: datetime
    trial_end: datetime
    paid_start: Optional[datetime]
    paid_end: Optional[datetime]
    is_active: bool
    has_completed_onboarding: bool
    deactivation_reason: Optional[str]
    confirmed_by_gateway: bool


class SubscriptionStatusResponse(BaseModel):
    """Record plus every derived access predicate."""

    subscription: Optional[SubscriptionResponse]
    access_status: str
    message: str
    has_active_access: bool
    is_trial_expired: bool
    is_expired: bool
    is_paid_subscriber: bool
    is_cancelled: bool
    days_remaining: int
    evaluated_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: SubscriptionSnapshot) -> "SubscriptionStatusResponse":
        record = snapshot.record
        subscription = None
        if record is not None:
            subscription = SubscriptionResponse(
                plan_type=record.plan_type,
                trial_start=record.trial_start,
                trial_end=record.trial_end,
                paid_start=record.paid_start,
                paid_end=record.paid_end,
                is_active=record.is_active,
                has_completed_onboarding=record.has_completed_onboarding,
                deactivation_reason=(
                    record.deactivation_reason.value if record.deactivation_reason else None
                ),
                confirmed_by_gateway=record.confirmed_by_gateway,
            )
        return cls(
            subscription=subscription,
            access_status=snapshot.status.value,
            message=snapshot.message,
            has_active_access=snapshot.has_active_access,
            is_trial_expired=snapshot.is_trial_expired,
            is_expired=snapshot.is_expired,
            is_paid_subscriber=snapshot.is_paid_subscriber,
            is_cancelled=snapshot.is_cancelled,
            days_remaining=snapshot.days_remaining,
            evaluated_at=snapshot.now,
        )


class PlanResponse(BaseModel):
    """Response schema for an available paid plan."""

    plan_type: PlanType
    price_id: Optional[str]
    amount: int
    currency: str
    duration_days: int


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating a checkout session."""

    plan_type: PlanType


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for creating a checkout session."""

    session_id: str
    checkout_url: str


class ConfirmCheckoutRequest(BaseModel):
    """Request schema sent by the success page after checkout."""

    session_id: str


class ConfirmCheckoutResponse(BaseModel):
    confirmed: bool
    status: SubscriptionStatusResponse
