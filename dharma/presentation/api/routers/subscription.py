"""Subscription lifecycle endpoints for the signed-in user."""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from ....core.dependencies import get_stripe_service, get_subscription_service
from ....domain.errors import (
    InvalidTransitionError,
    PaymentGatewayError,
    SubscriptionNotFoundError,
)
from ....domain.models import User
from ....services.stripe_service import StripeService
from ....services.subscription_service import SubscriptionService
from ...api.dependencies import get_current_user
from ...api.schemas.subscription_schemas import (
    ConfirmCheckoutRequest,
    ConfirmCheckoutResponse,
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    PlanResponse,
    SubscriptionStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["Subscription"])


@router.get("", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """Get the current user's record and derived access state."""
    return SubscriptionStatusResponse.from_snapshot(subscription_service.get_snapshot(user.id))


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(
    stripe_service: StripeService = Depends(get_stripe_service),
) -> List[Dict[str, Any]]:
    """List purchasable plans."""
    return stripe_service.list_plans()


@router.post("/trial", response_model=SubscriptionStatusResponse, status_code=status.HTTP_201_CREATED)
async def start_trial(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """Start the free trial. Repeated calls return the existing record."""
    subscription_service.create_trial(user.id)
    return SubscriptionStatusResponse.from_snapshot(subscription_service.get_snapshot(user.id))


@router.post("/onboarding/complete", response_model=SubscriptionStatusResponse)
async def complete_onboarding(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    try:
        subscription_service.complete_onboarding(user.id)
    except SubscriptionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return SubscriptionStatusResponse.from_snapshot(subscription_service.get_snapshot(user.id))


@router.post("/cancel", response_model=SubscriptionStatusResponse)
async def cancel_subscription(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """Cancel the current paid plan. Trials cannot be cancelled."""
    try:
        cancelled = subscription_service.cancel(user.id)
    except SubscriptionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Free trials cannot be cancelled",
        )
    return SubscriptionStatusResponse.from_snapshot(subscription_service.get_snapshot(user.id))


@router.post("/checkout", response_model=CreateCheckoutSessionResponse)
async def create_checkout_session(
    payload: CreateCheckoutSessionRequest,
    user: User = Depends(get_current_user),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> CreateCheckoutSessionResponse:
    """Create a Stripe checkout session for a paid plan."""
    try:
        session = stripe_service.create_checkout_session(user, payload.plan_type)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return CreateCheckoutSessionResponse(session_id=session.session_id, checkout_url=session.url)


@router.post("/checkout/confirm", response_model=ConfirmCheckoutResponse)
async def confirm_checkout(
    payload: ConfirmCheckoutRequest,
    user: User = Depends(get_current_user),
    stripe_service: StripeService = Depends(get_stripe_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> ConfirmCheckoutResponse:
    """
    Confirm a checkout after the success redirect.

    Grants the paid window immediately; the webhook later confirms it.
    """
    try:
        confirmation = stripe_service.confirm_checkout(payload.session_id, user.id)
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    if confirmation is not None:
        try:
            subscription_service.activate_paid_plan(
                user.id,
                confirmation.plan_type,
                customer_ref=confirmation.customer_ref,
                subscription_ref=confirmation.subscription_ref,
                plan_ref=confirmation.plan_ref,
                payment_ref=confirmation.payment_ref,
            )
        except SubscriptionNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return ConfirmCheckoutResponse(
        confirmed=confirmation is not None,
        status=SubscriptionStatusResponse.from_snapshot(subscription_service.get_snapshot(user.id)),
    )
