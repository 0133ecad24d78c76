"""Payment gateway webhook endpoint."""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ....core.dependencies import get_stripe_service, get_subscription_service
from ....domain.errors import ExternalVerificationError
from ....services.stripe_service import StripeService
from ....services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> Dict[str, str]:
    """Handle Stripe webhook events."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = stripe_service.construct_event(payload, signature)
    except ExternalVerificationError as exc:
        logger.warning("Rejected Stripe webhook: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    gateway_event = stripe_service.translate_event(event)
    if gateway_event is None:
        logger.debug("Ignoring Stripe event %s (%s)", event.get("id"), event.get("type"))
        return {"status": "ignored"}

    outcome = subscription_service.reconcile_external_event(gateway_event)
    return {"status": outcome.value}
