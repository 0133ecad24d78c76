"""Stripe payment integration: checkout, webhook verification and event mapping."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import stripe

from ..domain.errors import ExternalVerificationError, PaymentGatewayError
from ..domain.models.payment_event import GatewayEvent, GatewayEventKind
from ..domain.models.subscription import (
    PLAN_AMOUNTS,
    PLAN_CURRENCY,
    PlanType,
    duration_days,
)
from ..domain.models.user import User

logger = logging.getLogger(__name__)

_PAID_STATUSES = ("paid", "no_payment_required")

_SUBSCRIPTION_STATUS_KINDS = {
    "canceled": GatewayEventKind.CANCELLED,
    "incomplete_expired": GatewayEventKind.EXPIRED,
    "unpaid": GatewayEventKind.HALTED,
    "past_due": GatewayEventKind.PAYMENT_FAILED,
    "incomplete": GatewayEventKind.PENDING,
}


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    session_id: str
    url: str
    plan_type: PlanType


@dataclass(frozen=True, slots=True)
class CheckoutConfirmation:
    """Details of a completed checkout owned by the requesting user."""

    session_id: str
    plan_type: PlanType
    customer_ref: Optional[str]
    subscription_ref: Optional[str]
    plan_ref: Optional[str]
    payment_ref: Optional[str]


def _field(obj: Any, key: str) -> Any:
    """Subscript lookup that tolerates missing keys on dicts and Stripe objects."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


def _path(obj: Any, *keys: Any) -> Any:
    for key in keys:
        obj = _field(obj, key)
        if obj is None:
            return None
    return obj


def _ref(value: Any) -> Optional[str]:
    """Stripe fields are either an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return _field(value, "id")


class StripeService:
    """Manages Stripe API integration for plan checkout and subscription events."""

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        plan_price_ids: Mapping[PlanType, str],
        frontend_base_url: str,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.plan_price_ids: Dict[PlanType, str] = dict(plan_price_ids)
        self.frontend_base_url = frontend_base_url.rstrip("/")
        self._plans_by_price = {price: plan for plan, price in self.plan_price_ids.items()}
        if secret_key:
            stripe.api_key = secret_key
        self._configured = bool(secret_key)

    @property
    def is_configured(self) -> bool:
        return self._configured

    def list_plans(self) -> List[Dict[str, Any]]:
        """Paid plans with their display price, duration and gateway price id."""
        return [
            {
                "plan_type": plan.value,
                "price_id": self.plan_price_ids.get(plan),
                "amount": PLAN_AMOUNTS[plan],
                "currency": PLAN_CURRENCY,
                "duration_days": duration_days(plan),
            }
            for plan in (PlanType.WEEKLY, PlanType.MONTHLY, PlanType.YEARLY)
        ]

    def plan_for_price(self, price_id: Optional[str]) -> Optional[PlanType]:
        return self._plans_by_price.get(price_id) if price_id else None

    # Checkout -----------------------------------------------------------------
    def create_checkout_session(self, user: User, plan_type: PlanType) -> CheckoutSession:
        """
        Open a hosted checkout for a paid plan.

        Args:
            user: Purchasing user, used for prefill and correlation metadata
            plan_type: Paid plan being bought

        Returns:
            CheckoutSession with the URL to redirect the user to

        Raises:
            PaymentGatewayError: If Stripe is not configured or rejects the request
        """
        plan_type = PlanType(plan_type)
        if not plan_type.is_paid:
            raise ValueError("The trial plan cannot be purchased")
        if not self._configured:
            raise PaymentGatewayError("Stripe not configured. Please set STRIPE_SECRET_KEY.")
        price_id = self.plan_price_ids.get(plan_type)
        if not price_id:
            raise PaymentGatewayError(f"No Stripe price configured for the {plan_type.value} plan")

        metadata = {"user_id": user.id, "plan_type": plan_type.value}
        try:
            session = stripe.checkout.Session.create(
                mode="subscription",
                customer_email=user.email,
                client_reference_id=user.id,
                line_items=[{"price": price_id, "quantity": 1}],
                metadata=metadata,
                subscription_data={"metadata": metadata},
                success_url=(
                    f"{self.frontend_base_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}"
                ),
                cancel_url=f"{self.frontend_base_url}/pricing?checkout=cancelled",
            )
        except stripe.StripeError as exc:
            logger.error("Failed to create checkout session for user %s: %s", user.id, exc)
            raise PaymentGatewayError(f"Failed to start checkout: {exc}") from exc

        logger.info("Checkout session %s opened for user %s (%s)", session.id, user.id, plan_type.value)
        return CheckoutSession(session_id=session.id, url=session.url, plan_type=plan_type)

    def confirm_checkout(self, session_id: str, user_id: str) -> Optional[CheckoutConfirmation]:
        """
        Look up a checkout session after the success redirect.

        Returns:
            CheckoutConfirmation if the session is complete and paid, None otherwise

        Raises:
            PaymentGatewayError: If Stripe cannot be reached or the session belongs to someone else
        """
        if not self._configured:
            raise PaymentGatewayError("Stripe not configured. Please set STRIPE_SECRET_KEY.")
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as exc:
            logger.error("Failed to retrieve checkout session %s: %s", session_id, exc)
            raise PaymentGatewayError(f"Failed to verify checkout: {exc}") from exc

        metadata = _field(session, "metadata")
        owner = _field(metadata, "user_id") or _field(session, "client_reference_id")
        if owner != user_id:
            logger.warning("Checkout session %s does not belong to user %s", session_id, user_id)
            raise PaymentGatewayError("Checkout session does not belong to this user")

        if _field(session, "status") != "complete" or _field(session, "payment_status") not in _PAID_STATUSES:
            logger.info("Checkout session %s not yet paid", session_id)
            return None

        plan_type = self._plan_from(metadata, None)
        if plan_type is None:
            raise PaymentGatewayError("Checkout session carries no plan")

        return CheckoutConfirmation(
            session_id=session_id,
            plan_type=plan_type,
            customer_ref=_ref(_field(session, "customer")),
            subscription_ref=_ref(_field(session, "subscription")),
            plan_ref=self.plan_price_ids.get(plan_type),
            payment_ref=_ref(_field(session, "invoice")),
        )

    def cancel_renewal(self, subscription_ref: str) -> None:
        """Stop a Stripe subscription from renewing at the end of its period."""
        try:
            stripe.Subscription.modify(subscription_ref, cancel_at_period_end=True)
        except stripe.StripeError as exc:
            logger.error("Failed to cancel renewal for %s: %s", subscription_ref, exc)
            raise PaymentGatewayError(f"Failed to cancel subscription: {exc}") from exc

    # Webhooks -----------------------------------------------------------------
    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the decoded event.

        Raises:
            ExternalVerificationError: If no secret is configured, or the signature or payload is invalid
        """
        if not self.webhook_secret:
            raise ExternalVerificationError("Webhook secret not configured")
        if not signature:
            raise ExternalVerificationError("Missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
            return json.loads(payload)
        except stripe.SignatureVerificationError as exc:
            raise ExternalVerificationError("Invalid signature") from exc
        except ValueError as exc:
            raise ExternalVerificationError("Invalid payload") from exc

    def translate_event(self, event: Mapping[str, Any]) -> Optional[GatewayEvent]:
        """Map a Stripe event onto a gateway event, or None for irrelevant types."""
        event_type = _field(event, "type")
        obj = _path(event, "data", "object")
        if obj is None:
            return None

        if event_type == "checkout.session.completed":
            if _field(obj, "mode") != "subscription":
                return None
            paid = _field(obj, "payment_status") in _PAID_STATUSES
            kind = GatewayEventKind.ACTIVATED if paid else GatewayEventKind.PENDING
            metadata = _field(obj, "metadata")
            plan_type = self._plan_from(metadata, None)
            return self._event(
                event,
                kind,
                metadata=metadata,
                plan_type=plan_type,
                subscription_ref=_ref(_field(obj, "subscription")),
                customer_ref=_ref(_field(obj, "customer")),
                plan_ref=self.plan_price_ids.get(plan_type) if plan_type else None,
                payment_ref=_ref(_field(obj, "invoice")) or _field(obj, "id"),
            )

        if event_type in ("invoice.paid", "invoice.payment_failed"):
            metadata = _path(obj, "subscription_details", "metadata") or _path(
                obj, "parent", "subscription_details", "metadata"
            )
            subscription_ref = _ref(_field(obj, "subscription")) or _ref(
                _path(obj, "parent", "subscription_details", "subscription")
            )
            if subscription_ref is None:
                return None
            price_id = _path(obj, "lines", "data", 0, "price", "id") or _path(
                obj, "lines", "data", 0, "pricing", "price_details", "price"
            )
            if event_type == "invoice.paid":
                kind = GatewayEventKind.CHARGED
            elif _field(obj, "next_payment_attempt") is None:
                kind = GatewayEventKind.HALTED
            else:
                kind = GatewayEventKind.PAYMENT_FAILED
            return self._event(
                event,
                kind,
                metadata=metadata,
                plan_type=self._plan_from(metadata, price_id),
                subscription_ref=subscription_ref,
                customer_ref=_ref(_field(obj, "customer")),
                plan_ref=price_id,
                payment_ref=_field(obj, "id"),
            )

        if event_type in ("customer.subscription.deleted", "customer.subscription.updated"):
            if event_type == "customer.subscription.deleted":
                kind = GatewayEventKind.CANCELLED
            else:
                kind = _SUBSCRIPTION_STATUS_KINDS.get(_field(obj, "status"))
                if kind is None:
                    return None
            metadata = _field(obj, "metadata")
            price_id = _path(obj, "items", "data", 0, "price", "id")
            return self._event(
                event,
                kind,
                metadata=metadata,
                plan_type=self._plan_from(metadata, price_id),
                subscription_ref=_field(obj, "id"),
                customer_ref=_ref(_field(obj, "customer")),
                plan_ref=price_id,
                payment_ref=_ref(_field(obj, "latest_invoice")),
            )

        logger.debug("Ignoring Stripe event type %s", event_type)
        return None

    def _plan_from(self, metadata: Any, price_id: Optional[str]) -> Optional[PlanType]:
        raw = _field(metadata, "plan_type")
        if raw:
            try:
                plan = PlanType(raw)
            except ValueError:
                logger.warning("Unknown plan_type in Stripe metadata: %s", raw)
            else:
                if plan.is_paid:
                    return plan
        return self.plan_for_price(price_id)

    @staticmethod
    def _event(
        event: Mapping[str, Any],
        kind: GatewayEventKind,
        *,
        metadata: Any,
        plan_type: Optional[PlanType],
        subscription_ref: Optional[str],
        customer_ref: Optional[str],
        plan_ref: Optional[str],
        payment_ref: Optional[str],
    ) -> GatewayEvent:
        created = _field(event, "created")
        occurred_at = (
            datetime.fromtimestamp(created, tz=timezone.utc)
            if created is not None
            else datetime.now(timezone.utc)
        )
        return GatewayEvent(
            event_id=_field(event, "id"),
            kind=kind,
            occurred_at=occurred_at,
            user_id=_field(metadata, "user_id"),
            plan_type=plan_type,
            subscription_ref=subscription_ref,
            customer_ref=customer_ref,
            plan_ref=plan_ref,
            payment_ref=payment_ref,
        )
