"""Service for subscription lifecycle transitions and gateway reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..domain import lifecycle
from ..domain.clock import Clock, SystemClock, ensure_aware
from ..domain.errors import InvalidTransitionError, SubscriptionNotFoundError
from ..domain.lifecycle import AccessStatus
from ..domain.models.payment_event import GatewayEvent, GatewayEventKind
from ..domain.models.subscription import (
    TRIAL_LENGTH,
    DeactivationReason,
    PlanType,
    SubscriptionRecord,
    paid_window,
)
from ..domain.ports.persistence import ProcessedEventStore, SubscriptionStore
from .subscription_state import SubscriptionStateCache

logger = logging.getLogger(__name__)

_REVOCATION_REASONS = {
    GatewayEventKind.CANCELLED: DeactivationReason.CANCELLED,
    GatewayEventKind.EXPIRED: DeactivationReason.EXPIRED,
    GatewayEventKind.HALTED: DeactivationReason.PAYMENT_FAILED,
}


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True, slots=True)
class SubscriptionSnapshot:
    """A record together with every access predicate evaluated at ``now``."""

    record: Optional[SubscriptionRecord]
    now: datetime
    status: AccessStatus
    has_active_access: bool
    is_trial_expired: bool
    is_expired: bool
    is_paid_subscriber: bool
    is_cancelled: bool
    days_remaining: int

    @property
    def message(self) -> str:
        return lifecycle.status_message(self.status)


class SubscriptionService:
    """Applies user and gateway driven transitions to subscription records."""

    def __init__(
        self,
        store: SubscriptionStore,
        processed_events: ProcessedEventStore,
        cache: Optional[SubscriptionStateCache] = None,
        clock: Optional[Clock] = None,
        renewal_canceller: Optional[Callable[[str], Any]] = None,
    ):
        self.store = store
        self.processed_events = processed_events
        self.cache = cache or SubscriptionStateCache(store)
        self.clock = clock or SystemClock()
        self.renewal_canceller = renewal_canceller

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_aware(now) if now is not None else self.clock.now()

    def _require(self, user_id: str) -> SubscriptionRecord:
        record = self.store.get_by_user(user_id)
        if record is None:
            raise SubscriptionNotFoundError(user_id)
        return record

    def _write(self, user_id: str, **changes: Any) -> SubscriptionRecord:
        return self.cache.put(self.store.upsert(user_id, **changes))

    # Reads ------------------------------------------------------------------
    def get_user_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Get the cached subscription record for a user."""
        return self.cache.get(user_id)

    def has_active_access(self, user_id: str, now: Optional[datetime] = None) -> bool:
        return lifecycle.has_active_access(self.cache.get(user_id), self._now(now))

    def get_snapshot(self, user_id: str, now: Optional[datetime] = None) -> SubscriptionSnapshot:
        """
        Evaluate every access predicate for a user.

        Args:
            user_id: User ID
            now: Instant to evaluate at, defaults to the service clock

        Returns:
            SubscriptionSnapshot, with ``record`` None when the user has none
        """
        now = self._now(now)
        record = self.cache.get(user_id)
        return SubscriptionSnapshot(
            record=record,
            now=now,
            status=lifecycle.access_status(record, now),
            has_active_access=lifecycle.has_active_access(record, now),
            is_trial_expired=record is not None and lifecycle.is_trial_expired(record, now),
            is_expired=record is None or lifecycle.is_expired(record, now),
            is_paid_subscriber=lifecycle.is_paid_subscriber(record),
            is_cancelled=lifecycle.is_cancelled(record),
            days_remaining=lifecycle.days_remaining(record, now),
        )

    # User-driven mutations ----------------------------------------------------
    def create_trial(self, user_id: str, now: Optional[datetime] = None) -> SubscriptionRecord:
        """
        Start the 7-day free trial for a user.

        Calling this again for a user who already has a record returns the
        existing record untouched, so duplicate submissions never reset the
        trial window.
        """
        candidate = SubscriptionRecord.new_trial(user_id, self._now(now))
        record = self.store.create_if_absent(candidate)
        if record.trial_start == candidate.trial_start and record.plan_type == PlanType.TRIAL:
            logger.info("Trial started for user %s until %s", user_id, record.trial_end.isoformat())
        return self.cache.put(record)

    def complete_onboarding(self, user_id: str) -> SubscriptionRecord:
        """
        Mark onboarding complete.

        Raises:
            SubscriptionNotFoundError: If the user has no record yet
        """
        record = self._require(user_id)
        if record.has_completed_onboarding:
            return self.cache.put(record)
        return self._write(user_id, has_completed_onboarding=True)

    def activate_paid_plan(
        self,
        user_id: str,
        plan_type: PlanType,
        now: Optional[datetime] = None,
        *,
        customer_ref: Optional[str] = None,
        subscription_ref: Optional[str] = None,
        plan_ref: Optional[str] = None,
        payment_ref: Optional[str] = None,
    ) -> SubscriptionRecord:
        """
        Optimistically grant a paid window right after checkout reports success.

        A window already confirmed by the gateway for the same plan is kept
        as is, so a late optimistic write cannot overwrite it.

        Raises:
            SubscriptionNotFoundError: If the user has no record yet
            InvalidTransitionError: If ``plan_type`` is not a paid plan
        """
        plan_type = PlanType(plan_type)
        if not plan_type.is_paid:
            raise InvalidTransitionError("Cannot activate the trial plan as a paid plan")

        now = self._now(now)
        record = self._require(user_id)

        if (
            record.confirmed_by_gateway
            and record.is_active
            and record.plan_type == plan_type
            and record.paid_end is not None
            and record.paid_end >= now
        ):
            logger.info(
                "Skipping optimistic %s activation for user %s: gateway already confirmed until %s",
                plan_type.value,
                user_id,
                record.paid_end.isoformat(),
            )
            return self.cache.put(record)

        paid_start, paid_end = paid_window(plan_type, now)
        changes: Dict[str, Any] = {
            "plan_type": plan_type,
            "paid_start": paid_start,
            "paid_end": paid_end,
            "is_active": True,
            "deactivation_reason": None,
            "confirmed_by_gateway": False,
        }
        changes.update(
            _refs(
                customer_ref=customer_ref,
                subscription_ref=subscription_ref,
                plan_ref=plan_ref,
                payment_ref=payment_ref,
            )
        )
        updated = self._write(user_id, **changes)
        logger.info(
            "Activated %s plan for user %s until %s (optimistic)",
            plan_type.value,
            user_id,
            paid_end.isoformat(),
        )
        return updated

    def cancel(self, user_id: str) -> bool:
        """
        Cancel a paid plan.

        Returns:
            True if cancelled, False for a trial (no mutation)

        Raises:
            SubscriptionNotFoundError: If the user has no record
            PaymentGatewayError: If renewal could not be stopped at the gateway
        """
        record = self._require(user_id)
        if record.plan_type == PlanType.TRIAL:
            return False

        if record.external_subscription_ref and self.renewal_canceller is not None:
            self.renewal_canceller(record.external_subscription_ref)

        self._write(user_id, is_active=False, deactivation_reason=DeactivationReason.CANCELLED)
        logger.info("Subscription cancelled for user %s", user_id)
        return True

    # Gateway-driven mutations -------------------------------------------------
    def reconcile_external_event(self, event: GatewayEvent) -> ReconcileOutcome:
        """
        Apply a verified gateway event to the matching record.

        Safe under at-least-once delivery: event ids already applied are
        skipped, and activations recompute the window from the event's own
        timestamp rather than extending the current one.
        """
        if self.processed_events.has_processed(event.event_id):
            logger.info("Skipping duplicate gateway event %s (%s)", event.event_id, event.kind.value)
            return ReconcileOutcome.DUPLICATE

        record = self._resolve_record(event)
        user_id = record.user_id if record else event.user_id

        if event.kind.grants_access:
            outcome = self._apply_activation(event, user_id, record)
        elif event.kind.revokes_access:
            outcome = self._apply_revocation(event, record)
        else:
            logger.info(
                "Gateway reported %s for user %s (payment %s); awaiting retry",
                event.kind.value,
                user_id,
                event.payment_ref,
            )
            outcome = ReconcileOutcome.IGNORED

        self.processed_events.mark_processed(
            event.event_id, event.kind.value, user_id, self.clock.now()
        )
        return outcome

    def _resolve_record(self, event: GatewayEvent) -> Optional[SubscriptionRecord]:
        if event.user_id:
            record = self.store.get_by_user(event.user_id)
            if record is not None:
                return record
        if event.subscription_ref:
            record = self.store.get_by_external_subscription_ref(event.subscription_ref)
            if record is not None:
                return record
        if event.customer_ref:
            return self.store.get_by_external_customer_ref(event.customer_ref)
        return None

    def _apply_activation(
        self,
        event: GatewayEvent,
        user_id: Optional[str],
        record: Optional[SubscriptionRecord],
    ) -> ReconcileOutcome:
        if user_id is None:
            logger.error(
                "No user found for gateway event %s (subscription %s, customer %s)",
                event.event_id,
                event.subscription_ref,
                event.customer_ref,
            )
            return ReconcileOutcome.IGNORED

        plan_type = event.plan_type
        if plan_type is None and record is not None and record.plan_type.is_paid:
            plan_type = record.plan_type
        if plan_type is None or not plan_type.is_paid:
            logger.error("Gateway event %s carries no paid plan; ignoring", event.event_id)
            return ReconcileOutcome.IGNORED

        occurred_at = ensure_aware(event.occurred_at)
        if (
            record is not None
            and record.confirmed_by_gateway
            and record.paid_start is not None
            and occurred_at < record.paid_start
        ):
            logger.warning(
                "Ignoring stale %s event %s for user %s: confirmed window starts %s",
                event.kind.value,
                event.event_id,
                user_id,
                record.paid_start.isoformat(),
            )
            return ReconcileOutcome.IGNORED

        paid_start, paid_end = paid_window(plan_type, occurred_at)
        changes: Dict[str, Any] = {
            "plan_type": plan_type,
            "paid_start": paid_start,
            "paid_end": paid_end,
            "is_active": True,
            "deactivation_reason": None,
            "confirmed_by_gateway": True,
        }
        changes.update(
            _refs(
                customer_ref=event.customer_ref,
                subscription_ref=event.subscription_ref,
                plan_ref=event.plan_ref,
                payment_ref=event.payment_ref,
            )
        )
        if record is None:
            # Paid before the app created a trial row: start one at purchase time.
            changes.update(
                trial_start=occurred_at,
                trial_end=occurred_at + TRIAL_LENGTH,
                has_completed_onboarding=True,
            )

        self._write(user_id, **changes)
        logger.info(
            "Gateway %s applied for user %s: %s until %s",
            event.kind.value,
            user_id,
            plan_type.value,
            paid_end.isoformat(),
        )
        return ReconcileOutcome.APPLIED

    def _apply_revocation(
        self, event: GatewayEvent, record: Optional[SubscriptionRecord]
    ) -> ReconcileOutcome:
        if record is None:
            logger.error(
                "No subscription found for %s event %s (subscription %s)",
                event.kind.value,
                event.event_id,
                event.subscription_ref,
            )
            return ReconcileOutcome.IGNORED

        if (
            event.subscription_ref
            and record.external_subscription_ref
            and event.subscription_ref != record.external_subscription_ref
        ):
            logger.warning(
                "Ignoring %s for superseded subscription %s (user %s now on %s)",
                event.kind.value,
                event.subscription_ref,
                record.user_id,
                record.external_subscription_ref,
            )
            return ReconcileOutcome.IGNORED

        self._write(
            record.user_id,
            is_active=False,
            deactivation_reason=_REVOCATION_REASONS[event.kind],
        )
        logger.info("Gateway %s deactivated subscription for user %s", event.kind.value, record.user_id)
        return ReconcileOutcome.APPLIED


def _refs(**refs: Optional[str]) -> Dict[str, str]:
    names = {
        "customer_ref": "external_customer_ref",
        "subscription_ref": "external_subscription_ref",
        "plan_ref": "external_plan_ref",
        "payment_ref": "external_payment_ref",
    }
    return {names[key]: value for key, value in refs.items() if value}
