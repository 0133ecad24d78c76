"""Gateway-neutral payment events consumed by the reconciler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .subscription import PlanType


class GatewayEventKind(str, Enum):
    ACTIVATED = "activated"
    CHARGED = "charged"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    HALTED = "halted"
    PAYMENT_FAILED = "payment_failed"
    PENDING = "pending"

    @property
    def grants_access(self) -> bool:
        return self in (GatewayEventKind.ACTIVATED, GatewayEventKind.CHARGED)

    @property
    def revokes_access(self) -> bool:
        return self in (
            GatewayEventKind.CANCELLED,
            GatewayEventKind.EXPIRED,
            GatewayEventKind.HALTED,
        )


@dataclass(frozen=True, slots=True)
class GatewayEvent:
    """A verified event from the payment gateway, already correlated to our ids."""

    event_id: str
    kind: GatewayEventKind
    occurred_at: datetime
    user_id: Optional[str] = None
    plan_type: Optional[PlanType] = None
    subscription_ref: Optional[str] = None
    customer_ref: Optional[str] = None
    plan_ref: Optional[str] = None
    payment_ref: Optional[str] = None
