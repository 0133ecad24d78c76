"""Domain models for the Dharma application."""

from .payment_event import GatewayEvent, GatewayEventKind
from .profile import Profile
from .subscription import DeactivationReason, PlanType, SubscriptionRecord
from .user import User

__all__ = [
    "DeactivationReason",
    "GatewayEvent",
    "GatewayEventKind",
    "PlanType",
    "Profile",
    "SubscriptionRecord",
    "User",
]
