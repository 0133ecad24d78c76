from dataclasses import dataclass

from ..domain.clock import Clock
from ..infrastructure.persistence.sqlite import SQLiteDatabase
from ..services.profile_service import ProfileService
from ..services.stripe_service import StripeService
from ..services.subscription_service import SubscriptionService
from ..services.subscription_state import SubscriptionStateCache
from ..services.user_service import UserService
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    clock: Clock
    database: SQLiteDatabase
    subscription_cache: SubscriptionStateCache
    subscription_service: SubscriptionService
    stripe_service: StripeService
    user_service: UserService
    profile_service: ProfileService
