from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..domain.clock import Clock, SystemClock
from ..domain.errors import StoreUnavailableError
from ..infrastructure.persistence.sqlite import SQLiteDatabase
from ..infrastructure.repositories.payment_event_repository import PaymentEventRepository
from ..infrastructure.repositories.profile_repository import ProfileRepository
from ..infrastructure.repositories.subscription_repository import SubscriptionRepository
from ..infrastructure.repositories.user_repository import UserRepository
from ..presentation.api.routers import access as access_router
from ..presentation.api.routers import profile as profile_router
from ..presentation.api.routers import subscription as subscription_router
from ..presentation.api.routers import users as users_router
from ..presentation.api.routers import webhooks as webhooks_router
from ..services.profile_service import ProfileService
from ..services.stripe_service import StripeService
from ..services.subscription_service import SubscriptionService
from ..services.subscription_state import SubscriptionStateCache
from ..services.user_service import UserService
from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(title="Dharma Subscription Service", lifespan=_create_lifespan(settings, clock))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(users_router.router)
    app.include_router(subscription_router.router)
    app.include_router(access_router.router)
    app.include_router(profile_router.router)
    app.include_router(webhooks_router.router)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Service temporarily unavailable. Please try again."},
        )

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        container: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        return {"ok": True, "stripe": container.stripe_service.is_configured}

    return app


def build_container(settings: Settings, clock: Optional[Clock] = None) -> ApplicationContainer:
    clock = clock or SystemClock()
    database = SQLiteDatabase(settings.database_path)
    subscription_repository = SubscriptionRepository(database)
    cache = SubscriptionStateCache(subscription_repository)
    stripe_service = StripeService(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        plan_price_ids=settings.plan_price_ids,
        frontend_base_url=settings.frontend_base_url,
    )
    subscription_service = SubscriptionService(
        store=subscription_repository,
        processed_events=PaymentEventRepository(database),
        cache=cache,
        clock=clock,
        renewal_canceller=stripe_service.cancel_renewal if stripe_service.is_configured else None,
    )
    user_service = UserService(
        user_repository=UserRepository(database),
        jwt_secret=settings.jwt_secret,
        jwt_algorithm=settings.jwt_algorithm,
        jwt_expiration_hours=settings.jwt_expiration_hours,
    )
    profile_service = ProfileService(
        ProfileRepository(database),
        clock=clock,
        civil_offset_minutes=settings.civil_offset_minutes,
    )
    return ApplicationContainer(
        settings=settings,
        clock=clock,
        database=database,
        subscription_cache=cache,
        subscription_service=subscription_service,
        stripe_service=stripe_service,
        user_service=user_service,
        profile_service=profile_service,
    )


def _create_lifespan(settings: Settings, clock: Optional[Clock]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        if settings.jwt_secret == "change-me":
            logger.warning("JWT_SECRET is not set; using an insecure default")
        if not settings.stripe_webhook_secret:
            logger.warning("STRIPE_WEBHOOK_SECRET is not set; webhook deliveries will be rejected")

        container = build_container(settings, clock)
        app.state.container = container  # type: ignore[attr-defined]
        logger.info("Subscription service ready (database %s)", settings.database_path)

        try:
            yield
        finally:
            container.subscription_cache.clear()

    return lifespan
