"""
Route access guard as a pure decision table.

Every navigation is reduced to a small tuple of tri-state inputs plus the
target route's category. ``evaluate`` applies the rules in priority order
and the first match wins:

1. signed out, target not public            -> landing
2. signed in, no record                     -> onboarding (public/auth-only allowed)
3. onboarding incomplete                    -> onboarding (public and onboarding allowed)
4. onboarded, no active access              -> pricing (public/auth-only allowed)
5. active access, target is a pre-access    -> home
6. otherwise                                -> render

Any input still loading yields ``loading`` and never a redirect.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from . import lifecycle
from .models.subscription import SubscriptionRecord

LANDING_ROUTE = "/"
ONBOARDING_ROUTE = "/onboarding"
PRICING_ROUTE = "/pricing"
HOME_ROUTE = "/dashboard"

PUBLIC_ROUTES = frozenset({"/", "/landing", "/auth", "/privacy-policy", "/terms-of-service"})
AUTH_ONLY_ROUTES = frozenset(
    {"/onboarding", "/start-free-trial", "/start-trial", "/pricing", "/payment-success"}
)
PRE_ACCESS_ROUTES = frozenset({"/onboarding", "/start-free-trial", "/start-trial"})


class RouteCategory(str, Enum):
    PUBLIC = "public"
    AUTH_ONLY = "auth_only"
    PROTECTED = "protected"


class Tristate(str, Enum):
    UNKNOWN = "unknown"
    NO = "no"
    YES = "yes"

    @classmethod
    def of(cls, value: Optional[bool]) -> "Tristate":
        if value is None:
            return cls.UNKNOWN
        return cls.YES if value else cls.NO


class GuardAction(str, Enum):
    LOADING = "loading"
    RENDER = "render"
    REDIRECT = "redirect"


def normalize_path(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def classify_route(path: str) -> RouteCategory:
    path = normalize_path(path)
    if path in PUBLIC_ROUTES:
        return RouteCategory.PUBLIC
    if path in AUTH_ONLY_ROUTES:
        return RouteCategory.AUTH_ONLY
    return RouteCategory.PROTECTED


@dataclass(frozen=True, slots=True)
class GuardInput:
    path: str
    signed_in: Tristate
    record_exists: Tristate = Tristate.UNKNOWN
    onboarding_complete: Tristate = Tristate.UNKNOWN
    has_active_access: Tristate = Tristate.UNKNOWN
    is_paid_subscriber: Tristate = Tristate.NO

    @property
    def category(self) -> RouteCategory:
        return classify_route(self.path)


@dataclass(frozen=True, slots=True)
class GuardDecision:
    action: GuardAction
    target: Optional[str] = None
    reason: str = ""

    @classmethod
    def loading(cls, reason: str) -> "GuardDecision":
        return cls(GuardAction.LOADING, None, reason)

    @classmethod
    def render(cls, reason: str = "allowed") -> "GuardDecision":
        return cls(GuardAction.RENDER, None, reason)

    @classmethod
    def redirect(cls, target: str, reason: str) -> "GuardDecision":
        return cls(GuardAction.REDIRECT, target, reason)


def _is_pre_access(path: str, paid_subscriber: bool) -> bool:
    if path in PRE_ACCESS_ROUTES:
        return True
    return path == PRICING_ROUTE and paid_subscriber


def evaluate(state: GuardInput) -> GuardDecision:
    """Decide what to do with a navigation to ``state.path``."""
    path = normalize_path(state.path)
    category = classify_route(path)

    if state.signed_in is Tristate.UNKNOWN:
        return GuardDecision.loading("auth_loading")

    if state.signed_in is Tristate.NO:
        if category is not RouteCategory.PUBLIC:
            return GuardDecision.redirect(LANDING_ROUTE, "signed_out")
        return GuardDecision.render("public")

    if state.record_exists is Tristate.UNKNOWN:
        return GuardDecision.loading("subscription_loading")

    if state.record_exists is Tristate.NO:
        if category is RouteCategory.PROTECTED:
            return GuardDecision.redirect(ONBOARDING_ROUTE, "no_subscription")
        return GuardDecision.render("pre_onboarding")

    if state.onboarding_complete is Tristate.UNKNOWN:
        return GuardDecision.loading("subscription_loading")

    if state.onboarding_complete is Tristate.NO:
        if path != ONBOARDING_ROUTE and category is not RouteCategory.PUBLIC:
            return GuardDecision.redirect(ONBOARDING_ROUTE, "onboarding_incomplete")
        return GuardDecision.render("onboarding")

    if state.has_active_access is Tristate.UNKNOWN:
        return GuardDecision.loading("subscription_loading")

    if state.has_active_access is Tristate.NO:
        if category is RouteCategory.PROTECTED:
            return GuardDecision.redirect(PRICING_ROUTE, "access_expired")
        return GuardDecision.render("upgrade")

    if _is_pre_access(path, state.is_paid_subscriber is Tristate.YES):
        return GuardDecision.redirect(HOME_ROUTE, "already_active")

    return GuardDecision.render()


def guard_input_for(
    path: str,
    signed_in: Optional[bool],
    record: Optional[SubscriptionRecord],
    now: datetime,
    record_loaded: bool = True,
) -> GuardInput:
    """Build a guard input from resolved auth and subscription state."""
    if not signed_in or not record_loaded:
        return GuardInput(path=path, signed_in=Tristate.of(signed_in))
    if record is None:
        return GuardInput(path=path, signed_in=Tristate.YES, record_exists=Tristate.NO)
    return GuardInput(
        path=path,
        signed_in=Tristate.YES,
        record_exists=Tristate.YES,
        onboarding_complete=Tristate.of(record.has_completed_onboarding),
        has_active_access=Tristate.of(lifecycle.has_active_access(record, now)),
        is_paid_subscriber=Tristate.of(lifecycle.is_paid_subscriber(record)),
    )
