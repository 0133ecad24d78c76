from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...core.dependencies import get_subscription_service, get_user_service
from ...domain import guard
from ...domain.models.user import User
from ...services.subscription_service import SubscriptionService
from ...services.user_service import UserService

_bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials], user_service: UserService
) -> Optional[User]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    payload = user_service.verify_token(credentials.credentials)
    if not payload or "sub" not in payload:
        return None
    return user_service.get_by_id(payload["sub"])


def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    user_service: UserService = Depends(get_user_service),
) -> Optional[User]:
    """Current user, or None when the request is anonymous or the token is bad."""
    return _resolve_user(credentials, user_service)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    user_service: UserService = Depends(get_user_service),
) -> User:
    """Dependency to get current authenticated user."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )

    user = _resolve_user(credentials, user_service)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user


def require_active_access(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> User:
    """
    Dependency for protected content.

    Applies the same decision as a navigation to the home route, so a user
    who has not finished onboarding is refused even while their trial runs.
    """
    snapshot = subscription_service.get_snapshot(user.id)
    decision = guard.evaluate(
        guard.guard_input_for(guard.HOME_ROUTE, True, snapshot.record, snapshot.now)
    )
    if decision.action is not guard.GuardAction.RENDER:
        message = snapshot.message
        if decision.reason == "onboarding_incomplete":
            message = "Finish onboarding to continue."
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "status": snapshot.status.value,
                "reason": decision.reason,
                "message": message,
                "redirect": decision.target,
            },
        )
    return user
