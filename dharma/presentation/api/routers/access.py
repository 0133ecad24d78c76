from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....core.dependencies import get_subscription_service
from ....domain import guard
from ....domain.models import User
from ....services.subscription_service import SubscriptionService
from ...api.dependencies import get_optional_user
from ...api.schemas.access_schemas import RouteDecisionResponse

router = APIRouter(prefix="/api/access", tags=["Access"])


@router.get("/route", response_model=RouteDecisionResponse)
async def route_decision(
    path: str = Query(..., min_length=1),
    user: Optional[User] = Depends(get_optional_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> RouteDecisionResponse:
    """Tell the client whether to render ``path`` or where to redirect."""
    snapshot = subscription_service.get_snapshot(user.id) if user else None
    state = guard.guard_input_for(
        path,
        signed_in=user is not None,
        record=snapshot.record if snapshot else None,
        now=snapshot.now if snapshot else subscription_service.clock.now(),
    )
    decision = guard.evaluate(state)
    return RouteDecisionResponse(
        path=guard.normalize_path(path),
        category=state.category.value,
        action=decision.action.value,
        target=decision.target,
        reason=decision.reason,
    )
