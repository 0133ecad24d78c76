from fastapi import APIRouter, Depends, HTTPException, status

from ....core.dependencies import get_profile_service
from ....domain.models import User
from ....services.profile_service import ProfileService
from ...api.dependencies import require_active_access
from ...api.schemas.profile_schemas import AddPointsRequest, ProfileResponse

router = APIRouter(prefix="/api/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(
    user: User = Depends(require_active_access),
    profile_service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    return ProfileResponse.from_profile(profile_service.get_profile(user.id))


@router.post("/check-in", response_model=ProfileResponse)
async def check_in(
    user: User = Depends(require_active_access),
    profile_service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Record today's visit and update streaks."""
    return ProfileResponse.from_profile(profile_service.check_in(user.id))


@router.post("/points", response_model=ProfileResponse)
async def add_points(
    payload: AddPointsRequest,
    user: User = Depends(require_active_access),
    profile_service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    try:
        profile = profile_service.add_points(user.id, payload.points)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ProfileResponse.from_profile(profile)
