"""API router for user authentication."""

from fastapi import APIRouter, Depends, HTTPException, status

from dharma.core.dependencies import get_subscription_service, get_user_service
from dharma.domain.models.user import User
from dharma.presentation.api.dependencies import get_current_user
from dharma.presentation.api.schemas.user_schemas import (
    UserLoginRequest,
    UserLoginResponse,
    UserProfileResponse,
    UserRegisterRequest,
    UserResponse,
)
from dharma.services.subscription_service import SubscriptionService
from dharma.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        created_at=user.created_at,
    )


@router.post("/register", response_model=UserLoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: UserRegisterRequest,
    user_service: UserService = Depends(get_user_service),
) -> UserLoginResponse:
    """Register a new user and sign them in."""
    try:
        user = user_service.register(
            email=request.email,
            password=request.password,
            full_name=request.full_name,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return UserLoginResponse(
        access_token=user_service.create_token(user),
        user=_user_response(user),
    )


@router.post("/login", response_model=UserLoginResponse)
async def login(
    request: UserLoginRequest,
    user_service: UserService = Depends(get_user_service),
) -> UserLoginResponse:
    """Login and get access token."""
    user = user_service.authenticate(request.email, request.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return UserLoginResponse(
        access_token=user_service.create_token(user),
        user=_user_response(user),
    )


@router.get("/me", response_model=UserProfileResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> UserProfileResponse:
    """Get current user together with their access status."""
    snapshot = subscription_service.get_snapshot(current_user.id)
    return UserProfileResponse(
        id=current_user.id,
        email=current_user.email,
        full_name=current_user.full_name,
        has_active_access=snapshot.has_active_access,
        access_status=snapshot.status.value,
        created_at=current_user.created_at,
    )
