from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import (
    get_current_principal, get_current_principal_optional, rate_limit_check
)
from ...repositories import UserRepository
from ...services.auth_service import AuthService
from ...services.identity import Principal
from ...schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse, RefreshTokenRequest
)
from ...schemas.common import ApiResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED
)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    registered_by: Optional[Principal] = Depends(get_current_principal_optional),
    _: None = Depends(rate_limit_check)
):
    """Register a new account."""
    auth_service = AuthService(db)
    user = auth_service.register_user(user_data, registered_by)
    return ApiResponse(
        message="Registration successful",
        data=UserResponse.model_validate(user)
    )

@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return access tokens."""
    auth_service = AuthService(db)
    return ApiResponse(
        message="Login successful",
        data=auth_service.authenticate_user(login_data)
    )

@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Refresh access token using refresh token."""
    auth_service = AuthService(db)
    return ApiResponse(
        message="Token refreshed",
        data=auth_service.refresh_access_token(refresh_data.refresh_token)
    )

@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """Logout user by revoking refresh token."""
    auth_service = AuthService(db)
    success = auth_service.logout_user(refresh_data.refresh_token)

    return ApiResponse(message="Successfully logged out" if success else "Logout completed")

@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Get current user information."""
    user = UserRepository(db).find_by_id(principal.subject_id)
    return ApiResponse(
        message="User retrieved successfully",
        data=UserResponse.model_validate(user)
    )
