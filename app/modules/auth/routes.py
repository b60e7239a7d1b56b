from fastapi import APIRouter, Depends
from app.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, MeResponse
)
from app.modules.auth.service import AuthService
from app.core.dependencies import get_auth_service, get_bearer_token, get_current_user
from app.config.permissions_config import permissions_for_role
from app.modules.users.schemas import CurrentUser

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Create an identity with the auth provider"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Exchange email and password for a bearer token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service)
):
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
async def get_me(current_user: CurrentUser = Depends(get_current_user)):
    """Current user, role and system-level permissions (for frontend UI)."""
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        role=current_user.role,
        permissions=permissions_for_role(current_user.role),
    )
