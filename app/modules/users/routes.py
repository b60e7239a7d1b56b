from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.config.permissions_config import Role
from app.core.dependencies import require_role
from app.database.session import get_db
from app.modules.users.schemas import CurrentUser, UserResponse, UserRoleUpdate
from app.modules.users.service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("", response_model=List[UserResponse])
async def list_users(
    limit: int = 10,
    offset: int = 0,
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """List local users (Admin only)"""
    return service.list_users(limit=limit, offset=offset)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
    service: UserService = Depends(get_user_service)
):
    return UserResponse.model_validate(service.get_user(user_id))


@router.put("/{user_id}/role", response_model=UserResponse)
async def set_user_role(
    user_id: int,
    body: UserRoleUpdate,
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
    service: UserService = Depends(get_user_service)
):
    """Assign Admin, Manager or Viewer to a user"""
    return service.set_role(user_id, body.role)
