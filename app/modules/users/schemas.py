from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from app.config.permissions_config import Role


class CurrentUser(BaseModel):
    """Identity attached to every authenticated request."""
    id: int
    role: Role
    email: Optional[str] = None
    auth_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class UserRoleUpdate(BaseModel):
    role: Role


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: Role
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
