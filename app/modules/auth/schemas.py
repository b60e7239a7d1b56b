from pydantic import BaseModel, EmailStr
from typing import List, Optional

from app.config.permissions_config import Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    auth_id: str
    email: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None


class RegisterResponse(BaseModel):
    auth_id: str
    email: str
    message: str


class MeResponse(BaseModel):
    id: int
    email: Optional[str] = None
    role: Role
    permissions: List[str]
