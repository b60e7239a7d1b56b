"""
Core dependencies for route protection and permission checking
"""

from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from supabase import Client

from app.config.permissions_config import Permission, Role
from app.core.access_control import AccessDecision, authorize
from app.core.errors import ForbiddenError, UnauthorizedError
from app.database.session import get_db
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.model_definitions.models import ModelDefinition
from app.modules.records.service import RecordService
from app.modules.users.schemas import CurrentUser
from app.modules.users.service import UserService

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is a 401 from our taxonomy rather than Starlette's 403
security = HTTPBearer(auto_error=False)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication required")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Verify the bearer token and map it to the local user record."""
    identity = auth_service.get_identity(token)
    return UserService(db).resolve_identity(identity)


def require_role(*roles: Role):
    """Factory function to create a role check dependency"""
    allowed = frozenset(roles)

    def check_role(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise ForbiddenError(
                f"Insufficient permissions. Required role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return current_user
    return check_role


@dataclass
class ModelAccess:
    definition: ModelDefinition
    decision: AccessDecision
    user: CurrentUser


def require_model_permission(action: Permission):
    """Factory for record endpoints: resolve the published model named in the path and authorize ``action`` on it."""
    def check_model_permission(
        model_name: str,
        current_user: CurrentUser = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> ModelAccess:
        definition = RecordService(db).resolve(model_name)
        decision = authorize(current_user.role, action, definition)
        return ModelAccess(definition=definition, decision=decision, user=current_user)
    return check_model_permission
