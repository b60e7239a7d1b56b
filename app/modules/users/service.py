from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.config.permissions_config import Role
from app.core.errors import AppError, ConflictError, InternalError, NotFoundError
from app.database.session import utcnow
from app.modules.users.models import User
from app.modules.users.schemas import CurrentUser, UserResponse

logger = logging.getLogger(__name__)


def is_super_user(identity: Dict[str, Any]) -> bool:
    """Super users are flagged in app_metadata, which only the server can set."""
    app_metadata = identity.get("app_metadata") or {}
    return app_metadata.get("type") == "super_user"


def _default_role() -> Role:
    try:
        return Role(settings.default_user_role)
    except ValueError:
        return Role.VIEWER


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def resolve_identity(self, identity: Dict[str, Any]) -> CurrentUser:
        """Map an authenticated identity to its local user, creating it on first sight."""
        try:
            user = self.db.execute(
                select(User).where(User.auth_id == str(identity["id"]))
            ).scalar_one_or_none()
            if user is None:
                user = self._create_from_identity(identity)
            role = Role.ADMIN if is_super_user(identity) else Role(user.role)
            return CurrentUser(id=user.id, role=role, email=user.email, auth_id=user.auth_id)
        except AppError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error resolving user identity: {e}")
            raise InternalError("Failed to resolve user")

    def _create_from_identity(self, identity: Dict[str, Any]) -> User:
        metadata = identity.get("user_metadata") or {}
        user = User(
            auth_id=str(identity["id"]),
            email=identity.get("email") or f"{identity['id']}@unknown",
            full_name=metadata.get("full_name"),
            role=_default_role().value,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent first request for the same identity, or an email held by another identity
            self.db.rollback()
            existing = self.db.execute(
                select(User).where(User.auth_id == str(identity["id"]))
            ).scalar_one_or_none()
            if existing is None:
                logger.warning("Email of identity %s already belongs to another user", identity["id"])
                raise ConflictError("A user with this email already exists")
            return existing
        self.db.refresh(user)
        logger.info("Registered local user %s for identity %s", user.id, user.auth_id)
        return user

    def list_users(self, limit: int = 10, offset: int = 0) -> List[UserResponse]:
        try:
            rows = self.db.execute(
                select(User).order_by(User.created_at.desc()).limit(limit).offset(offset)
            ).scalars().all()
            return [UserResponse.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error listing users: {e}")
            raise InternalError("Failed to fetch users")

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def set_role(self, user_id: int, role: Role) -> UserResponse:
        user = self.get_user(user_id)
        try:
            user.role = role.value
            user.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(user)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating role for user {user_id}: {e}")
            raise InternalError("Failed to update user role")
        logger.info("User %s role set to %s", user_id, role.value)
        return UserResponse.model_validate(user)
