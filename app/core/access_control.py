"""
Per-model access control for record endpoints.

``authorize`` decides whether a role may perform an action on a model from the
model's own rbac block. ``check_ownership`` then scopes update/delete to the
record owner when the model declares an ownerField.

The ownership read and the mutation that follows it are separate statements,
so ownership can change in between. That window is accepted.
"""

from dataclasses import dataclass
from typing import Any
import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config.permissions_config import (
    OWNERSHIP_SCOPED_ACTIONS,
    Permission,
    Role,
    expand_permissions,
)
from app.core.errors import ForbiddenError, NotFoundError
from app.core.identifiers import ensure_column, ensure_table, quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    allow: bool
    requires_ownership_check: bool = False


def granted_permissions(role: Role, definition) -> frozenset:
    """Record actions ``role`` holds on ``definition``; unknown roles hold none."""
    if role is Role.ADMIN:
        return expand_permissions([Permission.ALL.value])
    rbac = definition.rbac or {}
    return expand_permissions(rbac.get(role.value, []))


def authorize(role: Role, action: Permission, definition) -> AccessDecision:
    if role is Role.ADMIN:
        return AccessDecision(allow=True)

    if action not in granted_permissions(role, definition):
        raise ForbiddenError(
            f"Insufficient permissions for {action.value} operation on {definition.name}",
            action=action.value,
            model=definition.name,
        )

    requires_check = action in OWNERSHIP_SCOPED_ACTIONS and bool(definition.owner_field)
    return AccessDecision(allow=True, requires_ownership_check=requires_check)


def check_ownership(db: Session, definition, record_id: Any, user, decision: AccessDecision) -> None:
    if not decision.requires_ownership_check or user.role is Role.ADMIN:
        return

    dialect = db.get_bind().dialect
    table = quote(dialect, ensure_table(definition.table_name))
    owner = ensure_column(definition.owner_field, definition.column_names)
    row = db.execute(
        text(f"SELECT {quote(dialect, owner)} AS owner FROM {table} WHERE {quote(dialect, 'id')} = :id"),
        {"id": record_id},
    ).mappings().first()

    if row is None:
        raise NotFoundError("Record not found")
    if row["owner"] is None or int(row["owner"]) != int(user.id):
        logger.info(
            "Ownership denied: user %s on %s record %s (owner %s)",
            user.id, definition.name, record_id, row["owner"],
        )
        raise ForbiddenError("Access denied: You can only access your own records")
