"""
Roles and Permissions Configuration
Roles are a fixed set. Per-model record permissions are authored on each model
definition (its ``rbac`` block); this module defines the vocabulary those
blocks may use and the system-level capabilities of each role.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, List


class Role(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    VIEWER = "Viewer"


class Permission(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ALL = "all"


# Actions a record endpoint can request; "all" is only a grant, never a request
RECORD_ACTIONS: FrozenSet[Permission] = frozenset({
    Permission.CREATE,
    Permission.READ,
    Permission.UPDATE,
    Permission.DELETE,
})

# Actions that are scoped to the record owner when the model has an ownerField
OWNERSHIP_SCOPED_ACTIONS: FrozenSet[Permission] = frozenset({
    Permission.UPDATE,
    Permission.DELETE,
})

# Roles allowed to publish a model definition
PUBLISH_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN, Role.MANAGER})

# System-level resources and what each role may do with them
MODULES = {
    "models": {
        "resource": "models",
        "actions": ["create", "read", "update", "delete", "publish"],
        "description": "Model definition management"
    },
    "records": {
        "resource": "records",
        "actions": ["create", "read", "update", "delete"],
        "description": "Records of published models (further scoped by each model's rbac)"
    },
    "users": {
        "resource": "users",
        "actions": ["read", "update"],
        "description": "User role management"
    },
}

ROLE_TYPES = {
    Role.ADMIN: {
        "permissions": {
            "models": ["create", "read", "update", "delete", "publish"],
            "records": ["create", "read", "update", "delete"],
            "users": ["read", "update"],
        },
        "description": "Full access to every model, record and user"
    },
    Role.MANAGER: {
        "permissions": {
            "models": ["create", "read", "update", "delete", "publish"],
            "records": ["create", "read", "update", "delete"],
        },
        "description": "Can author and publish models; record access follows each model's rbac"
    },
    Role.VIEWER: {
        "permissions": {
            "models": ["create", "read", "update", "delete"],
            "records": ["create", "read", "update", "delete"],
        },
        "description": "Can author draft models; record access follows each model's rbac"
    },
}


def expand_permissions(granted: Iterable[str]) -> FrozenSet[Permission]:
    """Expand a stored permission list, resolving "all" to every record action."""
    result = set()
    for name in granted:
        try:
            perm = Permission(name)
        except ValueError:
            continue
        if perm is Permission.ALL:
            result.update(RECORD_ACTIONS)
        else:
            result.add(perm)
    return frozenset(result)


def get_permission_matrix() -> Dict[str, List[Dict]]:
    """
    Returns a dictionary describing system-level permissions per role
    Format: {
        "permissions": [
            {"name": "models:create", "resource": "models", "action": "create", "description": "..."},
            ...
        ],
        "roles": [
            {"name": "Admin", "description": "...", "permissions": ["models:create", ...]},
            ...
        ]
    }
    """
    permissions = []
    roles = []

    for module_config in MODULES.values():
        resource = module_config["resource"]
        for action in module_config["actions"]:
            permissions.append({
                "name": f"{resource}:{action}",
                "resource": resource,
                "action": action,
                "description": f"{action.capitalize()} {resource}"
            })

    for role, role_config in ROLE_TYPES.items():
        role_permissions = []
        for resource, actions in role_config["permissions"].items():
            role_permissions.extend(f"{resource}:{action}" for action in actions)
        roles.append({
            "name": role.value,
            "description": role_config["description"],
            "permissions": sorted(role_permissions)
        })

    return {
        "permissions": permissions,
        "roles": roles
    }


def permissions_for_role(role: Role) -> List[str]:
    for entry in PERMISSION_MATRIX["roles"]:
        if entry["name"] == role.value:
            return entry["permissions"]
    return []


PERMISSION_MATRIX = get_permission_matrix()
