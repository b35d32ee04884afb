"""
Canonical role definitions for Storefleet.

Two independent scopes:
- Tenant roles: granted per location through a Membership row
- Platform roles: cross-tenant staff capabilities (admin > support > viewer)

A user acting on a tenant is described by a single effective role. Platform
roles take precedence over tenant roles when both are present.
"""

from enum import Enum
from typing import FrozenSet, Optional, Union


class Role(str, Enum):
    """
    All roles known to the engine.

    Keep in sync with the identity provider role configuration.
    """
    # Tenant-scoped roles
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"

    # Platform-scoped roles
    PLATFORM_ADMIN = "platform_admin"
    PLATFORM_SUPPORT = "platform_support"
    PLATFORM_VIEWER = "platform_viewer"


class RoleScope(str, Enum):
    """Whether a role applies to one tenant or to the whole platform."""
    TENANT = "tenant"
    PLATFORM = "platform"


ROLE_SCOPES = {
    Role.OWNER: RoleScope.TENANT,
    Role.ADMIN: RoleScope.TENANT,
    Role.MANAGER: RoleScope.TENANT,
    Role.MEMBER: RoleScope.TENANT,
    Role.VIEWER: RoleScope.TENANT,
    Role.PLATFORM_ADMIN: RoleScope.PLATFORM,
    Role.PLATFORM_SUPPORT: RoleScope.PLATFORM,
    Role.PLATFORM_VIEWER: RoleScope.PLATFORM,
}

PLATFORM_ROLES: FrozenSet[Role] = frozenset(
    role for role, scope in ROLE_SCOPES.items() if scope == RoleScope.PLATFORM
)

# Roles allowed to open, close, archive or restore a location
STATUS_CHANGE_ROLES: FrozenSet[Role] = frozenset({
    Role.PLATFORM_ADMIN,
    Role.OWNER,
    Role.ADMIN,
})

# Roles that may read any tenant without a membership row
PLATFORM_READ_ROLES: FrozenSet[Role] = frozenset({
    Role.PLATFORM_ADMIN,
    Role.PLATFORM_SUPPORT,
    Role.PLATFORM_VIEWER,
})


def parse_role(value: Union[str, Role, None]) -> Optional[Role]:
    """
    Normalize a role string from a header, token claim or database row.

    Accepts either case and either separator ("PLATFORM_ADMIN",
    "platform_admin" or "platform-admin").
    Returns None for unknown or empty values.
    """
    if value is None:
        return None
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower().replace("-", "_"))
    except ValueError:
        return None


def is_platform_role(role: Union[str, Role, None]) -> bool:
    """Return True if the role is platform-scoped."""
    parsed = parse_role(role)
    return parsed is not None and parsed in PLATFORM_ROLES


def can_change_status(role: Union[str, Role, None]) -> bool:
    """Return True if the role may change a location's operational status."""
    parsed = parse_role(role)
    return parsed is not None and parsed in STATUS_CHANGE_ROLES
