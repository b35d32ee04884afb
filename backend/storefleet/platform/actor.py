"""
Acting user for engine operations.

The upstream auth gateway verifies the caller and forwards the identity as
X-User-Id and X-User-Role. Requests without both are rejected.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from storefleet.constants.roles import Role, is_platform_role, parse_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Immutable identity of the user performing an operation."""

    user_id: str
    role: Optional[Role]

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id cannot be empty")

    @property
    def is_platform(self) -> bool:
        return is_platform_role(self.role)

    @property
    def role_value(self) -> Optional[str]:
        return self.role.value if self.role else None


def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """FastAPI dependency: build the Actor from gateway headers."""
    if not x_user_id:
        logger.warning("Request without actor identity", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity"
        )
    return Actor(user_id=x_user_id, role=parse_role(x_user_role))
