"""
Structured error classes for the entitlement and lifecycle engine.

Primary-path errors (Forbidden, InvalidTransition, NotFound, Configuration)
propagate to the caller. SideEffectFailure is only ever logged.
"""

from typing import Any, Dict, Optional
from fastapi import status


class StorefleetError(Exception):
    """Base exception for engine errors."""

    code = "storefleet_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "error": self.code,
            "message": self.message,
            "machine_readable": {
                "code": self.code,
                **{k: v for k, v in self.context.items() if v is not None},
            },
        }


class ForbiddenError(StorefleetError):
    """The actor's role lacks the capability for this operation."""

    code = "forbidden"
    http_status = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, role: Optional[str] = None, **context: Any):
        self.role = role
        super().__init__(message, role=role, **context)


class InvalidTransitionError(StorefleetError):
    """
    The transition policy rejected a status change.

    Carries the policy's rejection code and explanation so the caller can
    tell "missing reason" apart from "edge not allowed".
    """

    code = "invalid_transition"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        rejection_code: Optional[str] = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.rejection_code = rejection_code
        super().__init__(
            message,
            from_status=from_status,
            to_status=to_status,
            rejection_code=rejection_code,
        )


class NotFoundError(StorefleetError):
    """Tenant or tier does not exist."""

    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} '{identifier}' not found",
            resource=resource,
            identifier=identifier,
        )


class ConfigurationError(StorefleetError):
    """
    Tier configuration is broken (cyclic or dangling inheritance, bad file).

    Fatal and surfaced; never patched over.
    """

    code = "configuration_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class SideEffectFailure(StorefleetError):
    """
    A deferred side effect (history write, directory sync) failed.

    Logged with enough context for a manual retry; never raised into the
    primary operation.
    """

    code = "side_effect_failure"

    def __init__(self, effect: str, message: str, tenant_id: Optional[str] = None, **context: Any):
        self.effect = effect
        self.tenant_id = tenant_id
        super().__init__(message, effect=effect, tenant_id=tenant_id, **context)
