"""
Location status state machine.

change_status runs, in order:
1. capability check (ForbiddenError)
2. same-status short circuit (no-op result, nothing written)
3. policy validation (InvalidTransitionError)
4. single-row conditional update of the tenant
5. return the updated tenant
6. submit history and directory sync to the side-effect queue

Side effects may finish in any order relative to later changes on the same
tenant; the tenant row is the source of truth, the mirrors are best-effort.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol, Union

from storefleet.constants.roles import Role, can_change_status
from storefleet.entitlements.errors import ForbiddenError, InvalidTransitionError
from storefleet.lifecycle.history import HistoryRecorder
from storefleet.lifecycle.policy import (
    DefaultTransitionPolicy,
    RejectionCode,
    TransitionPolicy,
)
from storefleet.lifecycle.side_effects import SideEffectQueue
from storefleet.lifecycle.status import NO_CHANGE, coerce_status, status_change_impact
from storefleet.lifecycle.sync import ExternalSyncCoordinator
from storefleet.models.base import utc_now
from storefleet.models.tenant import LocationStatus, Tenant

logger = logging.getLogger(__name__)


class TenantStatusWriter(Protocol):
    """Atomic single-row status update."""

    def apply_status_change(
        self,
        tenant_id: str,
        expected_status: LocationStatus,
        new_status: LocationStatus,
        changed_at: datetime,
        changed_by: str,
        reopening_date: Optional[datetime],
        closure_reason: Optional[str],
    ) -> bool:
        ...


@dataclass(frozen=True)
class StatusChangeResult:
    tenant: Tenant
    previous_status: LocationStatus
    new_status: LocationStatus
    no_op: bool = False


@dataclass(frozen=True)
class StatusPreview:
    current_status: LocationStatus
    new_status: LocationStatus
    valid: bool
    impact: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    reason: Optional[str] = None
    code: Optional[str] = None
    no_op: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_status": self.current_status.value,
            "new_status": self.new_status.value,
            "valid": self.valid,
            "reason": self.reason,
            "code": self.code,
            "no_op": self.no_op,
            "impact": dict(self.impact),
        }


def _parse_target(value: Union[str, LocationStatus], current: LocationStatus) -> LocationStatus:
    try:
        return coerce_status(value)
    except ValueError:
        raise InvalidTransitionError(
            f"Unknown location status '{value}'",
            from_status=current.value,
            to_status=str(value),
            rejection_code=RejectionCode.UNKNOWN_STATUS,
        )


class LifecycleStateMachine:
    """Validates and applies operational-status transitions."""

    def __init__(
        self,
        writer: TenantStatusWriter,
        history: HistoryRecorder,
        sync: ExternalSyncCoordinator,
        queue: SideEffectQueue,
        policy: Optional[TransitionPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._writer = writer
        self._history = history
        self._sync = sync
        self._queue = queue
        self._policy = policy or DefaultTransitionPolicy()
        self._clock = clock

    @property
    def policy(self) -> TransitionPolicy:
        return self._policy

    def change_status(
        self,
        tenant: Tenant,
        actor_id: str,
        actor_role: Union[str, Role, None],
        target_status: Union[str, LocationStatus],
        reason: Optional[str] = None,
        reopening_date: Optional[datetime] = None,
    ) -> StatusChangeResult:
        """
        Change a tenant's operational status.

        Raises:
            ForbiddenError: actor role cannot change status
            InvalidTransitionError: policy rejected the move, or a concurrent
                change won the conditional update
        """
        if not can_change_status(actor_role):
            logger.warning(
                "Status change forbidden",
                extra={"tenant_id": tenant.id, "actor": actor_id, "role": str(actor_role)},
            )
            raise ForbiddenError(
                "You do not have permission to change this location's status",
                role=getattr(actor_role, "value", actor_role),
            )

        current = coerce_status(tenant.location_status)
        target = _parse_target(target_status, current)

        if target == current:
            logger.info(
                "Status change is a no-op",
                extra={"tenant_id": tenant.id, "status": current.value},
            )
            return StatusChangeResult(
                tenant=tenant,
                previous_status=current,
                new_status=current,
                no_op=True,
            )

        result = self._policy.validate(current, target, reason=reason, require_reason=True)
        if not result.ok:
            raise InvalidTransitionError(
                result.message or "Transition rejected",
                from_status=current.value,
                to_status=target.value,
                rejection_code=result.code,
            )

        tenant_id = tenant.id
        closure_reason = None if target == LocationStatus.ACTIVE else reason
        updated = self._writer.apply_status_change(
            tenant_id=tenant_id,
            expected_status=current,
            new_status=target,
            changed_at=self._clock(),
            changed_by=actor_id,
            reopening_date=reopening_date,
            closure_reason=closure_reason,
        )
        if not updated:
            raise InvalidTransitionError(
                "Location status was changed concurrently; reload and retry",
                from_status=current.value,
                to_status=target.value,
                rejection_code="concurrent_update",
            )

        logger.info(
            "Location status changed",
            extra={
                "tenant_id": tenant_id,
                "old_status": current.value,
                "new_status": target.value,
                "actor": actor_id,
            },
        )

        self._schedule_side_effects(
            tenant_id=tenant_id,
            old_status=current,
            new_status=target,
            actor_id=actor_id,
            actor_role=getattr(actor_role, "value", actor_role),
            reason=reason,
            reopening_date=reopening_date,
        )

        return StatusChangeResult(
            tenant=tenant,
            previous_status=current,
            new_status=target,
        )

    def preview_impact(
        self,
        tenant: Tenant,
        target_status: Union[str, LocationStatus],
        actor_role: Union[str, Role, None] = None,
        check_role: bool = False,
    ) -> StatusPreview:
        """
        Read-only dry run of change_status. Reasons are not enforced.

        With check_role=True an actor without the capability gets ForbiddenError.
        """
        if check_role and not can_change_status(actor_role):
            raise ForbiddenError(
                "You do not have permission to change this location's status",
                role=getattr(actor_role, "value", actor_role),
            )

        current = coerce_status(tenant.location_status)
        target = _parse_target(target_status, current)

        if target == current:
            return StatusPreview(
                current_status=current,
                new_status=target,
                valid=True,
                no_op=True,
                impact={key: NO_CHANGE for key in status_change_impact(current, current)},
            )

        result = self._policy.validate(current, target, require_reason=False)
        return StatusPreview(
            current_status=current,
            new_status=target,
            valid=result.ok,
            reason=result.message,
            code=result.code,
            impact=status_change_impact(current, target),
        )

    def _schedule_side_effects(
        self,
        tenant_id: str,
        old_status: LocationStatus,
        new_status: LocationStatus,
        actor_id: str,
        actor_role: Optional[str],
        reason: Optional[str],
        reopening_date: Optional[datetime],
    ) -> None:
        # tenant_id is consumed by submit(), so record() gets its arguments positionally
        self._queue.submit(
            "status_history",
            self._history.record,
            tenant_id,
            old_status.value,
            new_status.value,
            actor_id,
            reason,
            reopening_date,
            {"actor_role": actor_role} if actor_role else None,
            tenant_id=tenant_id,
        )
        self._queue.submit(
            "directory_sync",
            self._sync.propagate,
            tenant_id,
            new_status.value,
            reopening_date,
            tenant_id=tenant_id,
        )
