"""
External directory sync for location status changes.

Runs after the status change is committed and returned. Every outcome is
logged and returned as a SyncOutcome; nothing is raised and nothing is
retried here. A scheduler can re-drive failed syncs from the logs.
"""

import enum
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from storefleet.entitlements.errors import SideEffectFailure
from storefleet.integrations.directory.models import DirectorySyncResult

logger = logging.getLogger(__name__)

SYNC_EFFECT = "directory_sync"


class SyncOutcomeStatus(str, enum.Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class DirectorySyncClient(Protocol):
    def sync_status(
        self,
        tenant_id: str,
        status: str,
        reopening_date: Optional[datetime] = None,
    ) -> DirectorySyncResult:
        ...


@dataclass(frozen=True)
class SyncOutcome:
    status: SyncOutcomeStatus
    tenant_id: str
    location_status: str
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class ExternalSyncCoordinator:
    """Mirrors status changes into the directory service."""

    def __init__(self, client: Optional[DirectorySyncClient]):
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def propagate(
        self,
        tenant_id: str,
        new_status: str,
        reopening_date: Optional[datetime] = None,
    ) -> SyncOutcome:
        if self._client is None:
            outcome = SyncOutcome(
                status=SyncOutcomeStatus.SKIPPED,
                tenant_id=tenant_id,
                location_status=new_status,
                reason="directory_sync_disabled",
            )
            logger.info("Directory sync skipped", extra={"sync": outcome.to_dict()})
            return outcome

        try:
            result = self._client.sync_status(tenant_id, new_status, reopening_date)
        except Exception as e:
            return self._failed(tenant_id, new_status, reopening_date, str(e), exc_info=True)

        if result.skipped:
            outcome = SyncOutcome(
                status=SyncOutcomeStatus.SKIPPED,
                tenant_id=tenant_id,
                location_status=new_status,
                reason=result.reason,
            )
            logger.info("Directory sync skipped", extra={"sync": outcome.to_dict()})
            return outcome

        if result.success:
            outcome = SyncOutcome(
                status=SyncOutcomeStatus.SUCCESS,
                tenant_id=tenant_id,
                location_status=new_status,
            )
            logger.info("Directory sync succeeded", extra={"sync": outcome.to_dict()})
            return outcome

        return self._failed(
            tenant_id,
            new_status,
            reopening_date,
            result.error or result.reason or "directory reported failure",
        )

    def _failed(
        self,
        tenant_id: str,
        new_status: str,
        reopening_date: Optional[datetime],
        error: str,
        exc_info: bool = False,
    ) -> SyncOutcome:
        failure = SideEffectFailure(
            SYNC_EFFECT,
            f"Directory sync failed: {error}",
            tenant_id=tenant_id,
            location_status=new_status,
            reopening_date=reopening_date.isoformat() if reopening_date else None,
        )
        logger.error(
            "Directory sync failed",
            extra={"side_effect": failure.to_dict()},
            exc_info=exc_info,
        )
        return SyncOutcome(
            status=SyncOutcomeStatus.FAILED,
            tenant_id=tenant_id,
            location_status=new_status,
            error=error,
        )
