"""
Best-effort status history.

HistoryRecorder appends one entry per successful transition through a
HistorySink. The sink advertises whether it can accept writes
(is_available); when it cannot, or when the write fails, the recorder logs
and returns False. It makes a single attempt and never raises.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefleet.entitlements.errors import SideEffectFailure
from storefleet.models.base import as_utc, utc_now
from storefleet.models.location_status_log import LocationStatusLog

logger = logging.getLogger(__name__)

HISTORY_EFFECT = "status_history"


@dataclass(frozen=True)
class StatusHistoryEntry:
    """One recorded transition."""

    tenant_id: str
    old_status: str
    new_status: str
    changed_by: str
    reason: Optional[str] = None
    reopening_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    metadata: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: LocationStatusLog) -> "StatusHistoryEntry":
        return cls(
            id=row.id,
            tenant_id=row.tenant_id,
            old_status=row.old_status,
            new_status=row.new_status,
            changed_by=row.changed_by,
            reason=row.reason,
            reopening_date=as_utc(row.reopening_date),
            created_at=as_utc(row.created_at),
            metadata=dict(row.extra_metadata or {}),
        )


class HistorySink(Protocol):
    """Storage behind the recorder."""

    def is_available(self) -> bool:
        ...

    def append(self, entry: StatusHistoryEntry) -> None:
        ...

    def list_for_tenant(self, tenant_id: str, limit: int) -> List[StatusHistoryEntry]:
        ...


class DatabaseHistorySink:
    """
    Writes to location_status_logs.

    Runs on the side-effect worker thread, so it opens its own session from
    the factory instead of borrowing the request session.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        close_sessions: bool = True,
    ):
        self._session_factory = session_factory
        self._close_sessions = close_sessions
        self._table_present = False
        self._lock = Lock()

    def is_available(self) -> bool:
        """True once the history table has been seen in the database."""
        if self._table_present:
            return True
        session = self._session_factory()
        try:
            present = inspect(session.get_bind()).has_table(LocationStatusLog.__tablename__)
        except SQLAlchemyError as e:
            logger.warning(
                "Could not inspect status history table",
                extra={"error": str(e)},
            )
            present = False
        finally:
            if self._close_sessions:
                session.close()

        if present:
            with self._lock:
                self._table_present = True
        return present

    def append(self, entry: StatusHistoryEntry) -> None:
        session = self._session_factory()
        try:
            session.add(LocationStatusLog(
                tenant_id=entry.tenant_id,
                old_status=entry.old_status,
                new_status=entry.new_status,
                changed_by=entry.changed_by,
                reason=entry.reason,
                reopening_date=entry.reopening_date,
                extra_metadata=entry.metadata or None,
                created_at=entry.created_at,
            ))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            if self._close_sessions:
                session.close()

    def list_for_tenant(self, tenant_id: str, limit: int) -> List[StatusHistoryEntry]:
        session = self._session_factory()
        try:
            rows = (
                session.query(LocationStatusLog)
                .filter(LocationStatusLog.tenant_id == tenant_id)
                .order_by(LocationStatusLog.created_at.desc(), LocationStatusLog.id.desc())
                .limit(limit)
                .all()
            )
            return [StatusHistoryEntry.from_row(row) for row in rows]
        finally:
            if self._close_sessions:
                session.close()


class InMemoryHistorySink:
    """Process-local sink for development and tests."""

    def __init__(self, available: bool = True):
        self.available = available
        self._entries: List[StatusHistoryEntry] = []
        self._lock = Lock()

    def is_available(self) -> bool:
        return self.available

    def append(self, entry: StatusHistoryEntry) -> None:
        with self._lock:
            stored = StatusHistoryEntry(
                id=len(self._entries) + 1,
                tenant_id=entry.tenant_id,
                old_status=entry.old_status,
                new_status=entry.new_status,
                changed_by=entry.changed_by,
                reason=entry.reason,
                reopening_date=entry.reopening_date,
                created_at=entry.created_at,
                metadata=dict(entry.metadata),
            )
            self._entries.append(stored)

    def list_for_tenant(self, tenant_id: str, limit: int) -> List[StatusHistoryEntry]:
        with self._lock:
            entries = [e for e in self._entries if e.tenant_id == tenant_id]
        entries.sort(key=lambda e: (e.created_at, e.id or 0), reverse=True)
        return entries[:limit]

    @property
    def entries(self) -> List[StatusHistoryEntry]:
        with self._lock:
            return list(self._entries)


class HistoryRecorder:
    """Single-attempt, never-raising history writer."""

    def __init__(self, sink: Optional[HistorySink]):
        self._sink = sink

    def is_available(self) -> bool:
        if self._sink is None:
            return False
        try:
            return self._sink.is_available()
        except Exception:
            logger.warning("History availability check failed", exc_info=True)
            return False

    def record(
        self,
        tenant_id: str,
        old_status: str,
        new_status: str,
        actor: str,
        reason: Optional[str] = None,
        reopening_date: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Append one entry.

        Returns:
            True if written, False if the sink is unavailable or the write failed
        """
        if not self.is_available():
            logger.info(
                "Status history unavailable, entry not recorded",
                extra={"tenant_id": tenant_id, "old_status": old_status, "new_status": new_status},
            )
            return False

        entry = StatusHistoryEntry(
            tenant_id=tenant_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor,
            reason=reason,
            reopening_date=reopening_date,
            metadata=metadata or {},
        )
        try:
            self._sink.append(entry)
        except Exception as e:
            failure = SideEffectFailure(
                HISTORY_EFFECT,
                f"Failed to record status history: {e}",
                tenant_id=tenant_id,
                old_status=old_status,
                new_status=new_status,
                changed_by=actor,
                reason=reason,
            )
            logger.warning(
                "Status history write failed",
                extra={"side_effect": failure.to_dict()},
                exc_info=True,
            )
            return False

        logger.info(
            "Status history recorded",
            extra={"tenant_id": tenant_id, "old_status": old_status, "new_status": new_status},
        )
        return True

    def list_entries(self, tenant_id: str, limit: int) -> List[StatusHistoryEntry]:
        """Most recent first. Empty when the sink is unavailable."""
        if not self.is_available():
            return []
        return self._sink.list_for_tenant(tenant_id, limit)
