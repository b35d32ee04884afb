"""
Append-only history of location status transitions.

Rows are written once per successful transition and never updated or
deleted. The table may be missing in some environments; writers go through
HistoryRecorder, which treats the log as best-effort.
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, Index, JSON

from storefleet.db_base import Base
from storefleet.models.base import TenantScopedMixin, utc_now


class LocationStatusLog(Base, TenantScopedMixin):
    """One status transition of one location."""

    __tablename__ = "location_status_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    old_status = Column(String(20), nullable=False)
    new_status = Column(String(20), nullable=False)
    changed_by = Column(
        String(255),
        nullable=False,
        comment="User id of the actor"
    )
    reason = Column(Text, nullable=True)
    reopening_date = Column(DateTime(timezone=True), nullable=True)
    extra_metadata = Column(
        "metadata",
        JSON,
        nullable=True,
        comment="Actor role and other context"
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        Index("ix_location_status_logs_tenant_created", "tenant_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LocationStatusLog(tenant_id={self.tenant_id}, "
            f"{self.old_status}->{self.new_status})>"
        )
