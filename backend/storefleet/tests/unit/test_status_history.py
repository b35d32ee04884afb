"""
Tests for best-effort status history.

Tests cover:
- Recording through the in-memory and database sinks
- Unavailable sink: nothing written, no exception
- Failing sink: logged, no exception, single attempt
- Listing most recent first
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from storefleet.lifecycle.history import (
    DatabaseHistorySink,
    HistoryRecorder,
    InMemoryHistorySink,
    StatusHistoryEntry,
)
from storefleet.models.location_status_log import LocationStatusLog


# =============================================================================
# Recorder
# =============================================================================

class TestHistoryRecorder:
    """Never-raising, single-attempt writes."""

    def test_record_appends(self):
        sink = InMemoryHistorySink()
        recorder = HistoryRecorder(sink)

        assert recorder.record("t1", "active", "closed", "user-1", reason="Lease ended")

        (entry,) = sink.entries
        assert entry.tenant_id == "t1"
        assert entry.old_status == "active"
        assert entry.new_status == "closed"
        assert entry.changed_by == "user-1"
        assert entry.reason == "Lease ended"

    def test_unavailable_sink_skips(self):
        sink = InMemoryHistorySink(available=False)
        recorder = HistoryRecorder(sink)

        assert recorder.record("t1", "active", "inactive", "user-1") is False
        assert sink.entries == []
        assert recorder.list_entries("t1", 10) == []

    def test_no_sink(self):
        recorder = HistoryRecorder(None)
        assert recorder.is_available() is False
        assert recorder.record("t1", "active", "inactive", "user-1") is False

    def test_failing_sink_does_not_raise(self, caplog):
        sink = Mock()
        sink.is_available.return_value = True
        sink.append.side_effect = RuntimeError("disk full")
        recorder = HistoryRecorder(sink)

        assert recorder.record("t1", "active", "closed", "user-1", reason="x") is False
        assert sink.append.call_count == 1
        assert "Status history write failed" in caplog.text

    def test_availability_check_error_is_unavailable(self):
        sink = Mock()
        sink.is_available.side_effect = RuntimeError("no connection")
        assert HistoryRecorder(sink).is_available() is False

    def test_list_most_recent_first(self):
        sink = InMemoryHistorySink()
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for i, status in enumerate(["inactive", "active", "closed"]):
            sink.append(StatusHistoryEntry(
                tenant_id="t1",
                old_status="active",
                new_status=status,
                changed_by="u",
                created_at=base + timedelta(minutes=i),
            ))
        sink.append(StatusHistoryEntry(
            tenant_id="t2", old_status="active", new_status="closed", changed_by="u",
        ))

        entries = HistoryRecorder(sink).list_entries("t1", 2)
        assert [e.new_status for e in entries] == ["closed", "active"]


# =============================================================================
# Database Sink
# =============================================================================

class TestDatabaseHistorySink:
    """location_status_logs table."""

    @pytest.fixture
    def sink(self, db_session):
        return DatabaseHistorySink(lambda: db_session, close_sessions=False)

    def test_available_when_table_exists(self, sink):
        assert sink.is_available() is True

    def test_append_and_list(self, sink, db_session):
        recorder = HistoryRecorder(sink)
        reopening = datetime(2026, 9, 1, tzinfo=timezone.utc)

        assert recorder.record(
            "tenant-db",
            "active",
            "inactive",
            "user-1",
            reopening_date=reopening,
            metadata={"actor_role": "owner"},
        )

        rows = db_session.query(LocationStatusLog).filter_by(tenant_id="tenant-db").all()
        assert len(rows) == 1
        assert rows[0].extra_metadata == {"actor_role": "owner"}

        (entry,) = recorder.list_entries("tenant-db", 50)
        assert entry.new_status == "inactive"
        assert entry.reopening_date == reopening
        assert entry.metadata == {"actor_role": "owner"}
        assert entry.created_at.tzinfo is not None

    def test_ordering_and_limit(self, sink):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            sink.append(StatusHistoryEntry(
                tenant_id="tenant-order",
                old_status="active",
                new_status="inactive" if i % 2 else "active",
                changed_by=f"user-{i}",
                created_at=base + timedelta(hours=i),
            ))

        entries = sink.list_for_tenant("tenant-order", 3)
        assert [e.changed_by for e in entries] == ["user-4", "user-3", "user-2"]
