"""
Tests for LifecycleStateMachine.

Tests cover:
- Role capability check
- Same-status no-op (nothing written, no side effects)
- Policy rejections (edge, missing reason, unknown status)
- Successful change: one conditional update, one history entry, one sync
- Concurrent change detected by the conditional update
- Read-only previews
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from storefleet.constants.roles import Role
from storefleet.entitlements.errors import ForbiddenError, InvalidTransitionError
from storefleet.integrations.directory import DirectorySyncResult
from storefleet.lifecycle.history import HistoryRecorder, InMemoryHistorySink
from storefleet.lifecycle.policy import RejectionCode
from storefleet.lifecycle.state_machine import LifecycleStateMachine
from storefleet.lifecycle.status import NO_CHANGE
from storefleet.lifecycle.sync import ExternalSyncCoordinator
from storefleet.models.tenant import LocationStatus, SubscriptionStatus, Tenant

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def writer():
    writer = Mock()
    writer.apply_status_change.return_value = True
    return writer


@pytest.fixture
def sink():
    return InMemoryHistorySink()


@pytest.fixture
def directory():
    client = Mock()
    client.sync_status.return_value = DirectorySyncResult(success=True)
    return client


@pytest.fixture
def machine(writer, sink, directory, side_effect_queue):
    return LifecycleStateMachine(
        writer=writer,
        history=HistoryRecorder(sink),
        sync=ExternalSyncCoordinator(directory),
        queue=side_effect_queue,
        clock=lambda: NOW,
    )


@pytest.fixture
def tenant():
    return Tenant(
        id="tenant-1",
        name="Corner Shop",
        owner_id="owner-1",
        subscription_tier="starter",
        subscription_status=SubscriptionStatus.ACTIVE,
        location_status=LocationStatus.ACTIVE,
    )


# =============================================================================
# Authorization
# =============================================================================

class TestAuthorization:
    """Only PLATFORM_ADMIN, OWNER and ADMIN change status."""

    @pytest.mark.parametrize("role", [
        Role.MANAGER, Role.MEMBER, Role.VIEWER,
        Role.PLATFORM_SUPPORT, Role.PLATFORM_VIEWER, None,
    ])
    def test_forbidden_roles(self, machine, tenant, writer, role):
        with pytest.raises(ForbiddenError):
            machine.change_status(tenant, "user-1", role, "inactive")
        writer.apply_status_change.assert_not_called()

    @pytest.mark.parametrize("role", [Role.PLATFORM_ADMIN, Role.OWNER, Role.ADMIN, "admin"])
    def test_allowed_roles(self, machine, tenant, role):
        result = machine.change_status(tenant, "user-1", role, "inactive")
        assert result.new_status == LocationStatus.INACTIVE

    def test_forbidden_checked_before_no_op(self, machine, tenant):
        with pytest.raises(ForbiddenError):
            machine.change_status(tenant, "user-1", Role.VIEWER, "active")


# =============================================================================
# Transitions
# =============================================================================

class TestChangeStatus:
    """Validation, atomic write and side effects."""

    def test_same_status_is_no_op(self, machine, tenant, writer, sink, directory, side_effect_queue):
        result = machine.change_status(tenant, "owner-1", Role.OWNER, "active")
        side_effect_queue.drain(timeout=5.0)

        assert result.no_op is True
        assert result.previous_status == result.new_status == LocationStatus.ACTIVE
        writer.apply_status_change.assert_not_called()
        assert sink.entries == []
        directory.sync_status.assert_not_called()

    def test_disallowed_edge(self, machine, tenant, writer):
        tenant.location_status = LocationStatus.CLOSED
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.change_status(tenant, "owner-1", Role.OWNER, "active")

        assert exc_info.value.rejection_code == RejectionCode.NOT_ALLOWED
        assert exc_info.value.from_status == "closed"
        writer.apply_status_change.assert_not_called()

    def test_missing_reason(self, machine, tenant, writer):
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.change_status(tenant, "owner-1", Role.OWNER, "closed")

        assert exc_info.value.rejection_code == RejectionCode.REASON_REQUIRED
        assert exc_info.value.to_dict()["machine_readable"]["rejection_code"] == "reason_required"
        writer.apply_status_change.assert_not_called()

    def test_unknown_status(self, machine, tenant):
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.change_status(tenant, "owner-1", Role.OWNER, "demolished")
        assert exc_info.value.rejection_code == RejectionCode.UNKNOWN_STATUS

    def test_success_writes_once_and_schedules_side_effects(
        self, machine, tenant, writer, sink, directory, side_effect_queue,
    ):
        result = machine.change_status(
            tenant, "owner-1", Role.OWNER, "closed", reason="Lease ended",
        )
        assert side_effect_queue.drain(timeout=5.0)

        assert result.no_op is False
        assert result.previous_status == LocationStatus.ACTIVE
        assert result.new_status == LocationStatus.CLOSED

        writer.apply_status_change.assert_called_once_with(
            tenant_id="tenant-1",
            expected_status=LocationStatus.ACTIVE,
            new_status=LocationStatus.CLOSED,
            changed_at=NOW,
            changed_by="owner-1",
            reopening_date=None,
            closure_reason="Lease ended",
        )

        (entry,) = sink.entries
        assert (entry.old_status, entry.new_status) == ("active", "closed")
        assert entry.changed_by == "owner-1"
        assert entry.reason == "Lease ended"
        assert entry.metadata == {"actor_role": "owner"}

        directory.sync_status.assert_called_once_with("tenant-1", "closed", None)

    def test_reopening_date_forwarded(self, machine, tenant, writer, directory, side_effect_queue):
        reopening = datetime(2026, 9, 1, tzinfo=timezone.utc)
        machine.change_status(tenant, "owner-1", Role.ADMIN, "inactive", reopening_date=reopening)
        side_effect_queue.drain(timeout=5.0)

        kwargs = writer.apply_status_change.call_args.kwargs
        assert kwargs["reopening_date"] == reopening
        assert kwargs["closure_reason"] is None
        directory.sync_status.assert_called_once_with("tenant-1", "inactive", reopening)

    def test_reactivation_clears_closure_reason(self, machine, tenant, writer):
        tenant.location_status = LocationStatus.INACTIVE
        machine.change_status(tenant, "owner-1", Role.OWNER, "active", reason="Back open")
        assert writer.apply_status_change.call_args.kwargs["closure_reason"] is None

    def test_concurrent_change_rejected(self, machine, tenant, writer, sink, side_effect_queue):
        writer.apply_status_change.return_value = False

        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.change_status(tenant, "owner-1", Role.OWNER, "inactive")
        side_effect_queue.drain(timeout=5.0)

        assert exc_info.value.rejection_code == "concurrent_update"
        assert sink.entries == []

    def test_history_failure_does_not_fail_change(self, writer, directory, side_effect_queue, tenant):
        broken = Mock()
        broken.is_available.return_value = True
        broken.append.side_effect = RuntimeError("history store down")
        machine = LifecycleStateMachine(
            writer=writer,
            history=HistoryRecorder(broken),
            sync=ExternalSyncCoordinator(directory),
            queue=side_effect_queue,
        )

        result = machine.change_status(tenant, "owner-1", Role.OWNER, "inactive")
        side_effect_queue.drain(timeout=5.0)

        assert result.new_status == LocationStatus.INACTIVE
        directory.sync_status.assert_called_once()

    def test_sync_failure_does_not_fail_change(self, writer, sink, side_effect_queue, tenant):
        directory = Mock()
        directory.sync_status.side_effect = RuntimeError("directory down")
        machine = LifecycleStateMachine(
            writer=writer,
            history=HistoryRecorder(sink),
            sync=ExternalSyncCoordinator(directory),
            queue=side_effect_queue,
        )

        result = machine.change_status(tenant, "owner-1", Role.OWNER, "inactive")
        side_effect_queue.drain(timeout=5.0)

        assert result.new_status == LocationStatus.INACTIVE
        assert len(sink.entries) == 1


# =============================================================================
# Preview
# =============================================================================

class TestPreviewImpact:
    """Dry run; nothing is written."""

    def test_valid_preview(self, machine, tenant, writer):
        preview = machine.preview_impact(tenant, "archived")

        assert preview.valid is True
        assert preview.impact["storefront"] == "Storefront will be hidden"
        writer.apply_status_change.assert_not_called()

    def test_preview_ignores_missing_reason(self, machine, tenant):
        assert machine.preview_impact(tenant, "closed").valid is True

    def test_invalid_preview(self, machine, tenant):
        tenant.location_status = LocationStatus.CLOSED
        preview = machine.preview_impact(tenant, "inactive")

        assert preview.valid is False
        assert preview.code == RejectionCode.NOT_ALLOWED
        assert preview.reason.startswith("Cannot change status")

    def test_no_op_preview(self, machine, tenant):
        preview = machine.preview_impact(tenant, "active")

        assert preview.valid is True
        assert preview.no_op is True
        assert set(preview.impact.values()) == {NO_CHANGE}

    def test_preview_with_role_check(self, machine, tenant):
        with pytest.raises(ForbiddenError):
            machine.preview_impact(tenant, "inactive", actor_role=Role.VIEWER, check_role=True)

    def test_preview_to_dict(self, machine, tenant):
        data = machine.preview_impact(tenant, "inactive").to_dict()
        assert data["current_status"] == "active"
        assert data["new_status"] == "inactive"
