"""
Tests for lazy trial reconciliation.

Tests cover:
- Backfilling a missing trial end
- Expiry with and without a paid subscription
- Non-trial tenants untouched
- Failing persistence still returns the reconciled values
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from storefleet.lifecycle.trial import TrialAction, TrialExpirationEvaluator
from storefleet.models.tenant import SubscriptionStatus, Tenant

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def evaluator(table):
    return TrialExpirationEvaluator(table, clock=lambda: NOW)


def _tenant(**overrides):
    fields = dict(
        id="tenant-1",
        name="Corner Shop",
        owner_id="owner-1",
        subscription_tier="professional",
        subscription_status=SubscriptionStatus.TRIAL,
        trial_ends_at=None,
    )
    fields.update(overrides)
    return Tenant(**fields)


# =============================================================================
# Evaluation
# =============================================================================

class TestEvaluate:
    """Pure decision."""

    def test_backfill_missing_end(self, evaluator):
        change = evaluator.evaluate(_tenant())
        assert change.action == TrialAction.BACKFILLED
        assert change.updates == {"trial_ends_at": NOW + timedelta(days=14)}

    def test_running_trial_unchanged(self, evaluator):
        change = evaluator.evaluate(_tenant(trial_ends_at=NOW + timedelta(days=3)))
        assert change.action == TrialAction.NONE
        assert not change.changed

    def test_expired_without_payment_downgrades(self, evaluator):
        change = evaluator.evaluate(_tenant(trial_ends_at=NOW - timedelta(seconds=1)))
        assert change.action == TrialAction.EXPIRED
        assert change.updates == {
            "subscription_status": SubscriptionStatus.EXPIRED,
            "trial_ends_at": None,
            "subscription_tier": "google_only",
        }
        assert change.downgraded_from == "professional"

    def test_expired_with_payment_keeps_tier(self, evaluator):
        change = evaluator.evaluate(_tenant(
            trial_ends_at=NOW - timedelta(days=1),
            external_subscription_ref="sub_123",
        ))
        assert change.updates["subscription_status"] == SubscriptionStatus.EXPIRED
        assert "subscription_tier" not in change.updates
        assert change.downgraded_from is None

    def test_expired_on_baseline_has_no_tier_change(self, evaluator):
        change = evaluator.evaluate(_tenant(
            subscription_tier="google_only",
            trial_ends_at=NOW - timedelta(days=1),
        ))
        assert "subscription_tier" not in change.updates

    def test_naive_end_treated_as_utc(self, evaluator):
        naive = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert evaluator.evaluate(_tenant(trial_ends_at=naive)).action == TrialAction.EXPIRED

    @pytest.mark.parametrize("status", [
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.EXPIRED,
        SubscriptionStatus.CANCELED,
    ])
    def test_non_trial_untouched(self, evaluator, status):
        tenant = _tenant(subscription_status=status, trial_ends_at=NOW - timedelta(days=30))
        assert not evaluator.evaluate(tenant).changed


# =============================================================================
# Reconciliation
# =============================================================================

class TestReconcile:
    """Apply, persist best-effort, return."""

    def test_applies_and_persists(self, evaluator):
        persist = Mock()
        tenant = evaluator.reconcile(_tenant(trial_ends_at=NOW - timedelta(days=1)), persist=persist)

        assert tenant.subscription_status == SubscriptionStatus.EXPIRED
        assert tenant.subscription_tier == "google_only"
        assert tenant.trial_ends_at is None
        persist.assert_called_once()
        tenant_id, updates = persist.call_args[0]
        assert tenant_id == "tenant-1"
        assert updates["subscription_status"] == SubscriptionStatus.EXPIRED

    def test_persist_failure_still_returns_values(self, evaluator, caplog):
        persist = Mock(side_effect=RuntimeError("db down"))
        tenant = evaluator.reconcile(_tenant(), persist=persist)

        assert tenant.trial_ends_at == NOW + timedelta(days=14)
        assert "Failed to persist trial reconciliation" in caplog.text

    def test_unchanged_tenant_not_persisted(self, evaluator):
        persist = Mock()
        evaluator.reconcile(_tenant(subscription_status=SubscriptionStatus.ACTIVE), persist=persist)
        persist.assert_not_called()

    def test_trial_end_set_iff_trial(self, evaluator):
        for tenant in (
            _tenant(),
            _tenant(trial_ends_at=NOW - timedelta(days=2)),
            _tenant(trial_ends_at=NOW + timedelta(days=2)),
        ):
            evaluator.reconcile(tenant)
            in_trial = tenant.subscription_status == SubscriptionStatus.TRIAL
            assert (tenant.trial_ends_at is not None) == in_trial
