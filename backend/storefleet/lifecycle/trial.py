"""
Lazy trial reconciliation.

Every tenant read passes through TrialExpirationEvaluator.reconcile:
- trial without trial_ends_at: backfill now + trial duration
- trial past trial_ends_at: mark expired; without a paid subscription the
  tier drops to the baseline tier, with one the tier stands
- anything else: unchanged

The computed values are always returned. Writing them back is best-effort:
a failed write is logged and the next read reconciles again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm.attributes import set_committed_value

from storefleet.entitlements.table import EntitlementTable
from storefleet.models.base import as_utc, utc_now
from storefleet.models.tenant import SubscriptionStatus, Tenant

logger = logging.getLogger(__name__)


class TrialAction:
    NONE = "none"
    BACKFILLED = "backfilled"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TrialChange:
    """What reconciliation decided for one tenant."""

    action: str = TrialAction.NONE
    updates: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    downgraded_from: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.updates)


PersistFn = Callable[[str, Dict[str, Any]], None]


class TrialExpirationEvaluator:
    """Applies trial backfill and expiry on read."""

    def __init__(self, table: EntitlementTable, clock: Callable[[], datetime] = utc_now):
        self._table = table
        self._clock = clock

    def evaluate(self, tenant: Tenant, now: Optional[datetime] = None) -> TrialChange:
        """Pure decision; does not touch the tenant or the store."""
        if tenant.subscription_status != SubscriptionStatus.TRIAL:
            return TrialChange()

        now = as_utc(now or self._clock())
        trial_ends_at = as_utc(tenant.trial_ends_at)

        if trial_ends_at is None:
            return TrialChange(
                action=TrialAction.BACKFILLED,
                updates={
                    "trial_ends_at": now + timedelta(days=self._table.trial.duration_days),
                },
            )

        if trial_ends_at < now:
            updates: Dict[str, Any] = {
                "subscription_status": SubscriptionStatus.EXPIRED,
                "trial_ends_at": None,
            }
            downgraded_from = None
            if not tenant.external_subscription_ref:
                baseline = self._table.baseline.key
                if tenant.subscription_tier != baseline:
                    updates["subscription_tier"] = baseline
                    downgraded_from = tenant.subscription_tier
            return TrialChange(
                action=TrialAction.EXPIRED,
                updates=updates,
                downgraded_from=downgraded_from,
            )

        return TrialChange()

    def reconcile(
        self,
        tenant: Tenant,
        persist: Optional[PersistFn] = None,
        now: Optional[datetime] = None,
    ) -> Tenant:
        """
        Reconcile and return the tenant. Never raises.

        Args:
            tenant: Tenant as read from the store
            persist: Writes (tenant_id, updates) back to the store
            now: Evaluation time (defaults to the clock)
        """
        change = self.evaluate(tenant, now=now)
        if not change.changed:
            return tenant

        tenant_id = tenant.id
        tier = change.updates.get("subscription_tier", tenant.subscription_tier)
        if persist is not None:
            try:
                persist(tenant_id, change.updates)
            except Exception:
                logger.warning(
                    "Failed to persist trial reconciliation",
                    extra={"tenant_id": tenant_id, "trial_action": change.action},
                    exc_info=True,
                )

        # Set after the write so a rollback cannot expire the reconciled values
        for key, value in change.updates.items():
            set_committed_value(tenant, key, value)

        logger.info(
            "Trial reconciled",
            extra={
                "tenant_id": tenant_id,
                "trial_action": change.action,
                "downgraded_from": change.downgraded_from,
                "tier": tier,
            },
        )
        return tenant
