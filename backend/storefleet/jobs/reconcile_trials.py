"""
Trial reconciliation sweep.

Reads reconcile trials lazily, so a tenant nobody looks at keeps its expired
trial in the database. This job walks every trial tenant and applies the
same backfill/expiry rules, so reports and billing exports see current data.

Usage:
    python -m storefleet.jobs.reconcile_trials

Deployed as a daily cron job.
"""

import sys
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from storefleet.config.engine import load_engine_config
from storefleet.database.session import get_db_session_sync
from storefleet.entitlements.table import EntitlementTable
from storefleet.lifecycle.trial import TrialAction, TrialExpirationEvaluator
from storefleet.models.base import utc_now
from storefleet.repositories.tenants_repo import TenantRepository

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Tenants loaded per query
BATCH_SIZE = 500


class TrialSweepStats:
    """Track sweep run statistics."""

    def __init__(self):
        self.tenants_checked = 0
        self.backfilled = 0
        self.expired = 0
        self.downgraded = 0
        self.errors = 0
        self.start_time = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        return {
            "tenants_checked": self.tenants_checked,
            "backfilled": self.backfilled,
            "expired": self.expired,
            "downgraded": self.downgraded,
            "errors": self.errors,
            "duration_seconds": duration
        }


def sweep_trials(
    session: Session,
    table: EntitlementTable,
    batch_size: int = BATCH_SIZE,
    clock: Callable[[], datetime] = utc_now,
    now: Optional[datetime] = None,
) -> TrialSweepStats:
    """
    Reconcile every trial tenant.

    A failed write is counted and the sweep continues with the next tenant.
    """
    stats = TrialSweepStats()
    repo = TenantRepository(session)
    evaluator = TrialExpirationEvaluator(table, clock=clock)
    now = now or clock()

    after_id = None
    while True:
        tenants = repo.list_trial_tenants(batch_size=batch_size, after_id=after_id)
        if not tenants:
            break
        after_id = tenants[-1].id

        for tenant in tenants:
            stats.tenants_checked += 1
            change = evaluator.evaluate(tenant, now=now)
            if not change.changed:
                continue
            try:
                repo.save_trial_changes(tenant.id, change.updates)
            except Exception as e:
                logger.error("Failed to reconcile trial", extra={
                    "tenant_id": tenant.id,
                    "error": str(e)
                })
                stats.errors += 1
                continue

            if change.action == TrialAction.BACKFILLED:
                stats.backfilled += 1
            elif change.action == TrialAction.EXPIRED:
                stats.expired += 1
                if change.downgraded_from:
                    stats.downgraded += 1

    return stats


def run_sweep() -> dict:
    """
    Run the trial sweep against DATABASE_URL.

    Returns:
        Statistics dictionary with job results
    """
    logger.info("Starting trial sweep job")

    config = load_engine_config()
    for session in get_db_session_sync():
        try:
            result = sweep_trials(session, config.table).to_dict()
            logger.info("Trial sweep completed", extra=result)
            return result
        except Exception as e:
            logger.error("Trial sweep failed", extra={
                "error": str(e)
            })
            raise


def main():
    """Entry point for running the sweep from the command line."""
    try:
        result = run_sweep()
        print(f"Trial sweep completed: {result}")
        sys.exit(0)
    except Exception as e:
        print(f"Trial sweep failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
