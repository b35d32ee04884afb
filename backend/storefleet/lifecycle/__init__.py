"""
Location lifecycle engine.

- LifecycleStateMachine: authorized, policy-checked status transitions
- DefaultTransitionPolicy: current product transition graph
- HistoryRecorder: best-effort status history
- ExternalSyncCoordinator: directory mirror of status changes
- TrialExpirationEvaluator: lazy trial backfill and expiry
- SideEffectQueue: bounded background queue for the deferred work
"""

from storefleet.lifecycle.history import (
    HistoryRecorder,
    HistorySink,
    DatabaseHistorySink,
    InMemoryHistorySink,
    StatusHistoryEntry,
)
from storefleet.lifecycle.policy import (
    DefaultTransitionPolicy,
    RejectionCode,
    TransitionPolicy,
    TransitionResult,
)
from storefleet.lifecycle.side_effects import SideEffectQueue
from storefleet.lifecycle.state_machine import (
    LifecycleStateMachine,
    StatusChangeResult,
    StatusPreview,
)
from storefleet.lifecycle.status import (
    StatusInfo,
    get_status_info,
    status_change_impact,
    storefront_message,
    directory_badge,
    billing_multiplier,
)
from storefleet.lifecycle.sync import ExternalSyncCoordinator, SyncOutcome, SyncOutcomeStatus
from storefleet.lifecycle.trial import TrialExpirationEvaluator, TrialChange, TrialAction

__all__ = [
    "HistoryRecorder",
    "HistorySink",
    "DatabaseHistorySink",
    "InMemoryHistorySink",
    "StatusHistoryEntry",
    "DefaultTransitionPolicy",
    "RejectionCode",
    "TransitionPolicy",
    "TransitionResult",
    "SideEffectQueue",
    "LifecycleStateMachine",
    "StatusChangeResult",
    "StatusPreview",
    "StatusInfo",
    "get_status_info",
    "status_change_impact",
    "storefront_message",
    "directory_badge",
    "billing_multiplier",
    "ExternalSyncCoordinator",
    "SyncOutcome",
    "SyncOutcomeStatus",
    "TrialExpirationEvaluator",
    "TrialChange",
    "TrialAction",
]
