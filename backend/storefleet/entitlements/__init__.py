"""
Entitlement resolution for tenants.

This module provides:
- EntitlementTable: immutable tier -> quotas/features table with trial override
- TierFeatureModel: inherited feature sets with cycle detection
- EntitlementResolver: location limits, slots, quotas and upgrade targets
- load_entitlement_table: build the table from config/tiers.yml
- Error taxonomy shared with the lifecycle engine

Resolution order for limits: trial override -> tier -> most restrictive tier
"""

from storefleet.entitlements.errors import (
    StorefleetError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ConfigurationError,
    SideEffectFailure,
)
from storefleet.entitlements.table import (
    EntitlementTable,
    TierDefinition,
    TrialOverride,
    UNBOUNDED,
    FEATURING_SLOT_TYPES,
)
from storefleet.entitlements.features import FeatureGrant, TierFeatureModel
from storefleet.entitlements.resolver import CreationDecision, EntitlementResolver
from storefleet.entitlements.loader import (
    build_entitlement_table,
    load_entitlement_table,
)

__all__ = [
    "StorefleetError",
    "ForbiddenError",
    "InvalidTransitionError",
    "NotFoundError",
    "ConfigurationError",
    "SideEffectFailure",
    "EntitlementTable",
    "TierDefinition",
    "TrialOverride",
    "UNBOUNDED",
    "FEATURING_SLOT_TYPES",
    "FeatureGrant",
    "TierFeatureModel",
    "CreationDecision",
    "EntitlementResolver",
    "build_entitlement_table",
    "load_entitlement_table",
]
