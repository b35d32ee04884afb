"""
Tier feature composition.

A tier's effective feature set is its own features plus the effective set of
its base tier, transitively. Organization and chain tiers inherit from their
individual counterpart and add group-only features.

Broken inheritance (cycles, unknown parents) raises ConfigurationError at
resolution time.
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict, FrozenSet, List, Optional

from storefleet.entitlements.errors import ConfigurationError
from storefleet.entitlements.table import EntitlementTable, TierDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureGrant:
    """One effective feature and where it comes from."""

    feature: str
    granted_by: str
    inherited: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "feature": self.feature,
            "granted_by": self.granted_by,
            "inherited": self.inherited,
        }


class TierFeatureModel:
    """
    Resolves inherited feature sets over an EntitlementTable.

    Results are memoized per tier key; the table is immutable so the cache
    never needs invalidation.
    """

    def __init__(self, table: EntitlementTable):
        self._table = table
        self._cache: Dict[str, FrozenSet[str]] = {}
        self._lock = Lock()

    def inheritance_chain(self, tier_key: str) -> List[TierDefinition]:
        """
        Return [tier, base, base-of-base, ...].

        Raises:
            ConfigurationError: on a cycle or a dangling base_tier
        """
        chain: List[TierDefinition] = []
        seen: List[str] = []
        current: Optional[TierDefinition] = self._table.resolve(tier_key)

        while current is not None:
            if current.key in seen:
                cycle = " -> ".join(seen + [current.key])
                raise ConfigurationError(
                    f"Tier inheritance cycle detected: {cycle}",
                    tier=tier_key,
                )
            seen.append(current.key)
            chain.append(current)

            if current.base_tier is None:
                break
            parent = self._table.get(current.base_tier)
            if parent is None:
                raise ConfigurationError(
                    f"Tier '{current.key}' inherits from unknown tier '{current.base_tier}'",
                    tier=current.key,
                )
            current = parent

        return chain

    def effective_feature_set(self, tier_key: str) -> FrozenSet[str]:
        """Flattened union of the tier's features and all inherited ones."""
        resolved_key = self._table.resolve(tier_key).key
        cached = self._cache.get(resolved_key)
        if cached is not None:
            return cached

        features = set()
        for tier in self.inheritance_chain(resolved_key):
            features.update(tier.features)
        result = frozenset(features)

        with self._lock:
            self._cache[resolved_key] = result
        return result

    def feature_grants(self, tier_key: str) -> List[FeatureGrant]:
        """
        Effective features with provenance.

        A feature declared by several tiers in the chain is attributed to the
        closest one (the tier itself wins over its ancestors).
        """
        chain = self.inheritance_chain(tier_key)
        own_key = chain[0].key
        grants: Dict[str, FeatureGrant] = {}
        for tier in chain:
            for feature in sorted(tier.features):
                if feature not in grants:
                    grants[feature] = FeatureGrant(
                        feature=feature,
                        granted_by=tier.key,
                        inherited=tier.key != own_key,
                    )
        return sorted(grants.values(), key=lambda g: g.feature)

    def has_feature(self, tier_key: str, feature: str) -> bool:
        return feature in self.effective_feature_set(tier_key)

    def required_tier_for(self, feature: str) -> Optional[str]:
        """
        Cheapest individual tier whose effective set contains the feature.

        Used for upgrade messaging. None if no individual tier grants it.
        """
        candidates = [
            tier for tier in self._table
            if not tier.is_organization and self.has_feature(tier.key, feature)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda t: (t.priority, t.price_monthly_cents)).key

    def validate(self) -> None:
        """Resolve every tier once; raises on the first broken chain."""
        for tier in self._table:
            self.effective_feature_set(tier.key)
