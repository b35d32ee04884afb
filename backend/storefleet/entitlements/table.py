"""
In-memory entitlement table: tier -> quotas, features, upgrade pointer.

The table is immutable once built. It is loaded at process start (from
config/tiers.yml or the tiers tables) and injected into the resolver.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional

from storefleet.entitlements.errors import ConfigurationError
from storefleet.models.tier import TierClass

logger = logging.getLogger(__name__)

# Unbounded sentinel for limits and quotas
UNBOUNDED = None

FEATURING_SLOT_TYPES = (
    "store_selection",
    "new_arrival",
    "seasonal",
    "sale",
    "staff_pick",
    "random_featured",
)


def _as_sort_key(limit: Optional[int]) -> float:
    return float("inf") if limit is UNBOUNDED else float(limit)


@dataclass(frozen=True)
class TierDefinition:
    """
    One configured tier.

    features holds only the tier's own additions; the effective set is
    computed by TierFeatureModel from base_tier.
    """

    key: str
    display_name: str
    price_monthly_cents: int = 0
    max_locations: Optional[int] = UNBOUNDED
    max_skus: Optional[int] = UNBOUNDED
    tier_class: TierClass = TierClass.INDIVIDUAL
    base_tier: Optional[str] = None
    next_tier: Optional[str] = None
    features: FrozenSet[str] = frozenset()
    featuring_slots: Dict[str, int] = field(default_factory=dict, hash=False, compare=False)
    priority: int = 0

    @property
    def is_organization(self) -> bool:
        return self.tier_class == TierClass.ORGANIZATION

    def restrictiveness(self) -> tuple:
        """Sort key: lower means more restrictive."""
        return (
            _as_sort_key(self.max_locations),
            _as_sort_key(self.max_skus),
            len(self.features),
            self.price_monthly_cents,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "price_monthly_cents": self.price_monthly_cents,
            "max_locations": self.max_locations,
            "max_skus": self.max_skus,
            "tier_class": self.tier_class.value,
            "base_tier": self.base_tier,
            "next_tier": self.next_tier,
            "features": sorted(self.features),
            "featuring_slots": dict(self.featuring_slots),
            "priority": self.priority,
        }


@dataclass(frozen=True)
class TrialOverride:
    """Trial is a status, not a tier: it overrides the tier's location limit."""

    duration_days: int = 14
    location_limit: int = 1


class EntitlementTable:
    """
    Immutable tier lookup.

    Unknown tier keys resolve to the most restrictive configured tier so a
    bad key never grants more than the cheapest plan.
    """

    def __init__(
        self,
        tiers: Iterable[TierDefinition],
        trial: Optional[TrialOverride] = None,
        baseline_tier: str = "google_only",
    ):
        self._tiers: Dict[str, TierDefinition] = {}
        for tier in tiers:
            if tier.key in self._tiers:
                raise ConfigurationError(f"Duplicate tier key '{tier.key}'", tier=tier.key)
            self._tiers[tier.key] = tier

        if not self._tiers:
            raise ConfigurationError("Entitlement table has no tiers")
        if baseline_tier not in self._tiers:
            raise ConfigurationError(
                f"Baseline tier '{baseline_tier}' is not configured",
                tier=baseline_tier,
            )
        for tier in self._tiers.values():
            if tier.next_tier is not None and tier.next_tier not in self._tiers:
                raise ConfigurationError(
                    f"Tier '{tier.key}' points to unknown next tier '{tier.next_tier}'",
                    tier=tier.key,
                )

        self._trial = trial or TrialOverride()
        self._baseline_key = baseline_tier
        self._most_restrictive = min(self._tiers.values(), key=lambda t: t.restrictiveness())

    @property
    def trial(self) -> TrialOverride:
        return self._trial

    @property
    def baseline(self) -> TierDefinition:
        """Tier applied when a trial expires without a paid subscription."""
        return self._tiers[self._baseline_key]

    @property
    def most_restrictive(self) -> TierDefinition:
        return self._most_restrictive

    def __contains__(self, key: object) -> bool:
        return key in self._tiers

    def __iter__(self) -> Iterator[TierDefinition]:
        return iter(self._tiers.values())

    def __len__(self) -> int:
        return len(self._tiers)

    def keys(self) -> List[str]:
        return list(self._tiers.keys())

    def get(self, key: Optional[str]) -> Optional[TierDefinition]:
        """Exact lookup; None when the key is not configured."""
        if key is None:
            return None
        return self._tiers.get(key)

    def resolve(self, key: Optional[str]) -> TierDefinition:
        """Lookup that falls back to the most restrictive tier."""
        tier = self.get(key)
        if tier is None:
            logger.warning(
                "Unknown tier key, using most restrictive tier",
                extra={"tier": key, "fallback_tier": self._most_restrictive.key},
            )
            return self._most_restrictive
        return tier
