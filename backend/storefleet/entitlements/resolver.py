"""
Entitlement resolution: limits, slots, features and upgrade targets.

Every method is a pure function of its arguments and the injected table;
nothing here touches the database or the environment.

Limits use None (UNBOUNDED) for "no limit".
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from storefleet.constants.roles import Role, parse_role
from storefleet.entitlements.features import FeatureGrant, TierFeatureModel
from storefleet.entitlements.table import (
    EntitlementTable,
    TierDefinition,
    UNBOUNDED,
)
from storefleet.models.tenant import SubscriptionStatus

logger = logging.getLogger(__name__)

# Tier and status given to an owner who has no locations yet
DEFAULT_SIGNUP_TIER = "starter"
DEFAULT_SIGNUP_STATUS = SubscriptionStatus.TRIAL

Limit = Optional[int]


def _status(value: Union[str, SubscriptionStatus, None]) -> Optional[SubscriptionStatus]:
    if value is None or isinstance(value, SubscriptionStatus):
        return value
    try:
        return SubscriptionStatus(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class CreationDecision:
    """Outcome of a location-creation check."""

    allowed: bool
    limit: Limit
    current: int
    limited_by: str
    reason: Optional[str] = None

    @property
    def remaining(self) -> Limit:
        if self.limit is UNBOUNDED:
            return UNBOUNDED
        return max(0, self.limit - self.current)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "limit": self.limit,
            "current": self.current,
            "remaining": self.remaining,
            "limited_by": self.limited_by,
            "reason": self.reason,
        }


class EntitlementResolver:
    """
    Resolves what a tenant may do from {tier, subscription status, role}.

    Constructed once from the engine configuration and shared.
    """

    def __init__(self, table: EntitlementTable, platform_support_cap: int = 3):
        self._table = table
        self._features = TierFeatureModel(table)
        self._platform_support_cap = platform_support_cap

    @property
    def table(self) -> EntitlementTable:
        return self._table

    @property
    def features(self) -> TierFeatureModel:
        return self._features

    def tier(self, tier_key: Optional[str]) -> TierDefinition:
        return self._table.resolve(tier_key)

    # ------------------------------------------------------------------
    # Location limits
    # ------------------------------------------------------------------

    def effective_location_limit(
        self,
        tier_key: Optional[str],
        subscription_status: Union[str, SubscriptionStatus, None],
    ) -> Limit:
        """Trial always gets the trial limit; otherwise the tier's limit."""
        if _status(subscription_status) == SubscriptionStatus.TRIAL:
            return self._table.trial.location_limit
        return self._table.resolve(tier_key).max_locations

    def remaining_location_slots(
        self,
        current_count: int,
        tier_key: Optional[str],
        subscription_status: Union[str, SubscriptionStatus, None],
    ) -> Limit:
        limit = self.effective_location_limit(tier_key, subscription_status)
        if limit is UNBOUNDED:
            return UNBOUNDED
        return max(0, limit - current_count)

    def can_create_location(
        self,
        current_count: int,
        tier_key: Optional[str],
        subscription_status: Union[str, SubscriptionStatus, None],
    ) -> bool:
        limit = self.effective_location_limit(tier_key, subscription_status)
        return limit is UNBOUNDED or current_count < limit

    def platform_creation_limit(self, actor_role: Union[str, Role, None]) -> Limit:
        """
        How many locations a platform actor may create for one owner.

        Tenant-scoped roles are not constrained here (UNBOUNDED); the owner's
        tier limit applies to them instead. Unknown roles get 0.
        """
        role = parse_role(actor_role)
        if role == Role.PLATFORM_ADMIN:
            return UNBOUNDED
        if role == Role.PLATFORM_SUPPORT:
            return self._platform_support_cap
        if role == Role.PLATFORM_VIEWER or role is None:
            return 0
        return UNBOUNDED

    def check_location_creation(
        self,
        actor_role: Union[str, Role, None],
        owner_tier: Optional[str],
        owner_status: Union[str, SubscriptionStatus, None],
        owner_location_count: int,
        created_by_support_count: int = 0,
    ) -> CreationDecision:
        """
        Combine the platform cap with the owner's tier limit.

        Platform admin bypasses tier limits. Platform support is capped per
        target owner regardless of tier. Platform viewer cannot create.
        Everyone else is held to the owner's tier (or trial) limit.
        """
        role = parse_role(actor_role)

        if role is None or role == Role.PLATFORM_VIEWER:
            return CreationDecision(
                allowed=False,
                limit=0,
                current=owner_location_count,
                limited_by="role",
                reason="This role cannot create locations",
            )

        if role == Role.PLATFORM_ADMIN:
            return CreationDecision(
                allowed=True,
                limit=UNBOUNDED,
                current=owner_location_count,
                limited_by="platform_admin",
            )

        if role == Role.PLATFORM_SUPPORT:
            cap = self.platform_creation_limit(role)
            allowed = created_by_support_count < cap
            return CreationDecision(
                allowed=allowed,
                limit=cap,
                current=created_by_support_count,
                limited_by="platform_support_cap",
                reason=None if allowed else (
                    f"Platform support may create at most {cap} locations per owner"
                ),
            )

        limit = self.effective_location_limit(owner_tier, owner_status)
        allowed = self.can_create_location(owner_location_count, owner_tier, owner_status)
        limited_by = "trial" if _status(owner_status) == SubscriptionStatus.TRIAL else "tier"
        return CreationDecision(
            allowed=allowed,
            limit=limit,
            current=owner_location_count,
            limited_by=limited_by,
            reason=None if allowed else f"Location limit of {limit} reached",
        )

    # ------------------------------------------------------------------
    # Features and upgrades
    # ------------------------------------------------------------------

    def effective_feature_set(self, tier_key: Optional[str]) -> FrozenSet[str]:
        return self._features.effective_feature_set(tier_key)

    def feature_grants(self, tier_key: Optional[str]) -> List[FeatureGrant]:
        return self._features.feature_grants(tier_key)

    def has_feature(self, tier_key: Optional[str], feature: str) -> bool:
        return self._features.has_feature(tier_key, feature)

    def required_tier_for(self, feature: str) -> Optional[str]:
        return self._features.required_tier_for(feature)

    def upgrade_target(
        self,
        tier_key: Optional[str],
        subscription_status: Union[str, SubscriptionStatus, None],
    ) -> Optional[str]:
        """
        Next tier to offer.

        In trial the target is the same tier: the action is "convert to
        paid", not "change tier".
        """
        tier = self._table.resolve(tier_key)
        if _status(subscription_status) == SubscriptionStatus.TRIAL:
            return tier.key
        return tier.next_tier

    # ------------------------------------------------------------------
    # Quotas
    # ------------------------------------------------------------------

    def sku_quota(self, tier_key: Optional[str], explicit_quota: Optional[int] = None) -> Limit:
        """Tenant's explicit quota wins over the tier's max_skus."""
        if explicit_quota is not None:
            return explicit_quota
        return self._table.resolve(tier_key).max_skus

    def sku_quota_remaining(
        self,
        tier_key: Optional[str],
        used: int,
        explicit_quota: Optional[int] = None,
    ) -> Limit:
        quota = self.sku_quota(tier_key, explicit_quota)
        if quota is UNBOUNDED:
            return UNBOUNDED
        return max(0, quota - (used or 0))

    def featuring_slot_limit(self, tier_key: Optional[str], slot_type: str) -> int:
        """Unknown slot types get zero slots."""
        return self._table.resolve(tier_key).featuring_slots.get(slot_type, 0)

    def featuring_slots_remaining(self, tier_key: Optional[str], slot_type: str, used: int) -> int:
        return max(0, self.featuring_slot_limit(tier_key, slot_type) - (used or 0))

    # ------------------------------------------------------------------
    # Tier selection
    # ------------------------------------------------------------------

    def effective_tier_key(
        self,
        tenant_tier: Optional[str],
        organization_tier: Optional[str] = None,
    ) -> str:
        """Organization tier, when set, governs every member location."""
        if organization_tier:
            return self._table.resolve(organization_tier).key
        return self._table.resolve(tenant_tier).key

    def owner_effective_tier(
        self,
        owned: Iterable[Tuple[Optional[str], Union[str, SubscriptionStatus, None]]],
    ) -> Tuple[str, SubscriptionStatus]:
        """
        Pick the owner's governing (tier, status) among owned locations.

        The highest-priority tier wins; an owner with no locations is a new
        signup and gets the default tier in trial.
        """
        best: Optional[Tuple[TierDefinition, Optional[SubscriptionStatus]]] = None
        for tier_key, status in owned:
            tier = self._table.resolve(tier_key)
            if best is None or tier.priority > best[0].priority:
                best = (tier, _status(status))

        if best is None:
            return self._table.resolve(DEFAULT_SIGNUP_TIER).key, DEFAULT_SIGNUP_STATUS
        return best[0].key, best[1] or DEFAULT_SIGNUP_STATUS
