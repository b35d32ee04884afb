"""
Location lifecycle service.

Single entry point for callers (HTTP routes, jobs):
- get_effective_entitlements
- change_status / preview_status_change
- get_status_history
- reconcile_trial (applied on every tenant read)
- check_location_creation / create_location

Built per request from the process-wide EngineConfig and SideEffectQueue.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from storefleet.config.engine import EngineConfig
from storefleet.constants.roles import Role
from storefleet.entitlements.errors import ForbiddenError, NotFoundError
from storefleet.entitlements.resolver import CreationDecision, EntitlementResolver
from storefleet.lifecycle.history import HistoryRecorder, HistorySink, StatusHistoryEntry
from storefleet.lifecycle.policy import TransitionPolicy
from storefleet.lifecycle.side_effects import SideEffectQueue
from storefleet.lifecycle.state_machine import (
    LifecycleStateMachine,
    StatusChangeResult,
    StatusPreview,
)
from storefleet.lifecycle.status import can_access_location
from storefleet.lifecycle.sync import DirectorySyncClient, ExternalSyncCoordinator
from storefleet.lifecycle.trial import TrialExpirationEvaluator
from storefleet.models.base import as_utc, utc_now
from storefleet.models.membership import Membership
from storefleet.models.tenant import LocationStatus, SubscriptionStatus, Tenant
from storefleet.platform.actor import Actor
from storefleet.repositories.tenants_repo import TenantRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectiveEntitlements:
    """Resolved entitlements of one tenant at one instant."""

    tenant_id: str
    tier: str
    subscription_status: str
    location_limit: Optional[int]
    location_count: int
    remaining_slots: Optional[int]
    feature_set: List[str] = field(hash=False, compare=False)
    upgrade_target: Optional[str] = None
    sku_quota: Optional[int] = None
    sku_quota_remaining: Optional[int] = None
    featuring_slots: Dict[str, int] = field(default_factory=dict, hash=False, compare=False)
    trial_ends_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "tier": self.tier,
            "subscription_status": self.subscription_status,
            "location_limit": self.location_limit,
            "location_count": self.location_count,
            "remaining_slots": self.remaining_slots,
            "feature_set": list(self.feature_set),
            "upgrade_target": self.upgrade_target,
            "sku_quota": self.sku_quota,
            "sku_quota_remaining": self.sku_quota_remaining,
            "featuring_slots": dict(self.featuring_slots),
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
        }


class LocationLifecycleService:
    """Entitlement and lifecycle operations over the relational store."""

    def __init__(
        self,
        db_session: Session,
        config: EngineConfig,
        queue: SideEffectQueue,
        history_sink: Optional[HistorySink] = None,
        directory_client: Optional[DirectorySyncClient] = None,
        policy: Optional[TransitionPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db_session
        self.config = config
        self.repo = TenantRepository(db_session)
        self.resolver = EntitlementResolver(config.table, config.platform_support_cap)
        self.trial = TrialExpirationEvaluator(config.table, clock=clock)
        self.history = HistoryRecorder(history_sink)
        self.sync = ExternalSyncCoordinator(directory_client)
        self.state_machine = LifecycleStateMachine(
            writer=self.repo,
            history=self.history,
            sync=self.sync,
            queue=queue,
            policy=policy,
            clock=clock,
        )
        self._clock = clock

    # --- Reads ---

    def get_tenant(self, tenant_id: str, actor: Optional[Actor] = None) -> Tenant:
        """
        Read a tenant through trial reconciliation.

        When an actor is given, read access is checked on the stored row
        before any trial write-back happens.

        Raises:
            NotFoundError: unknown tenant
            ForbiddenError: actor may not read this location
        """
        tenant = self.repo.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant", tenant_id)
        if actor is not None:
            self.require_read_access(actor, tenant)
        return self.reconcile_trial(tenant)

    def reconcile_trial(self, tenant: Tenant) -> Tenant:
        return self.trial.reconcile(tenant, persist=self.repo.save_trial_changes)

    def get_effective_entitlements(self, tenant_id: str) -> EffectiveEntitlements:
        tenant = self.get_tenant(tenant_id)

        organization_tier = tenant.organization.subscription_tier if tenant.organization else None
        tier_key = self.resolver.effective_tier_key(tenant.subscription_tier, organization_tier)
        status = tenant.subscription_status
        location_count = self.repo.count_owned_locations(tenant.owner_id)
        tier = self.resolver.tier(tier_key)

        return EffectiveEntitlements(
            tenant_id=tenant.id,
            tier=tier_key,
            subscription_status=status.value,
            location_limit=self.resolver.effective_location_limit(tier_key, status),
            location_count=location_count,
            remaining_slots=self.resolver.remaining_location_slots(location_count, tier_key, status),
            feature_set=sorted(self.resolver.effective_feature_set(tier_key)),
            upgrade_target=self.resolver.upgrade_target(tier_key, status),
            sku_quota=self.resolver.sku_quota(tier_key, tenant.sku_quota),
            sku_quota_remaining=self.resolver.sku_quota_remaining(
                tier_key, tenant.skus_used_this_period or 0, tenant.sku_quota,
            ),
            featuring_slots=dict(tier.featuring_slots),
            trial_ends_at=as_utc(tenant.trial_ends_at),
        )

    def get_status_history(self, tenant_id: str, limit: Optional[int] = None) -> List[StatusHistoryEntry]:
        """Most recent first. limit defaults to 50 and is clamped to 1..200."""
        if self.repo.get_by_id(tenant_id) is None:
            raise NotFoundError("Tenant", tenant_id)
        if limit is None:
            limit = self.config.history_default_limit
        limit = max(1, min(limit, self.config.history_max_limit))
        return self.history.list_entries(tenant_id, limit)

    # --- Roles ---

    def resolve_role(self, actor: Actor, tenant: Tenant) -> Optional[Role]:
        """
        Effective role of the actor on this tenant.

        Platform roles come from the gateway; tenant roles only from ownership
        or a Membership row, never from the request.
        """
        if actor.is_platform:
            return actor.role
        if tenant.owner_id == actor.user_id:
            return Role.OWNER
        return self.repo.get_membership_role(actor.user_id, tenant.id)

    def require_read_access(self, actor: Actor, tenant: Tenant) -> Role:
        """
        Resolve the actor's role and check it against the location status.

        Raises:
            ForbiddenError: no role on the tenant, or the status hides it
        """
        role = self.resolve_role(actor, tenant)
        if role is None or not can_access_location(tenant.location_status, role):
            logger.warning(
                "Location read denied",
                extra={
                    "tenant_id": tenant.id,
                    "actor": actor.user_id,
                    "role": role.value if role else None,
                    "location_status": tenant.location_status.value,
                },
            )
            raise ForbiddenError(
                "You do not have access to this location",
                role=role.value if role else None,
                location_status=tenant.location_status.value,
            )
        return role

    # --- Status ---

    def change_status(
        self,
        tenant_id: str,
        actor: Actor,
        target_status: Union[str, LocationStatus],
        reason: Optional[str] = None,
        reopening_date: Optional[datetime] = None,
    ) -> StatusChangeResult:
        tenant = self.get_tenant(tenant_id)
        role = self.resolve_role(actor, tenant)
        return self.state_machine.change_status(
            tenant,
            actor_id=actor.user_id,
            actor_role=role,
            target_status=target_status,
            reason=reason,
            reopening_date=reopening_date,
        )

    def preview_status_change(
        self,
        tenant_id: str,
        target_status: Union[str, LocationStatus],
        actor: Optional[Actor] = None,
    ) -> StatusPreview:
        tenant = self.get_tenant(tenant_id)
        if actor is None:
            return self.state_machine.preview_impact(tenant, target_status)
        return self.state_machine.preview_impact(
            tenant,
            target_status,
            actor_role=self.resolve_role(actor, tenant),
            check_role=True,
        )

    # --- Creation ---

    def check_location_creation(self, actor: Actor, owner_id: str) -> CreationDecision:
        # Owned rows go through trial reconciliation like any other read
        owned = [self.reconcile_trial(tenant) for tenant in self.repo.list_owned(owner_id)]
        owner_tier, owner_status = self.resolver.owner_effective_tier(
            (tenant.subscription_tier, tenant.subscription_status) for tenant in owned
        )
        role = actor.role if actor.is_platform else Role.OWNER
        return self.resolver.check_location_creation(
            actor_role=role,
            owner_tier=owner_tier,
            owner_status=owner_status,
            owner_location_count=self.repo.count_owned_locations(owner_id),
            created_by_support_count=self.repo.count_created_by_role(owner_id, Role.PLATFORM_SUPPORT),
        )

    def create_location(
        self,
        actor: Actor,
        name: str,
        owner_id: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> Tenant:
        """
        Create a location in trial on the signup tier.

        Only platform actors may create on behalf of another owner.

        Raises:
            ForbiddenError: creating for someone else, or limit reached
        """
        if owner_id and owner_id != actor.user_id and not actor.is_platform:
            raise ForbiddenError(
                "Only platform staff can create locations for another owner",
                role=actor.role_value,
            )
        owner = owner_id or actor.user_id

        decision = self.check_location_creation(actor, owner)
        if not decision.allowed:
            logger.info(
                "Location creation denied",
                extra={"owner_id": owner, "actor": actor.user_id, "decision": decision.to_dict()},
            )
            raise ForbiddenError(
                decision.reason or "Location limit reached",
                role=actor.role_value,
                limit=decision.limit,
                current=decision.current,
                limited_by=decision.limited_by,
            )

        now = self._clock()
        tenant = self.repo.create(
            name=name,
            owner_id=owner,
            organization_id=organization_id,
            subscription_tier=self.resolver.owner_effective_tier([])[0],
            subscription_status=SubscriptionStatus.TRIAL,
            trial_ends_at=now + timedelta(days=self.config.trial_duration_days),
            location_status=LocationStatus.ACTIVE,
            created_by=actor.user_id,
            created_by_role=actor.role_value if actor.is_platform else Role.OWNER.value,
            memberships=[Membership(user_id=owner, role=Role.OWNER.value)],
        )
        return tenant
