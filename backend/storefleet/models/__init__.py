"""
Database models for tenants, tiers, memberships and status history.
"""

from storefleet.models.base import TimestampMixin, TenantScopedMixin
from storefleet.models.organization import Organization
from storefleet.models.tenant import Tenant, SubscriptionStatus, LocationStatus
from storefleet.models.membership import Membership
from storefleet.models.tier import Tier, TierFeature, TierClass
from storefleet.models.location_status_log import LocationStatusLog

__all__ = [
    "TimestampMixin",
    "TenantScopedMixin",
    "Organization",
    "Tenant",
    "SubscriptionStatus",
    "LocationStatus",
    "Membership",
    "Tier",
    "TierFeature",
    "TierClass",
    "LocationStatusLog",
]
