"""
Tenant model: one retail location.

A tenant carries two independent state machines:
- subscription_status: billing lifecycle (trial, active, past_due, canceled, expired)
- location_status: operational lifecycle of the physical store

Invariant: trial_ends_at is set if and only if subscription_status is trial.
"""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Column, String, Integer, Text, DateTime, Enum, Index, ForeignKey
from sqlalchemy.orm import relationship

from storefleet.db_base import Base
from storefleet.models.base import TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from storefleet.models.organization import Organization
    from storefleet.models.membership import Membership


class SubscriptionStatus(str, enum.Enum):
    """Billing lifecycle of a tenant."""
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


class LocationStatus(str, enum.Enum):
    """Operational lifecycle of the physical location."""
    PENDING = "pending"      # Not yet opened
    ACTIVE = "active"        # Open for business
    INACTIVE = "inactive"    # Temporarily closed
    CLOSED = "closed"        # Permanently closed
    ARCHIVED = "archived"    # Hidden from everything, kept for records


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Tenant(Base, TimestampMixin):
    """
    One managed retail location and its subscription state.

    Ownership:
    - owner_id is the user who owns the location in the lifecycle sense
    - Membership rows grant additional, non-exclusive access
    - organization_id links the location to a chain (optional)
    """

    __tablename__ = "tenants"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Location display name"
    )

    owner_id = Column(
        String(255),
        nullable=False,
        index=True,
        comment="User who owns this location"
    )

    organization_id = Column(
        String(255),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Chain or franchise this location belongs to"
    )

    # Subscription
    subscription_tier = Column(
        String(50),
        nullable=False,
        default="starter",
        comment="Tier key (google_only, starter, professional, ...)"
    )
    subscription_status = Column(
        Enum(
            SubscriptionStatus,
            name="subscription_status",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SubscriptionStatus.TRIAL,
    )
    trial_ends_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of the trial window; only set while in trial"
    )
    external_subscription_ref = Column(
        String(255),
        nullable=True,
        comment="Payment provider subscription id, if a paid plan is attached"
    )

    # Quotas
    sku_quota = Column(
        Integer,
        nullable=True,
        comment="Explicit SKU quota; falls back to the tier's max_skus"
    )
    skus_used_this_period = Column(
        Integer,
        nullable=False,
        default=0,
        comment="SKUs added in the current billing period"
    )

    # Operational status
    location_status = Column(
        Enum(
            LocationStatus,
            name="location_status",
            create_constraint=True,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=LocationStatus.ACTIVE,
    )
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_by = Column(String(255), nullable=True)
    reopening_date = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Planned reopening for temporarily closed locations"
    )
    closure_reason = Column(Text, nullable=True)

    # Provenance
    created_by = Column(
        String(255),
        nullable=True,
        comment="User who created the location (may differ from owner)"
    )
    created_by_role = Column(
        String(50),
        nullable=True,
        comment="Effective role of the creator at creation time"
    )

    organization = relationship("Organization", back_populates="tenants")
    memberships = relationship(
        "Membership",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_tenants_owner_status", "owner_id", "location_status"),
        Index("ix_tenants_subscription_status", "subscription_status"),
    )

    @property
    def is_in_trial(self) -> bool:
        return self.subscription_status == SubscriptionStatus.TRIAL

    @property
    def has_paid_subscription(self) -> bool:
        return bool(self.external_subscription_ref)

    def __repr__(self) -> str:
        return (
            f"<Tenant(id={self.id}, tier={self.subscription_tier}, "
            f"subscription={self.subscription_status}, location={self.location_status})>"
        )
