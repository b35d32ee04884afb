"""
Tier and TierFeature models for subscription tiers.

Tiers are GLOBAL (not tenant-scoped). A tier may inherit the feature set of
a base tier; TierFeature rows hold only the tier-specific additions.
The YAML tier file and these tables describe the same table; either can
seed the in-memory EntitlementTable.
"""

import enum

from sqlalchemy import (
    Column, String, Integer, Boolean, Enum, JSON,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from storefleet.db_base import Base
from storefleet.models.base import TimestampMixin, generate_uuid


class TierClass(str, enum.Enum):
    """Individual locations vs. organization/chain groups."""
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class Tier(Base, TimestampMixin):
    """
    Defines a subscription tier and its quotas.

    NULL max_locations / max_skus mean unbounded.
    """

    __tablename__ = "tiers"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    key = Column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
        comment="Tier key (google_only, starter, professional, ...)"
    )
    display_name = Column(
        String(100),
        nullable=False,
        comment="Display name (Starter, Professional, ...)"
    )

    # Pricing (in cents to avoid floating point issues)
    price_monthly_cents = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Monthly price in cents (4900 = $49.00)"
    )

    # Quotas
    max_skus = Column(
        Integer,
        nullable=True,
        comment="SKU quota hint; NULL = unbounded"
    )
    max_locations = Column(
        Integer,
        nullable=True,
        comment="Location limit for the owner; NULL = unbounded"
    )
    featuring_slots = Column(
        JSON,
        nullable=True,
        comment="Featured-product slots per slot type"
    )

    tier_class = Column(
        Enum(
            TierClass,
            name="tier_class",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=TierClass.INDIVIDUAL,
    )
    base_tier_key = Column(
        String(50),
        nullable=True,
        comment="Tier whose feature set this tier inherits"
    )
    next_tier_key = Column(
        String(50),
        nullable=True,
        comment="Upgrade target"
    )

    priority = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Owner effective-tier priority; higher wins"
    )
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    features = relationship(
        "TierFeature",
        back_populates="tier",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Tier(key={self.key}, max_locations={self.max_locations})>"


class TierFeature(Base, TimestampMixin):
    """
    A feature declared by a tier.

    is_inherited is a provenance flag only; it never changes enablement.
    """

    __tablename__ = "tier_features"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid
    )

    tier_id = Column(
        String(36),
        ForeignKey("tiers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    feature_key = Column(
        String(100),
        nullable=False,
        comment="Feature identifier (storefront, barcode_scan, ...)"
    )
    display_name = Column(String(255), nullable=True)
    is_inherited = Column(Boolean, nullable=False, default=False)

    tier = relationship("Tier", back_populates="features")

    __table_args__ = (
        UniqueConstraint("tier_id", "feature_key", name="uq_tier_feature"),
    )

    def __repr__(self) -> str:
        return f"<TierFeature(tier_id={self.tier_id}, feature={self.feature_key})>"
