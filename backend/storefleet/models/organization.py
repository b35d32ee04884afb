"""
Organization model for chains and franchise groups.

An organization groups several tenants (locations). When it carries its own
subscription tier, that tier governs features and quotas of every member
location instead of the location's own tier.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from storefleet.db_base import Base
from storefleet.models.base import TimestampMixin, generate_uuid


class Organization(Base, TimestampMixin):
    """A chain or franchise that owns several locations."""

    __tablename__ = "organizations"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Display name of the chain or franchise"
    )

    owner_id = Column(
        String(255),
        nullable=False,
        index=True,
        comment="User who owns the organization"
    )

    subscription_tier = Column(
        String(50),
        nullable=True,
        comment="Group tier key; overrides member tenant tiers when set"
    )

    tenants = relationship("Tenant", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, tier={self.subscription_tier})>"
