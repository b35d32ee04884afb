"""
Membership: non-exclusive tenant access grants.

The tenant's owner_id remains the lifecycle owner; memberships only add
users with a tenant-scoped role.
"""

from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from storefleet.db_base import Base
from storefleet.models.base import TimestampMixin, generate_uuid


class Membership(Base, TimestampMixin):
    """User to tenant role assignment."""

    __tablename__ = "memberships"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )

    user_id = Column(
        String(255),
        nullable=False,
        index=True,
    )

    tenant_id = Column(
        String(255),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role = Column(
        String(50),
        nullable=False,
        comment="Tenant-scoped role (owner, admin, manager, member, viewer)"
    )

    tenant = relationship("Tenant", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_membership_user_tenant"),
    )

    def __repr__(self) -> str:
        return f"<Membership(user_id={self.user_id}, tenant_id={self.tenant_id}, role={self.role})>"
