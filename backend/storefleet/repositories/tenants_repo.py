"""
Tenant repository.

All tenant reads and writes used by the engine go through here. Writes
commit immediately and roll back on SQLAlchemyError before re-raising.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefleet.constants.roles import Role, parse_role
from storefleet.models.membership import Membership
from storefleet.models.tenant import LocationStatus, SubscriptionStatus, Tenant

logger = logging.getLogger(__name__)

# Statuses that count against an owner's location limit
COUNTED_STATUSES = tuple(s for s in LocationStatus if s != LocationStatus.ARCHIVED)


class TenantRepository:
    """Tenant, organization-tier and membership queries."""

    def __init__(self, db_session: Session):
        self.db = db_session

    # --- Reads ---

    def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def count_owned_locations(self, owner_id: str) -> int:
        """Locations that count toward the owner's limit (archived excluded)."""
        return (
            self.db.query(func.count(Tenant.id))
            .filter(
                Tenant.owner_id == owner_id,
                Tenant.location_status.in_(COUNTED_STATUSES),
            )
            .scalar()
        ) or 0

    def count_created_by_role(self, owner_id: str, role: Role) -> int:
        """Locations created for this owner by actors holding the given role."""
        return (
            self.db.query(func.count(Tenant.id))
            .filter(
                Tenant.owner_id == owner_id,
                Tenant.created_by_role == role.value,
            )
            .scalar()
        ) or 0

    def list_owned(self, owner_id: str) -> List[Tenant]:
        """Every location the owner has, archived included."""
        return (
            self.db.query(Tenant)
            .filter(Tenant.owner_id == owner_id)
            .order_by(Tenant.id)
            .all()
        )

    def list_trial_tenants(self, batch_size: int = 500, after_id: Optional[str] = None) -> List[Tenant]:
        """Trial tenants ordered by id, starting after after_id."""
        query = self.db.query(Tenant).filter(Tenant.subscription_status == SubscriptionStatus.TRIAL)
        if after_id is not None:
            query = query.filter(Tenant.id > after_id)
        return query.order_by(Tenant.id).limit(batch_size).all()

    def get_membership_role(self, user_id: str, tenant_id: str) -> Optional[Role]:
        membership = (
            self.db.query(Membership)
            .filter(Membership.user_id == user_id, Membership.tenant_id == tenant_id)
            .first()
        )
        if membership is None:
            return None
        return parse_role(membership.role)

    # --- Writes ---

    def create(self, **fields: Any) -> Tenant:
        tenant = Tenant(**fields)
        self.db.add(tenant)
        try:
            self.db.commit()
            self.db.refresh(tenant)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to create tenant",
                extra={"owner_id": fields.get("owner_id"), "error": str(e)},
            )
            raise

        logger.info(
            "Tenant created",
            extra={"tenant_id": tenant.id, "owner_id": tenant.owner_id},
        )
        return tenant

    def apply_status_change(
        self,
        tenant_id: str,
        expected_status: LocationStatus,
        new_status: LocationStatus,
        changed_at: datetime,
        changed_by: str,
        reopening_date: Optional[datetime],
        closure_reason: Optional[str],
    ) -> bool:
        """
        Conditional single-row update.

        Returns False when the row is gone or its status no longer matches
        expected_status (a concurrent change won).
        """
        stmt = (
            update(Tenant)
            .where(Tenant.id == tenant_id, Tenant.location_status == expected_status)
            .values(
                location_status=new_status,
                status_changed_at=changed_at,
                status_changed_by=changed_by,
                reopening_date=reopening_date,
                closure_reason=closure_reason,
            )
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to update location status",
                extra={"tenant_id": tenant_id, "new_status": new_status.value, "error": str(e)},
            )
            raise

        return result.rowcount == 1

    def save_trial_changes(self, tenant_id: str, updates: Dict[str, Any]) -> None:
        """Persist trial reconciliation results."""
        try:
            self.db.execute(
                update(Tenant)
                .where(Tenant.id == tenant_id)
                .values(**updates)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Failed to save trial changes",
                extra={"tenant_id": tenant_id, "error": str(e)},
            )
            raise
