"""
Tiers repository.

Tiers are global (not tenant-scoped). The tiers tables can seed the
in-memory EntitlementTable instead of config/tiers.yml, and can be seeded
from it.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefleet.entitlements.table import EntitlementTable, TierDefinition, TrialOverride
from storefleet.models.tier import Tier, TierFeature

logger = logging.getLogger(__name__)


class TiersRepository:
    """Repository for Tier and TierFeature rows."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_by_key(self, key: str) -> Optional[Tier]:
        return (
            self.db.query(Tier)
            .options(selectinload(Tier.features))
            .filter(Tier.key == key)
            .first()
        )

    def list_active(self) -> List[Tier]:
        return (
            self.db.query(Tier)
            .options(selectinload(Tier.features))
            .filter(Tier.is_active.is_(True))
            .order_by(Tier.sort_order, Tier.key)
            .all()
        )

    @staticmethod
    def to_definition(tier: Tier) -> TierDefinition:
        return TierDefinition(
            key=tier.key,
            display_name=tier.display_name,
            price_monthly_cents=tier.price_monthly_cents or 0,
            max_locations=tier.max_locations,
            max_skus=tier.max_skus,
            tier_class=tier.tier_class,
            base_tier=tier.base_tier_key,
            next_tier=tier.next_tier_key,
            features=frozenset(f.feature_key for f in tier.features if not f.is_inherited),
            featuring_slots=dict(tier.featuring_slots or {}),
            priority=tier.priority or 0,
        )

    def load_table(
        self,
        trial: Optional[TrialOverride] = None,
        baseline_tier: str = "google_only",
    ) -> EntitlementTable:
        """
        Build an EntitlementTable from active tier rows.

        Rows flagged is_inherited are provenance copies and are skipped; the
        feature model derives inherited features from base_tier_key.
        """
        definitions = [self.to_definition(tier) for tier in self.list_active()]
        logger.info("Loaded tiers from database", extra={"tier_count": len(definitions)})
        return EntitlementTable(definitions, trial=trial, baseline_tier=baseline_tier)

    def seed_from_table(self, table: EntitlementTable) -> int:
        """
        Insert tiers missing from the database. Existing keys are left alone.

        Returns:
            Number of tiers inserted
        """
        existing = {key for (key,) in self.db.query(Tier.key).all()}
        inserted = 0
        for definition in table:
            if definition.key in existing:
                continue
            tier = Tier(
                key=definition.key,
                display_name=definition.display_name,
                price_monthly_cents=definition.price_monthly_cents,
                max_locations=definition.max_locations,
                max_skus=definition.max_skus,
                featuring_slots=dict(definition.featuring_slots),
                tier_class=definition.tier_class,
                base_tier_key=definition.base_tier,
                next_tier_key=definition.next_tier,
                priority=definition.priority,
            )
            tier.features = [
                TierFeature(feature_key=feature, is_inherited=False)
                for feature in sorted(definition.features)
            ]
            self.db.add(tier)
            inserted += 1

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to seed tiers", extra={"error": str(e)})
            raise

        logger.info("Seeded tiers", extra={"inserted": inserted})
        return inserted
