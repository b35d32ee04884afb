"""
Tests for TiersRepository: seeding tier rows and loading them back.
"""

from storefleet.entitlements.features import TierFeatureModel
from storefleet.models.tier import Tier, TierClass, TierFeature
from storefleet.repositories.tiers_repo import TiersRepository


class TestTiersRepository:
    """Round trip between the YAML table and the tiers tables."""

    def test_seed_then_load(self, db_session, table):
        repo = TiersRepository(db_session)

        assert repo.seed_from_table(table) == len(table)
        loaded = repo.load_table(trial=table.trial, baseline_tier=table.baseline.key)

        assert set(loaded.keys()) == set(table.keys())
        assert loaded.get("chain_enterprise").tier_class == TierClass.ORGANIZATION
        assert loaded.get("organization").max_locations is None
        assert loaded.get("starter").featuring_slots == table.get("starter").featuring_slots
        assert (
            TierFeatureModel(loaded).effective_feature_set("enterprise")
            == TierFeatureModel(table).effective_feature_set("enterprise")
        )

    def test_seed_is_idempotent(self, db_session, table):
        repo = TiersRepository(db_session)
        repo.seed_from_table(table)
        assert repo.seed_from_table(table) == 0

    def test_inherited_rows_skipped(self, db_session, table):
        repo = TiersRepository(db_session)
        repo.seed_from_table(table)

        starter = repo.get_by_key("starter")
        starter.features.append(TierFeature(feature_key="google_shopping", is_inherited=True))
        db_session.flush()

        definition = repo.to_definition(repo.get_by_key("starter"))
        assert "google_shopping" not in definition.features
        assert "storefront" in definition.features

    def test_inactive_tiers_excluded(self, db_session, table):
        repo = TiersRepository(db_session)
        repo.seed_from_table(table)
        db_session.query(Tier).filter(Tier.key == "chain_starter").update({"is_active": False})
        db_session.flush()

        assert "chain_starter" not in [t.key for t in repo.list_active()]
