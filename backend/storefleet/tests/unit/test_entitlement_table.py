"""
Tests for the entitlement table and its YAML loader.

Tests cover:
- Loading the repository tier file
- Unbounded limits (null and -1)
- Unknown tier keys resolving to the most restrictive tier
- Configuration errors (duplicates, missing baseline, dangling next tier)
- Trial and baseline overrides
"""

import pytest

from storefleet.config.engine import load_engine_config
from storefleet.entitlements.errors import ConfigurationError
from storefleet.entitlements.loader import (
    build_entitlement_table,
    load_entitlement_table,
    parse_tier,
    resolve_tiers_path,
)
from storefleet.entitlements.table import (
    EntitlementTable,
    TierDefinition,
    TrialOverride,
    UNBOUNDED,
)
from storefleet.models.tier import TierClass


def _raw(**tiers):
    return {"baseline_tier": "basic", "tiers": tiers}


BASIC = {"max_locations": 1, "max_skus": 100, "features": ["a"], "priority": 1}
PLUS = {"max_locations": 5, "max_skus": None, "features": ["b"], "base_tier": "basic", "priority": 2}


# =============================================================================
# Repository Tier File
# =============================================================================

class TestRepositoryTierFile:
    """The shipped config/tiers.yml."""

    def test_all_tiers_present(self, table):
        assert set(table.keys()) == {
            "google_only", "starter", "professional", "enterprise",
            "organization", "chain_starter", "chain_professional", "chain_enterprise",
        }

    def test_location_limits(self, table):
        assert table.get("google_only").max_locations == 1
        assert table.get("starter").max_locations == 1
        assert table.get("professional").max_locations == 3
        assert table.get("enterprise").max_locations == 10
        assert table.get("organization").max_locations is UNBOUNDED
        assert table.get("chain_starter").max_locations == 5
        assert table.get("chain_professional").max_locations == 25
        assert table.get("chain_enterprise").max_locations is UNBOUNDED

    def test_sku_limits(self, table):
        assert table.get("starter").max_skus == 500
        assert table.get("enterprise").max_skus is UNBOUNDED
        assert table.get("organization").max_skus == 10000

    def test_trial_and_baseline(self, table):
        assert table.trial.duration_days == 14
        assert table.trial.location_limit == 1
        assert table.baseline.key == "google_only"

    def test_group_tiers_are_organization_class(self, table):
        assert table.get("organization").is_organization
        assert table.get("chain_professional").is_organization
        assert not table.get("professional").is_organization

    def test_upgrade_pointers(self, table):
        assert table.get("google_only").next_tier == "starter"
        assert table.get("starter").next_tier == "professional"
        assert table.get("professional").next_tier == "enterprise"
        assert table.get("enterprise").next_tier is None


# =============================================================================
# Lookup
# =============================================================================

class TestResolve:
    """Exact lookup and most-restrictive fallback."""

    def test_get_unknown_returns_none(self, table):
        assert table.get("platinum") is None
        assert table.get(None) is None

    def test_resolve_unknown_uses_most_restrictive(self, table):
        assert table.most_restrictive.key == "google_only"
        assert table.resolve("platinum").key == "google_only"
        assert table.resolve(None).key == "google_only"

    def test_resolve_known(self, table):
        assert table.resolve("professional").key == "professional"

    def test_contains_and_len(self, table):
        assert "starter" in table
        assert "platinum" not in table
        assert len(table) == 8

    def test_most_restrictive_prefers_lower_limits(self):
        table = EntitlementTable(
            [
                TierDefinition(key="big", display_name="Big", max_locations=UNBOUNDED),
                TierDefinition(key="small", display_name="Small", max_locations=1, max_skus=10),
            ],
            baseline_tier="big",
        )
        assert table.most_restrictive.key == "small"


# =============================================================================
# Construction Errors
# =============================================================================

class TestTableErrors:
    """Broken tables fail at construction."""

    def test_duplicate_key(self):
        tier = TierDefinition(key="a", display_name="A")
        with pytest.raises(ConfigurationError, match="Duplicate"):
            EntitlementTable([tier, tier], baseline_tier="a")

    def test_empty_table(self):
        with pytest.raises(ConfigurationError):
            EntitlementTable([], baseline_tier="a")

    def test_missing_baseline(self):
        with pytest.raises(ConfigurationError, match="Baseline"):
            EntitlementTable([TierDefinition(key="a", display_name="A")], baseline_tier="b")

    def test_dangling_next_tier(self):
        with pytest.raises(ConfigurationError, match="next tier"):
            EntitlementTable(
                [TierDefinition(key="a", display_name="A", next_tier="missing")],
                baseline_tier="a",
            )


# =============================================================================
# Loader
# =============================================================================

class TestParseTier:
    """Parsing one YAML tier entry."""

    def test_null_and_minus_one_are_unbounded(self):
        assert parse_tier("x", {"max_locations": None}).max_locations is UNBOUNDED
        assert parse_tier("x", {"max_locations": -1}).max_locations is UNBOUNDED

    def test_negative_limit_rejected(self):
        with pytest.raises(ConfigurationError, match="negative"):
            parse_tier("x", {"max_skus": -5})

    def test_non_integer_limit_rejected(self):
        with pytest.raises(ConfigurationError, match="non-integer"):
            parse_tier("x", {"max_skus": "lots"})

    def test_unknown_tier_class_rejected(self):
        with pytest.raises(ConfigurationError, match="tier_class"):
            parse_tier("x", {"tier_class": "galactic"})

    def test_defaults(self):
        tier = parse_tier("chain_basic", {})
        assert tier.display_name == "Chain Basic"
        assert tier.tier_class == TierClass.INDIVIDUAL
        assert tier.features == frozenset()
        assert tier.featuring_slots == {}

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_tier("x", ["nope"])


class TestBuildTable:
    """Building the table from parsed YAML."""

    def test_overrides_win_over_file(self):
        raw = _raw(basic=BASIC, plus=PLUS)
        raw["trial"] = {"duration_days": 30, "location_limit": 2}
        table = build_entitlement_table(raw, trial_duration_days=7, trial_location_limit=3)
        assert table.trial == TrialOverride(duration_days=7, location_limit=3)

    def test_file_trial_settings(self):
        raw = _raw(basic=BASIC)
        raw["trial"] = {"duration_days": 30}
        table = build_entitlement_table(raw)
        assert table.trial.duration_days == 30
        assert table.trial.location_limit == 1

    def test_baseline_override(self):
        table = build_entitlement_table(_raw(basic=BASIC, plus=PLUS), baseline_tier="plus")
        assert table.baseline.key == "plus"

    def test_missing_tiers(self):
        with pytest.raises(ConfigurationError, match="tiers"):
            build_entitlement_table({"baseline_tier": "basic"})


class TestLoadFromFile:
    """Reading YAML from disk."""

    def test_load_written_file(self, make_yaml_config):
        path = make_yaml_config("tiers.yml", _raw(basic=BASIC, plus=PLUS))
        table = load_entitlement_table(str(path))
        assert table.keys() == ["basic", "plus"]
        assert table.get("plus").max_skus is UNBOUNDED

    def test_invalid_yaml(self, temp_config_dir):
        path = temp_config_dir / "tiers.yml"
        path.write_text("tiers: [unclosed")
        with pytest.raises(ConfigurationError, match="YAML"):
            load_entitlement_table(str(path))

    def test_missing_file(self, temp_config_dir):
        with pytest.raises(ConfigurationError, match="not found"):
            load_entitlement_table(str(temp_config_dir / "absent.yml"))

    def test_env_var_path(self, make_yaml_config, monkeypatch):
        path = make_yaml_config("custom.yml", _raw(basic=BASIC))
        monkeypatch.setenv("STOREFLEET_TIERS_CONFIG", str(path))
        assert resolve_tiers_path() == path

    def test_injected_env_wins_over_process_env(self, make_yaml_config, monkeypatch):
        injected = make_yaml_config("injected.yml", _raw(basic=BASIC))
        process = make_yaml_config("process.yml", _raw(basic=BASIC, plus=PLUS))
        monkeypatch.setenv("STOREFLEET_TIERS_CONFIG", str(process))

        assert resolve_tiers_path(env={"STOREFLEET_TIERS_CONFIG": str(injected)}) == injected

    def test_engine_config_uses_injected_env(self, make_yaml_config, monkeypatch):
        path = make_yaml_config("injected.yml", _raw(basic=BASIC, plus=PLUS))
        monkeypatch.delenv("STOREFLEET_TIERS_CONFIG", raising=False)

        config = load_engine_config(env={"STOREFLEET_TIERS_CONFIG": str(path)})
        assert config.table.keys() == ["basic", "plus"]
