"""
Entitlement Loader - build the EntitlementTable from config/tiers.yml.

The YAML file is the source of truth for tier quotas and feature sets.
Do NOT hardcode tier limits elsewhere.

Usage:
    from storefleet.entitlements.loader import load_entitlement_table

    table = load_entitlement_table()
    table.resolve("professional").max_locations  # 3
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from storefleet.entitlements.errors import ConfigurationError
from storefleet.entitlements.table import (
    EntitlementTable,
    TierDefinition,
    TrialOverride,
    UNBOUNDED,
)
from storefleet.models.tier import TierClass

logger = logging.getLogger(__name__)

TIERS_CONFIG_ENV = "STOREFLEET_TIERS_CONFIG"
TIERS_CONFIG_FILENAME = "tiers.yml"


def resolve_tiers_path(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Path:
    """
    Locate the tier file.

    Order: explicit path, STOREFLEET_TIERS_CONFIG, repo config/, cwd config/.
    env defaults to os.environ.
    """
    if config_path:
        return Path(config_path)

    env = os.environ if env is None else env
    env_path = env.get(TIERS_CONFIG_ENV)
    if env_path:
        return Path(env_path)

    candidates = [
        Path(__file__).parent.parent.parent.parent / "config" / TIERS_CONFIG_FILENAME,
        Path(os.getcwd()) / "config" / TIERS_CONFIG_FILENAME,
        Path(os.getcwd()) / ".." / "config" / TIERS_CONFIG_FILENAME,
    ]
    for p in candidates:
        resolved = p.resolve()
        if resolved.exists():
            return resolved

    raise ConfigurationError(
        f"{TIERS_CONFIG_FILENAME} not found in: {[str(p) for p in candidates]}"
    )


def _optional_int(value: Any, field_name: str, tier_key: str) -> Optional[int]:
    # null and -1 both mean unbounded
    if value is None or value == -1:
        return UNBOUNDED
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Tier '{tier_key}' has non-integer {field_name}: {value!r}",
            tier=tier_key,
        )
    if number < 0:
        raise ConfigurationError(
            f"Tier '{tier_key}' has negative {field_name}: {number}",
            tier=tier_key,
        )
    return number


def parse_tier(key: str, raw: Dict[str, Any]) -> TierDefinition:
    """Parse one tier entry from the YAML mapping."""
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Tier '{key}' must be a mapping", tier=key)

    try:
        tier_class = TierClass(raw.get("tier_class", TierClass.INDIVIDUAL.value))
    except ValueError:
        raise ConfigurationError(
            f"Tier '{key}' has unknown tier_class {raw.get('tier_class')!r}",
            tier=key,
        )

    slots = raw.get("featuring_slots") or {}
    if not isinstance(slots, dict):
        raise ConfigurationError(f"Tier '{key}' featuring_slots must be a mapping", tier=key)

    return TierDefinition(
        key=key,
        display_name=raw.get("display_name", key.replace("_", " ").title()),
        price_monthly_cents=int(raw.get("price_monthly_cents", 0)),
        max_locations=_optional_int(raw.get("max_locations"), "max_locations", key),
        max_skus=_optional_int(raw.get("max_skus"), "max_skus", key),
        tier_class=tier_class,
        base_tier=raw.get("base_tier"),
        next_tier=raw.get("next_tier"),
        features=frozenset(raw.get("features") or []),
        featuring_slots={
            slot: _optional_int(count, f"featuring_slots.{slot}", key) or 0
            for slot, count in slots.items()
        },
        priority=int(raw.get("priority", 0)),
    )


def build_entitlement_table(
    raw: Dict[str, Any],
    trial_duration_days: Optional[int] = None,
    trial_location_limit: Optional[int] = None,
    baseline_tier: Optional[str] = None,
) -> EntitlementTable:
    """
    Build the table from an already-parsed config mapping.

    Explicit arguments override the file's trial and baseline settings.
    """
    tiers_raw = raw.get("tiers") or {}
    if not isinstance(tiers_raw, dict) or not tiers_raw:
        raise ConfigurationError("Tier config must define a non-empty 'tiers' mapping")

    tiers: List[TierDefinition] = [parse_tier(key, value) for key, value in tiers_raw.items()]

    trial_raw = raw.get("trial") or {}
    trial = TrialOverride(
        duration_days=int(
            trial_duration_days if trial_duration_days is not None
            else trial_raw.get("duration_days", 14)
        ),
        location_limit=int(
            trial_location_limit if trial_location_limit is not None
            else trial_raw.get("location_limit", 1)
        ),
    )

    return EntitlementTable(
        tiers,
        trial=trial,
        baseline_tier=baseline_tier or raw.get("baseline_tier", "google_only"),
    )


def load_entitlement_table(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> EntitlementTable:
    """Read the YAML tier file and build the table."""
    path = resolve_tiers_path(config_path, env=env)
    logger.info("Loading tier config from %s", path)

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"Tier config not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Tier config is not valid YAML: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError("Tier config root must be a mapping")

    table = build_entitlement_table(raw, **overrides)
    logger.info(
        "Loaded tier config",
        extra={"tiers": table.keys(), "baseline_tier": table.baseline.key},
    )
    return table
