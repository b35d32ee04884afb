"""
Engine configuration.

Loaded once at process start and immutable afterwards. Services receive the
EngineConfig through their constructors; nothing reads the environment at
call time.

Usage:
    from storefleet.config.engine import load_engine_config

    config = load_engine_config()
    resolver = EntitlementResolver(config.table, config.platform_support_cap)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from storefleet.entitlements.errors import ConfigurationError
from storefleet.entitlements.loader import load_entitlement_table
from storefleet.entitlements.table import EntitlementTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine settings plus the tier table."""

    table: EntitlementTable
    platform_support_cap: int = 3
    side_effect_timeout_seconds: float = 10.0
    side_effect_queue_size: int = 1000
    directory_service_url: Optional[str] = None
    directory_service_token: Optional[str] = None
    history_default_limit: int = 50
    history_max_limit: int = 200

    @property
    def trial_duration_days(self) -> int:
        return self.table.trial.duration_days

    @property
    def directory_sync_enabled(self) -> bool:
        return bool(self.directory_service_url)


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def load_engine_config(
    tiers_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> EngineConfig:
    """
    Build the EngineConfig from the tier file and environment variables.

    Args:
        tiers_path: Explicit tier file (defaults to the config/ search path)
        env: Environment mapping (defaults to os.environ); tests pass a dict
    """
    env = os.environ if env is None else env

    overrides = {}
    if env.get("TRIAL_DURATION_DAYS"):
        overrides["trial_duration_days"] = _int_env(env, "TRIAL_DURATION_DAYS", 14)
    if env.get("TRIAL_LOCATION_LIMIT"):
        overrides["trial_location_limit"] = _int_env(env, "TRIAL_LOCATION_LIMIT", 1)
    if env.get("BASELINE_TIER"):
        overrides["baseline_tier"] = env["BASELINE_TIER"]

    table = load_entitlement_table(tiers_path, env=env, **overrides)

    config = EngineConfig(
        table=table,
        platform_support_cap=_int_env(env, "PLATFORM_SUPPORT_CREATION_CAP", 3),
        side_effect_timeout_seconds=_float_env(env, "SIDE_EFFECT_TIMEOUT_SECONDS", 10.0),
        side_effect_queue_size=_int_env(env, "SIDE_EFFECT_QUEUE_SIZE", 1000),
        directory_service_url=env.get("DIRECTORY_SERVICE_URL") or None,
        directory_service_token=env.get("DIRECTORY_SERVICE_TOKEN") or None,
    )

    logger.info(
        "Engine config loaded",
        extra={
            "tiers": len(table),
            "trial_duration_days": config.trial_duration_days,
            "platform_support_cap": config.platform_support_cap,
            "directory_sync_enabled": config.directory_sync_enabled,
        },
    )
    return config
