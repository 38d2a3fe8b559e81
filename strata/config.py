"""Strata Configuration System.

Loads and validates cache configuration from ~/.strata/config.json.
Uses Pydantic for schema validation with sensible defaults.

Supports migration from older config versions while preserving existing values.

Usage:
    from strata.config import get_config, save_config

    config = get_config()
    print(config.tiers.hot.max_items)

    # Modify and save
    config.compression.threshold_bytes = 4096
    save_config(config)
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from strata.errors import ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".strata" / "config.json"

# Current config schema version for migration tracking
CONFIG_VERSION = 2

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB


class TierConfig(BaseModel):
    """Capacity and expiry budget for one tier.

    Attributes:
        max_items: Maximum number of entries held by the tier.
        max_bytes: Maximum sum of entry sizes (uncompressed) in bytes.
        ttl_seconds: Default time-to-live for entries placed in the tier.
    """

    max_items: int = Field(default=1000, ge=1)
    max_bytes: int = Field(default=100 * MIB, ge=1)
    ttl_seconds: float = Field(default=300.0, gt=0)


class TiersConfig(BaseModel):
    """Budgets for the hot, warm and cold tiers."""

    hot: TierConfig = Field(
        default_factory=lambda: TierConfig(max_items=1000, max_bytes=100 * MIB, ttl_seconds=300.0)
    )
    warm: TierConfig = Field(
        default_factory=lambda: TierConfig(
            max_items=5000, max_bytes=500 * MIB, ttl_seconds=3600.0
        )
    )
    cold: TierConfig = Field(
        default_factory=lambda: TierConfig(
            max_items=10000, max_bytes=1 * GIB, ttl_seconds=86400.0
        )
    )


class CompressionConfig(BaseModel):
    """gzip compression for the warm and cold tiers.

    Attributes:
        enabled: Whether values placed in warm/cold may be compressed.
        threshold_bytes: Values smaller than this are stored raw.
        level: gzip compression level (1 = fastest, 9 = smallest).
    """

    enabled: bool = True
    threshold_bytes: int = Field(default=1024, ge=0)
    level: int = Field(default=6, ge=1, le=9)


class PlacementConfig(BaseModel):
    """Size cut-offs used when a write does not name a tier.

    Values below ``hot_max_bytes`` go to hot, below ``warm_max_bytes`` to warm,
    everything else to cold.
    """

    hot_max_bytes: int = Field(default=10 * KIB, ge=0)
    warm_max_bytes: int = Field(default=100 * KIB, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> PlacementConfig:
        if self.warm_max_bytes < self.hot_max_bytes:
            raise ValueError("warm_max_bytes must be >= hot_max_bytes")
        return self


class PromotionConfig(BaseModel):
    """Access-rate thresholds for tier movement.

    On-access promotion is the authoritative signal. The periodic sweep uses
    wider thresholds and skips entries moved within ``cooldown_seconds``.

    Attributes:
        on_access_rate: Accesses/second above which a hit promotes one tier.
        sweep_promote_rate: Accesses/second above which the sweep moves to hot.
        sweep_demote_rate: Accesses/second below which the sweep demotes hot.
        cooldown_seconds: Minimum time between moves of one entry by the sweep.
    """

    on_access_rate: float = Field(default=1.0, ge=0.0)
    sweep_promote_rate: float = Field(default=2.0, ge=0.0)
    sweep_demote_rate: float = Field(default=0.1, ge=0.0)
    cooldown_seconds: float = Field(default=30.0, ge=0.0)

    @model_validator(mode="after")
    def _check_hysteresis(self) -> PromotionConfig:
        if self.sweep_demote_rate >= self.sweep_promote_rate:
            raise ValueError("sweep_demote_rate must be below sweep_promote_rate")
        return self


class PrefetchConfig(BaseModel):
    """Access pattern tracking and prefetch.

    Attributes:
        enabled: Whether hits trigger tag prefetch and pattern scheduling.
        window_seconds: How long access timestamps are kept per key.
        min_samples: Timestamps required before a pattern is evaluated.
        regularity_threshold: Max stddev/mean ratio for a "regular" pattern.
        lead_factor: Fraction of the mean interval after which to prefetch.
        tag_prefetch_limit: Max keys promoted per hit by tag prefetch.
    """

    enabled: bool = True
    window_seconds: float = Field(default=3600.0, gt=0)
    min_samples: int = Field(default=3, ge=3)
    regularity_threshold: float = Field(default=0.2, gt=0.0, le=1.0)
    lead_factor: float = Field(default=0.9, gt=0.0, le=1.0)
    tag_prefetch_limit: int = Field(default=10, ge=0)


class MaintenanceConfig(BaseModel):
    """Background sweep intervals.

    Attributes:
        cleanup_interval_seconds: How often expired entries are removed.
        tier_interval_seconds: How often the promotion/demotion sweep runs.
    """

    cleanup_interval_seconds: float = Field(default=60.0, gt=0)
    tier_interval_seconds: float = Field(default=30.0, gt=0)


class StrataConfig(BaseModel):
    """Root configuration for an IntelligentCache."""

    config_version: int = CONFIG_VERSION
    tiers: TiersConfig = Field(default_factory=TiersConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    deduplication: bool = True
    adaptive_eviction: bool = True
    placement: PlacementConfig = Field(default_factory=PlacementConfig)
    promotion: PromotionConfig = Field(default_factory=PromotionConfig)
    prefetch: PrefetchConfig = Field(default_factory=PrefetchConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)


# Singleton instance
_config: StrataConfig | None = None
_config_lock = threading.Lock()


def _nested(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return ``data[name]`` as a dict, replacing values of any other shape."""
    section = data.get(name)
    if not isinstance(section, dict):
        if section is not None:
            logger.warning(f"Ignoring unrecognized {name} value {section!r} during migration")
        section = {}
        data[name] = section
    return section


def _migrate_v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate from v1 to v2: Nest flat compression and interval options."""
    if isinstance(data.get("compression"), bool):
        data["compression"] = {"enabled": data["compression"]}
    compression = _nested(data, "compression")

    if "compression_threshold" in data:
        logger.info("Migrating compression_threshold to compression.threshold_bytes")
        compression["threshold_bytes"] = data.pop("compression_threshold")

    maintenance = _nested(data, "maintenance")
    if "cleanup_interval" in data:
        logger.info("Migrating cleanup_interval to maintenance.cleanup_interval_seconds")
        maintenance["cleanup_interval_seconds"] = data.pop("cleanup_interval")

    prefetching = data.pop("prefetching", None)
    if isinstance(prefetching, bool):
        _nested(data, "prefetch")["enabled"] = prefetching

    return data


# Migration registry mapping target versions to migration functions
_MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    2: _migrate_v1_to_v2,
}


def _migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate config data from older versions to current schema.

    Args:
        data: Raw config data loaded from file.

    Returns:
        Migrated config data compatible with current schema.
    """
    version = data.get("config_version", 1)
    if not isinstance(version, int):
        logger.warning(f"Unrecognized config_version {version!r}, migrating from version 1")
        version = 1

    for target_version in sorted(_MIGRATIONS.keys()):
        if version < target_version:
            logger.info(f"Migrating config from version {version} to {target_version}")
            data = _MIGRATIONS[target_version](data)
            version = target_version

    data["config_version"] = CONFIG_VERSION
    return data


def load_config(config_path: Path | None = None, *, strict: bool = False) -> StrataConfig:
    """Load configuration from file, return defaults if missing/invalid.

    Automatically migrates older config versions while preserving existing values.
    If migration occurs, the updated config is saved back to disk.

    Args:
        config_path: Optional path to config file. Defaults to ~/.strata/config.json.
        strict: Raise instead of falling back to defaults.

    Returns:
        StrataConfig instance with loaded or default values.

    Raises:
        ConfigurationError: In strict mode, if the file is missing, unreadable
            or invalid.
    """
    path = config_path or CONFIG_PATH

    def fallback(message: str, code: ErrorCode, cause: Exception | None = None) -> StrataConfig:
        if strict:
            raise ConfigurationError(message, config_path=str(path), code=code, cause=cause)
        logger.warning(f"{message}, using defaults")
        return StrataConfig()

    if not path.exists():
        if strict:
            return fallback(f"Config file not found at {path}", ErrorCode.CFG_MISSING)
        logger.debug(f"Config file not found at {path}, using defaults")
        return StrataConfig()

    try:
        with path.open() as f:
            data: dict[str, Any] = json.load(f)
    except json.JSONDecodeError as e:
        return fallback(f"Invalid JSON in config file {path}: {e}", ErrorCode.CFG_INVALID, e)
    except OSError as e:
        return fallback(f"Cannot read config file {path}: {e}", ErrorCode.CFG_MISSING, e)

    if not isinstance(data, dict):
        return fallback(f"Config file {path} does not contain an object", ErrorCode.CFG_INVALID)

    original_version = data.get("config_version", 1)
    data = _migrate_config(data)

    try:
        config = StrataConfig.model_validate(data)
    except ValidationError as e:
        return fallback(f"Config validation failed: {e}", ErrorCode.CFG_INVALID, e)

    if not isinstance(original_version, int) or original_version < CONFIG_VERSION:
        logger.info(f"Persisting migrated config (v{original_version} -> v{CONFIG_VERSION})")
        save_config(config, path)

    return config


def save_config(config: StrataConfig, config_path: Path | None = None) -> bool:
    """Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to config file. Defaults to ~/.strata/config.json.

    Returns:
        True if saved successfully, False otherwise.
    """
    path = config_path or CONFIG_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w") as f:
            json.dump(config.model_dump(), f, indent=2)

        os.chmod(path, 0o600)

        logger.debug(f"Configuration saved to {path}")
        return True

    except OSError as e:
        logger.error(f"Failed to save config to {path}: {e}")
        return False


def get_config() -> StrataConfig:
    """Get singleton configuration instance.

    Uses double-check locking for thread safety.

    Returns:
        Shared StrataConfig instance.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def reset_config() -> None:
    """Reset singleton configuration for testing."""
    global _config
    with _config_lock:
        _config = None
