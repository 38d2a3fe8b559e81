"""Strata - multi-tier intelligent cache.

Hot/warm/cold tiers with compression, deduplication, dependency-aware
invalidation and access-pattern prefetching.
"""

from strata.cache import (
    CacheEvent,
    CacheTier,
    IntelligentCache,
    Priority,
    SetResult,
    create_cache,
)
from strata.config import StrataConfig, load_config
from strata.errors import CacheError, StrataError, ValidationError

__version__ = "1.0.0"

__all__ = [
    "CacheError",
    "CacheEvent",
    "CacheTier",
    "IntelligentCache",
    "Priority",
    "SetResult",
    "StrataConfig",
    "StrataError",
    "ValidationError",
    "create_cache",
    "load_config",
]
