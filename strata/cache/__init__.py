"""Multi-tier intelligent caching.

Components:
- tiers: Tier levels and the bounded per-tier store
- compression: gzip codec for the warm and cold tiers
- eviction: Score-based victim selection
- promotion: Tier movement and capacity management
- patterns: Access pattern detection and prefetch timers
- dependencies: Cascade deletion graph
- dedup: Content-hash aliasing
- events: Event callbacks (hit, miss, set, promoted, ...)
- core: The IntelligentCache facade

Usage:
    from strata.cache import create_cache

    with create_cache(start=True) as cache:
        cache.set("report:42", report, tier="warm", tags=["reports"])
        report = cache.get("report:42")
"""

from __future__ import annotations

from strata.cache.compression import CompressionCodec
from strata.cache.core import IntelligentCache, SetResult, create_cache
from strata.cache.dedup import DeduplicationTable
from strata.cache.dependencies import DependencyTracker
from strata.cache.eviction import EvictionPolicy
from strata.cache.events import CacheEvent
from strata.cache.metadata import EntryMetadata, Priority
from strata.cache.patterns import AccessPatternTracker, PrefetchScheduler
from strata.cache.promotion import PromotionEngine
from strata.cache.stats import CacheStats
from strata.cache.tiers import CacheTier, TierStore

__all__ = [
    "AccessPatternTracker",
    "CacheEvent",
    "CacheStats",
    "CacheTier",
    "CompressionCodec",
    "DeduplicationTable",
    "DependencyTracker",
    "EntryMetadata",
    "EvictionPolicy",
    "IntelligentCache",
    "PrefetchScheduler",
    "Priority",
    "PromotionEngine",
    "SetResult",
    "TierStore",
    "create_cache",
]
