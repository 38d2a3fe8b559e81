"""Multi-tier intelligent cache.

IntelligentCache places each entry in exactly one of three tiers:
- HOT: small or high-priority values, stored raw
- WARM: mid-sized values, gzip-compressed above the threshold
- COLD: large or rarely used values, overflow is deleted

On top of placement it deduplicates identical content, cascades deletes along
declared dependencies, promotes entries on frequent access, demotes them under
capacity pressure and prefetches keys with regular access patterns.

Usage:
    from strata.cache import create_cache

    cache = create_cache(start=True)
    cache.set("user:1", {"name": "Ada"}, tags=["users"])
    cache.get("user:1")
    cache.stop()
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from strata.cache.compression import CompressionCodec
from strata.cache.dedup import DeduplicationTable
from strata.cache.dependencies import DependencyTracker
from strata.cache.eviction import EvictionPolicy
from strata.cache.events import CacheEvent, EventBus, EventCallback
from strata.cache.maintenance import PeriodicTask
from strata.cache.metadata import EntryMetadata, MetadataIndex, Priority
from strata.cache.patterns import AccessPatternTracker, PrefetchScheduler
from strata.cache.promotion import PromotionEngine
from strata.cache.serialization import calculate_hash, calculate_size, is_bytes_like
from strata.cache.stats import CacheStats
from strata.cache.tiers import CacheTier, TierStore
from strata.config import StrataConfig
from strata.errors import CacheError, CapacityError, CompressionError, DependencyCycleError
from strata.observability.logging import log_event, timed_operation

logger = logging.getLogger(__name__)


@dataclass
class SetResult:
    """Outcome of IntelligentCache.set().

    Truthy when the value (or an alias to identical content) was stored.
    """

    key: str
    stored: bool
    tier: CacheTier | None = None
    compressed: bool = False
    size_bytes: int = 0
    deduplicated_to: str | None = None
    error: CacheError | None = None

    def __bool__(self) -> bool:
        return self.stored

    @property
    def deduplicated(self) -> bool:
        return self.deduplicated_to is not None


class IntelligentCache:
    """Three-tier cache with compression, deduplication and prefetch.

    Thread-safe: every public method runs under one reentrant lock.
    """

    def __init__(
        self,
        config: StrataConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            config: Cache configuration. Defaults to StrataConfig().
            clock: Time source in seconds. Defaults to time.time.
        """
        self.config = config or StrataConfig()
        self._clock = clock or time.time
        self._lock = threading.RLock()

        tiers = self.config.tiers
        self._stores: dict[CacheTier, TierStore] = {
            tier: TierStore(tier, budget.max_items, budget.max_bytes, budget.ttl_seconds)
            for tier, budget in (
                (CacheTier.HOT, tiers.hot),
                (CacheTier.WARM, tiers.warm),
                (CacheTier.COLD, tiers.cold),
            )
        }
        self._index = MetadataIndex()
        self._dedup = DeduplicationTable()
        self._dependencies = DependencyTracker()
        self._stats = CacheStats()
        self._events = EventBus()
        self._codec = CompressionCodec(
            enabled=self.config.compression.enabled,
            threshold_bytes=self.config.compression.threshold_bytes,
            level=self.config.compression.level,
        )
        prefetch = self.config.prefetch
        self._patterns = AccessPatternTracker(
            window_seconds=prefetch.window_seconds,
            min_samples=prefetch.min_samples,
            regularity_threshold=prefetch.regularity_threshold,
        )
        self._prefetcher = PrefetchScheduler()
        self._engine = PromotionEngine(
            stores=self._stores,
            index=self._index,
            policy=EvictionPolicy(adaptive=self.config.adaptive_eviction),
            codec=self._codec,
            stats=self._stats,
            clock=self._clock,
            config=self.config.promotion,
            remove_entry=lambda key: self._remove_entry(key, CacheEvent.EVICTED),
            emit=self._events.emit,
        )

        maintenance = self.config.maintenance
        self._cleanup_task = PeriodicTask(
            "strata-cleanup", maintenance.cleanup_interval_seconds, self.cleanup_expired
        )
        self._tier_task = PeriodicTask(
            "strata-tier-sweep", maintenance.tier_interval_seconds, self.manage_tiers
        )

    def __enter__(self) -> IntelligentCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._index or (isinstance(key, str) and self._dedup.is_alias(key))

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    # -- reads -------------------------------------------------------------

    def get(self, key: str, *, promote: bool = True) -> Any | None:
        """Get a value from whichever tier holds it.

        Args:
            key: Cache key or alias.
            promote: Whether a hit may promote the entry.

        Returns:
            The value, or None on a miss (absent, expired or unreadable).
        """
        with self._lock:
            now = self._clock()
            primary = self._dedup.resolve(key)
            if primary is not None:
                self._stats.deduplication_hits += 1
                lookup = primary
            else:
                lookup = key

            for tier in CacheTier:
                store = self._stores[tier]
                if not store.has(lookup):
                    continue

                meta = self._index.get(lookup)
                if meta is None:
                    store.delete(lookup)
                    break
                if meta.is_expired(now):
                    self._expire(lookup)
                    break

                value = store.get(lookup)
                if meta.compressed:
                    try:
                        value = self._codec.decompress(value, as_bytes=meta.binary)
                    except CompressionError as e:
                        logger.warning(f"Dropping unreadable cache entry {lookup}: {e}")
                        self._remove_entry(lookup, CacheEvent.DELETE)
                        break
                    self._stats.decompressions += 1

                meta.touch(now)
                store.hits += 1
                self._stats.hits += 1
                self._events.emit(CacheEvent.HIT, {"key": key, "tier": tier.label})

                if promote:
                    try:
                        self._engine.consider_promotion(lookup, value)
                    except CacheError as e:
                        logger.debug(f"Promotion of {lookup} skipped: {e}")
                if self.config.prefetch.enabled:
                    self._prefetch_related(meta)
                self._track_access(lookup, now)
                return value

            self._stats.misses += 1
            for store in self._stores.values():
                store.misses += 1
            self._events.emit(CacheEvent.MISS, {"key": key})
            return None

    # -- writes ------------------------------------------------------------

    def set(
        self,
        key: str,
        value: Any,
        *,
        tier: CacheTier | str | None = None,
        ttl_seconds: float | None = None,
        priority: Priority | str = Priority.NORMAL,
        tags: Iterable[str] | None = None,
        dependencies: Iterable[str] | None = None,
        deduplicate: bool | None = None,
    ) -> SetResult:
        """Store a value.

        Args:
            key: Cache key.
            value: Value to cache.
            tier: Force a tier instead of size-based placement.
            ttl_seconds: Override the tier's default TTL.
            priority: Eviction bias; "high" also places the entry in hot.
            tags: Labels used by tag prefetch.
            dependencies: Keys whose deletion also deletes this key.
            deduplicate: Override the configured deduplication flag.

        Returns:
            SetResult describing where the value went, or the error.

        Raises:
            ValidationError: If ``tier`` or ``priority`` names nothing.
        """
        target = CacheTier.parse(tier) if tier is not None else None
        priority = Priority.parse(priority)
        tag_set = frozenset(tags or ())
        dep_set = frozenset(dependencies or ())
        dedup = self.config.deduplication if deduplicate is None else deduplicate

        with self._lock:
            try:
                return self._set(key, value, target, ttl_seconds, priority, tag_set, dep_set, dedup)
            except CacheError as e:
                self._stats.failed_sets += 1
                logger.warning(f"Failed to cache {key}: {e}", exc_info=True)
                return SetResult(key=key, stored=False, error=e)

    def _set(
        self,
        key: str,
        value: Any,
        target: CacheTier | None,
        ttl_seconds: float | None,
        priority: Priority,
        tags: frozenset[str],
        dependencies: frozenset[str],
        dedup: bool,
    ) -> SetResult:
        now = self._clock()
        size = calculate_size(value)
        content_hash = calculate_hash(value) if dedup else None

        if dependencies and self._dependencies.would_create_cycle(key, dependencies):
            raise DependencyCycleError(
                f"Dependencies of {key} would form a cycle",
                key=key,
                details={"dependencies": sorted(dependencies)},
            )

        existing = self._dedup.find_primary(content_hash)
        if existing is not None and existing != key and existing in self._index:
            self._discard(key)
            self._dedup.add_alias(key, existing)
            if dependencies:
                self._dependencies.add_dependencies(key, dependencies)
            self._stats.deduplication_hits += 1
            primary_tier = self._index.get(existing).tier
            self._events.emit(CacheEvent.DEDUPLICATED, {"key": key, "primary": existing})
            log_event(logger, "cache.deduplicate", key=key, primary=existing)
            return SetResult(
                key=key, stored=True, tier=primary_tier, size_bytes=size, deduplicated_to=existing
            )
        # Same content rewritten under its own key keeps its aliases
        refresh = existing == key and key in self._index

        tier = target or self._choose_tier(size, priority)
        store = self._stores[tier]
        if size > store.max_bytes:
            raise CapacityError(
                f"{size} bytes exceeds {tier.label} tier capacity of {store.max_bytes}",
                key=key,
                tier=tier.label,
            )

        stored = value
        compressed = False
        if self._codec.should_compress(value, size, tier):
            stored = self._codec.compress(value)
            compressed = True
            self._stats.compressions += 1
            self._stats.bytes_compressed += size
            self._stats.bytes_saved += size - len(stored)

        self._discard(key, keep_aliases=refresh)
        try:
            self._engine.ensure_space(tier, size)
        except CapacityError:
            if refresh:
                for alias in self._dedup.remove(key):
                    self._remove_entry(alias, CacheEvent.DELETE)
            raise
        store.set(key, stored, size)

        meta = EntryMetadata(
            key=key,
            tier=tier,
            size_bytes=size,
            created_at=now,
            last_accessed_at=now,
            ttl_seconds=ttl_seconds if ttl_seconds is not None else store.ttl_seconds,
            compressed=compressed,
            binary=is_bytes_like(value),
            priority=priority,
            tags=tags,
            dependencies=dependencies,
            content_hash=content_hash,
        )
        self._index.put(meta)
        if dependencies:
            self._dependencies.add_dependencies(key, dependencies)
        self._dedup.register_primary(key, content_hash)

        self._stats.sets += 1
        self._events.emit(CacheEvent.SET, {"key": key, "tier": tier.label, "size_bytes": size})
        log_event(
            logger, "cache.set", key=key, tier=tier.label, size_bytes=size, compressed=compressed
        )
        return SetResult(key=key, stored=True, tier=tier, compressed=compressed, size_bytes=size)

    def _choose_tier(self, size_bytes: int, priority: Priority) -> CacheTier:
        placement = self.config.placement
        if priority == Priority.HIGH or size_bytes < placement.hot_max_bytes:
            return CacheTier.HOT
        if size_bytes < placement.warm_max_bytes:
            return CacheTier.WARM
        return CacheTier.COLD

    def _discard(self, key: str, keep_aliases: bool = False) -> None:
        """Drop a key's current payload or alias ahead of an overwrite.

        Keys that depend on ``key`` keep their edges; ``key``'s own
        dependencies are replaced by the new write. Aliases of ``key`` are
        deleted unless ``keep_aliases`` is set (the new value has the same
        content).
        """
        if self._dedup.is_alias(key):
            self._dedup.remove(key)
            self._dependencies.clear_dependencies_of(key)
            return
        meta = self._index.remove(key)
        if meta is None:
            return
        self._stores[meta.tier].delete(key)
        self._dependencies.clear_dependencies_of(key)
        if keep_aliases:
            return
        for alias in self._dedup.remove(key):
            self._remove_entry(alias, CacheEvent.DELETE)

    # -- deletes -----------------------------------------------------------

    def delete(self, key: str) -> bool:
        """Delete a key and every key that depends on it.

        Returns:
            True if the key was stored or an alias.
        """
        with self._lock:
            if key not in self._index and not self._dedup.is_alias(key):
                return False
            removed = self._remove_entry(key, CacheEvent.DELETE)
            self._stats.deletes += 1
            log_event(logger, "cache.delete", key=key, removed=len(removed))
            return True

    def _remove_entry(self, key: str, event: CacheEvent) -> list[str]:
        """Remove a key, its aliases and its dependents.

        Returns:
            Every key removed, starting with ``key``.
        """
        removed: list[str] = []
        visited: set[str] = set()
        queue = deque([key])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            queue.extend(self._dependencies.get_dependents(current))
            queue.extend(self._dedup.aliases_of(current))
            if self._drop(current, event if current == key else CacheEvent.DELETE):
                removed.append(current)
        return removed

    def _drop(self, key: str, event: CacheEvent) -> bool:
        meta = self._index.remove(key)
        if meta is not None:
            self._stores[meta.tier].delete(key)
        was_alias = self._dedup.is_alias(key)
        aliases = self._dedup.remove(key)
        self._dependencies.remove_key(key)
        self._patterns.remove(key)
        self._prefetcher.cancel(key)

        if meta is None and not was_alias:
            return False
        payload: dict[str, Any] = {"key": key, "aliases": aliases}
        if meta is not None:
            payload["tier"] = meta.tier.label
        self._events.emit(event, payload)
        return True

    def _expire(self, key: str) -> None:
        self._remove_entry(key, CacheEvent.EXPIRED)
        self._stats.expirations += 1

    def clear(self, tier: CacheTier | str | None = None) -> None:
        """Clear one tier or the whole cache.

        Clearing one tier deletes its keys (with cascades) and resets that
        tier's hit/miss counters. Clearing everything also drops patterns,
        dependency edges, aliases and pending prefetches.
        """
        with self._lock:
            if tier is None:
                for store in self._stores.values():
                    store.clear()
                self._index.clear()
                self._dedup.clear()
                self._dependencies.clear()
                self._patterns.clear()
                self._prefetcher.cancel_all()
                label = None
            else:
                target = CacheTier.parse(tier)
                store = self._stores[target]
                for key in store.keys():
                    if key in self._index:
                        self._remove_entry(key, CacheEvent.DELETE)
                store.clear()
                label = target.label
            self._events.emit(CacheEvent.CLEARED, {"tier": label})
            logger.info("Cache cleared (%s)", label or "all tiers")

    # -- maintenance -------------------------------------------------------

    def cleanup_expired(self) -> int:
        """Remove every entry whose TTL has passed.

        Returns:
            Number of expired entries removed.
        """
        with self._lock, timed_operation(logger, "cache.cleanup") as ctx:
            removed = 0
            for meta in self._index.expired(self._clock()):
                if self._index.get(meta.key) is meta:
                    self._expire(meta.key)
                    removed += 1
            ctx["removed"] = removed
        if removed:
            logger.info(f"Cleaned up {removed} expired cache entries")
        return removed

    def manage_tiers(self) -> dict[str, int]:
        """Run the promotion/demotion sweep over keys with access history."""
        with self._lock, timed_operation(logger, "cache.tier_sweep") as ctx:
            tracked = [meta for meta in self._index if meta.key in self._patterns]
            counts = self._engine.manage_tiers(tracked)
            ctx.update(counts)
        return counts

    # -- prefetch ----------------------------------------------------------

    def prefetch_key(self, key: str) -> bool:
        """Move a stored key into hot without counting an access.

        Returns:
            True if the key was moved.
        """
        with self._lock:
            meta = self._index.get(key)
            if meta is None or meta.tier == CacheTier.HOT or meta.is_expired(self._clock()):
                return False
            try:
                if not self._engine.promote(key, CacheTier.HOT):
                    return False
            except CacheError as e:
                logger.debug(f"Prefetch of {key} failed: {e}")
                return False
            self._stats.prefetch_hits += 1
            log_event(logger, "cache.prefetch", key=key)
            return True

    def _prefetch_related(self, meta: EntryMetadata) -> None:
        if not meta.tags:
            return
        limit = self.config.prefetch.tag_prefetch_limit
        candidates = [
            other.key
            for other in self._index.with_any_tag(meta.tags)
            if other.key != meta.key and other.tier != CacheTier.HOT
        ][:limit]
        for key in candidates:
            self.prefetch_key(key)

    def _track_access(self, key: str, now: float) -> None:
        self._patterns.record_access(key, now)
        interval = self._patterns.detect_pattern(key)
        if interval is not None and self.config.prefetch.enabled:
            delay = interval * self.config.prefetch.lead_factor
            self._prefetcher.schedule(key, delay, self.prefetch_key)

    # -- introspection -----------------------------------------------------

    def tier_of(self, key: str) -> CacheTier | None:
        """Tier currently holding ``key`` (aliases resolve to their primary)."""
        with self._lock:
            meta = self._index.get(self._dedup.resolve(key) or key)
            return meta.tier if meta is not None else None

    def get_metadata(self, key: str) -> EntryMetadata | None:
        """Copy of the metadata for a stored key, without counting an access."""
        with self._lock:
            meta = self._index.get(key)
            return meta.snapshot() if meta is not None else None

    def keys(self, tier: CacheTier | str | None = None) -> list[str]:
        """Stored keys (aliases excluded), optionally for one tier."""
        with self._lock:
            if tier is None:
                return [meta.key for meta in self._index]
            return self._stores[CacheTier.parse(tier)].keys()

    def tier_store(self, tier: CacheTier | str) -> TierStore:
        """Underlying store for a tier (read-only use)."""
        return self._stores[CacheTier.parse(tier)]

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "overall": self._stats.to_dict(),
                "tiers": {tier.label: store.stats() for tier, store in self._stores.items()},
                "hit_rate": self._stats.hit_rate,
                "compression_ratio": self._stats.compression_ratio,
                "total_items": len(self._index),
                "total_bytes": sum(store.current_bytes for store in self._stores.values()),
                "aliases": self._dedup.alias_count(),
                "dependencies": len(self._dependencies),
                "tracked_patterns": len(self._patterns),
                "pending_prefetches": len(self._prefetcher.pending()),
            }

    def info(self) -> dict[str, Any]:
        """Per-tier size and utilization."""
        with self._lock:
            return {
                "tiers": {
                    tier.label: {
                        "items": store.current_items,
                        "bytes": store.current_bytes,
                        "max_items": store.max_items,
                        "max_bytes": store.max_bytes,
                        "utilization": store.stats()["utilization"],
                    }
                    for tier, store in self._stores.items()
                },
                "deduplication": self.config.deduplication,
                "compression": self.config.compression.enabled,
                "prefetch": self.config.prefetch.enabled,
                "adaptive_eviction": self.config.adaptive_eviction,
                "running": self.is_running,
            }

    # -- events and lifecycle ----------------------------------------------

    def on(self, event: CacheEvent | str, callback: EventCallback) -> None:
        """Register a callback for a cache event."""
        self._events.register(event, callback)

    def off(self, event: CacheEvent | str, callback: EventCallback) -> bool:
        """Unregister a callback."""
        return self._events.unregister(event, callback)

    @property
    def is_running(self) -> bool:
        return self._cleanup_task.is_running or self._tier_task.is_running

    def start(self) -> None:
        """Start the expiry and tier-management sweeps."""
        self._cleanup_task.start()
        self._tier_task.start()
        logger.info("Cache maintenance started")

    def stop(self) -> None:
        """Stop background sweeps and cancel pending prefetches."""
        self._cleanup_task.stop()
        self._tier_task.stop()
        cancelled = self._prefetcher.cancel_all()
        logger.info("Cache maintenance stopped (%d prefetches cancelled)", cancelled)


def create_cache(
    config: StrataConfig | None = None,
    *,
    start: bool = False,
    clock: Callable[[], float] | None = None,
) -> IntelligentCache:
    """Create a cache instance.

    Args:
        config: Cache configuration. Defaults to StrataConfig().
        start: Start the background sweeps immediately.
        clock: Time source in seconds.

    Returns:
        A new IntelligentCache owned by the caller.
    """
    cache = IntelligentCache(config, clock=clock)
    if start:
        cache.start()
    return cache
