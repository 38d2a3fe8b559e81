"""Promotion, demotion and capacity management across tiers.

Entries move up one tier on a hit when their lifetime access rate is high,
and move down one tier when a full tier needs room. Only the cold tier's
overflow is deleted outright. A slower periodic sweep confirms placement
with wider thresholds and a cooldown so it never fights on-access promotion.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from strata.cache.compression import CompressionCodec
from strata.cache.eviction import EvictionPolicy
from strata.cache.events import CacheEvent
from strata.cache.metadata import EntryMetadata, MetadataIndex
from strata.cache.stats import CacheStats
from strata.cache.tiers import CacheTier, TierStore
from strata.config import PromotionConfig
from strata.errors import CacheError, CapacityError
from strata.observability.logging import log_event

logger = logging.getLogger(__name__)


class PromotionEngine:
    """Moves entries between tiers while keeping every tier within budget.

    Not thread-safe on its own; IntelligentCache calls it under its lock.
    """

    def __init__(
        self,
        stores: dict[CacheTier, TierStore],
        index: MetadataIndex,
        policy: EvictionPolicy,
        codec: CompressionCodec,
        stats: CacheStats,
        clock: Callable[[], float],
        config: PromotionConfig,
        remove_entry: Callable[[str], None],
        emit: Callable[[CacheEvent, dict[str, Any]], None],
    ) -> None:
        """Initialize the engine.

        Args:
            stores: Tier stores keyed by tier.
            index: Metadata for every stored key.
            policy: Victim selection.
            codec: Compression for entries moving into warm/cold.
            stats: Shared counters.
            clock: Time source in seconds.
            config: Rate thresholds and cooldown.
            remove_entry: Deletes a key with dependency cascade (cold overflow).
            emit: Event sink.
        """
        self._stores = stores
        self._index = index
        self._policy = policy
        self._codec = codec
        self._stats = stats
        self._clock = clock
        self._config = config
        self._remove_entry = remove_entry
        self._emit = emit

    def ensure_space(
        self, tier: CacheTier, size_bytes: int, exclude: Iterable[str] = ()
    ) -> None:
        """Evict from ``tier`` until an entry of ``size_bytes`` fits.

        Raises:
            CapacityError: If the entry is larger than the tier or nothing
                more can be evicted.
        """
        store = self._stores[tier]
        if size_bytes > store.max_bytes:
            raise CapacityError(
                f"{size_bytes} bytes exceeds {tier.label} tier capacity of {store.max_bytes}",
                tier=tier.label,
                details={"size_bytes": size_bytes, "max_bytes": store.max_bytes},
            )
        excluded = frozenset(exclude)
        while not store.fits(size_bytes):
            if not self.evict_from(tier, excluded):
                raise CapacityError(
                    f"No evictable entry left in {tier.label} tier",
                    tier=tier.label,
                    details={"size_bytes": size_bytes},
                )

    def evict_from(self, tier: CacheTier, exclude: frozenset[str] = frozenset()) -> bool:
        """Free one slot in ``tier`` by demoting or deleting its victim.

        Returns:
            True if an entry left the tier, False if there was nothing to evict.
        """
        store = self._stores[tier]
        victim = self._policy.choose_victim(store, self._index, self._clock(), exclude)
        if victim is None:
            return False

        meta = self._index.get(victim)
        if meta is None:
            # Orphaned value with no metadata
            store.delete(victim)
            self._stats.evictions += 1
            return True

        target = tier.slower
        if target is not None:
            try:
                self.demote(victim, target, exclude)
                return True
            except CapacityError as e:
                logger.debug(f"Cannot demote {victim} to {target.label}: {e}")

        self._remove_entry(victim)
        self._stats.evictions += 1
        log_event(logger, "cache.evict", key=victim, tier=tier.label, size_bytes=meta.size_bytes)
        return True

    def demote(
        self, key: str, to_tier: CacheTier, exclude: Iterable[str] = ()
    ) -> bool:
        """Move an entry to a slower tier, compressing it when eligible.

        Returns:
            True if moved, False if the key is absent or already at/below target.

        Raises:
            CapacityError: If the target tier cannot make room (entry stays put).
        """
        meta = self._index.get(key)
        if meta is None or to_tier <= meta.tier:
            return False
        from_tier = meta.tier
        from_store = self._stores[from_tier]
        if not from_store.has(key):
            return False
        value = from_store.get(key)

        from_store.delete(key)
        try:
            self.ensure_space(to_tier, meta.size_bytes, exclude)
        except CapacityError:
            from_store.set(key, value, meta.size_bytes)
            raise
        if self._index.get(key) is not meta:
            # Removed by a cascade while making room
            return False

        stored = value
        if not meta.compressed and self._codec.should_compress(value, meta.size_bytes, to_tier):
            try:
                stored = self._codec.compress(value)
            except CacheError as e:
                logger.debug(f"Keeping {key} uncompressed in {to_tier.label}: {e}")
            else:
                meta.compressed = True
                self._record_compression(meta.size_bytes, len(stored))

        self._stores[to_tier].set(key, stored, meta.size_bytes)
        self._moved(meta, to_tier)
        self._stats.demotions += 1
        self._emit(CacheEvent.DEMOTED, {"key": key, "from": from_tier.label, "to": to_tier.label})
        log_event(logger, "cache.demote", key=key, source=from_tier.label, target=to_tier.label)
        return True

    def promote(self, key: str, to_tier: CacheTier, value: Any = None) -> bool:
        """Move an entry to a faster tier, decompressing when moving to hot.

        Args:
            key: Key to move.
            to_tier: Destination tier.
            value: Already-decompressed value, if the caller has it.

        Returns:
            True if moved, False if absent, already at/above target, or the
            target tier cannot hold it.

        Raises:
            CompressionError: If the stored payload cannot be decompressed.
        """
        meta = self._index.get(key)
        if meta is None or to_tier >= meta.tier:
            return False
        from_tier = meta.tier
        from_store = self._stores[from_tier]
        to_store = self._stores[to_tier]
        if not from_store.has(key) or meta.size_bytes > to_store.max_bytes:
            return False

        stored = from_store.get(key)
        decompress = to_tier == CacheTier.HOT and meta.compressed
        if decompress:
            if value is None:
                value = self._codec.decompress(stored, as_bytes=meta.binary)
                self._stats.decompressions += 1
            new_stored = value
        else:
            new_stored = stored

        from_store.delete(key)
        try:
            self.ensure_space(to_tier, meta.size_bytes)
        except CapacityError as e:
            logger.debug(f"Cannot promote {key} to {to_tier.label}: {e}")
            self._reinsert(meta, stored)
            return False
        if self._index.get(key) is not meta:
            return False

        to_store.set(key, new_stored, meta.size_bytes)
        if decompress:
            meta.compressed = False
        self._moved(meta, to_tier)
        self._stats.promotions += 1
        self._emit(CacheEvent.PROMOTED, {"key": key, "from": from_tier.label, "to": to_tier.label})
        log_event(logger, "cache.promote", key=key, source=from_tier.label, target=to_tier.label)
        return True

    def consider_promotion(self, key: str, value: Any = None) -> bool:
        """Promote one tier up after a hit if the access rate is high enough."""
        meta = self._index.get(key)
        if meta is None or meta.tier == CacheTier.HOT:
            return False
        if meta.access_rate(self._clock()) > self._config.on_access_rate:
            target = meta.tier.faster
            if target is not None:
                return self.promote(key, target, value)
        return False

    def manage_tiers(self, entries: Iterable[EntryMetadata]) -> dict[str, int]:
        """Periodic placement sweep.

        Promotes entries above ``sweep_promote_rate`` straight to hot and
        demotes hot entries below ``sweep_demote_rate`` to warm. Entries moved
        within the cooldown are left alone.

        Returns:
            Counts of promoted, demoted and skipped entries.
        """
        now = self._clock()
        counts = {"promoted": 0, "demoted": 0, "skipped": 0}
        for meta in list(entries):
            if self._index.get(meta.key) is not meta:
                continue
            if (
                meta.last_moved_at is not None
                and now - meta.last_moved_at < self._config.cooldown_seconds
            ):
                counts["skipped"] += 1
                continue

            rate = meta.access_rate(now)
            try:
                if rate > self._config.sweep_promote_rate and meta.tier != CacheTier.HOT:
                    if self.promote(meta.key, CacheTier.HOT):
                        counts["promoted"] += 1
                elif rate < self._config.sweep_demote_rate and meta.tier == CacheTier.HOT:
                    if self.demote(meta.key, CacheTier.WARM):
                        counts["demoted"] += 1
            except CacheError as e:
                logger.debug(f"Tier sweep skipped {meta.key}: {e}")
        return counts

    def _moved(self, meta: EntryMetadata, tier: CacheTier) -> None:
        meta.tier = tier
        meta.last_moved_at = self._clock()

    def _record_compression(self, size_bytes: int, compressed_bytes: int) -> None:
        self._stats.compressions += 1
        self._stats.bytes_compressed += size_bytes
        self._stats.bytes_saved += size_bytes - compressed_bytes

    def _reinsert(self, meta: EntryMetadata, stored: Any) -> None:
        """Put an entry back in its tier after a failed move, or drop it."""
        if self._index.get(meta.key) is not meta:
            return
        try:
            self.ensure_space(meta.tier, meta.size_bytes)
            self._stores[meta.tier].set(meta.key, stored, meta.size_bytes)
        except CapacityError:
            logger.warning(f"Dropping {meta.key}: no room left to restore it")
            self._remove_entry(meta.key)
            self._stats.evictions += 1
