"""Eviction scoring for tier capacity pressure.

Score (higher = more evictable):

    idle_seconds + 1 / (access_rate + 1) + size_kb

multiplied by 2 for low priority, 0.5 for high priority, and 10 once the
entry's TTL has passed.
"""

from __future__ import annotations

import logging
from collections.abc import Collection

from strata.cache.metadata import EntryMetadata, MetadataIndex, Priority
from strata.cache.tiers import TierStore

logger = logging.getLogger(__name__)

_PRIORITY_WEIGHTS = {
    Priority.LOW: 2.0,
    Priority.NORMAL: 1.0,
    Priority.HIGH: 0.5,
}
EXPIRED_MULTIPLIER = 10.0


class EvictionPolicy:
    """Chooses which key a full tier gives up.

    With ``adaptive=False`` the policy ignores scores and evicts in insertion
    order.
    """

    def __init__(self, adaptive: bool = True) -> None:
        self.adaptive = adaptive

    def score(self, meta: EntryMetadata, now: float) -> float:
        """Eviction score for one entry."""
        score = meta.idle(now)
        score += 1.0 / (meta.access_rate(now) + 1.0)
        score += meta.size_bytes / 1024
        score *= _PRIORITY_WEIGHTS[meta.priority]
        if meta.is_expired(now):
            score *= EXPIRED_MULTIPLIER
        return score

    def choose_victim(
        self,
        store: TierStore,
        index: MetadataIndex,
        now: float,
        exclude: Collection[str] = (),
    ) -> str | None:
        """Pick the key to remove from ``store``.

        Args:
            store: Tier under pressure.
            index: Metadata for scoring.
            now: Current time from the cache clock.
            exclude: Keys that must stay (e.g., the entry being moved in).

        Returns:
            The highest scoring key, the oldest key when nothing can be scored,
            or None if the tier holds no eligible key.
        """
        if not self.adaptive:
            return self._oldest(store, exclude)

        victim: str | None = None
        best = float("-inf")
        for key in store:
            if key in exclude:
                continue
            meta = index.get(key)
            if meta is None:
                continue
            candidate = self.score(meta, now)
            if candidate > best:
                best = candidate
                victim = key

        if victim is None:
            victim = self._oldest(store, exclude)
            if victim is not None:
                logger.debug("No scorable entries in %s, falling back to oldest key", store.tier.label)
        return victim

    @staticmethod
    def _oldest(store: TierStore, exclude: Collection[str]) -> str | None:
        for key in store:
            if key not in exclude:
                return key
        return None
