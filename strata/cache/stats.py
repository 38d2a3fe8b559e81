"""Counters for cache monitoring."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class CacheStats:
    """Cache-wide statistics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    failed_sets: int = 0
    deletes: int = 0
    evictions: int = 0
    expirations: int = 0
    compressions: int = 0
    decompressions: int = 0
    promotions: int = 0
    demotions: int = 0
    bytes_compressed: int = 0
    bytes_saved: int = 0
    prefetch_hits: int = 0
    deduplication_hits: int = 0

    @property
    def hit_rate(self) -> float:
        """Overall hit rate (any tier)."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def compression_ratio(self) -> float:
        """Fraction of compressed input bytes saved by compression."""
        return self.bytes_saved / self.bytes_compressed if self.bytes_compressed > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
