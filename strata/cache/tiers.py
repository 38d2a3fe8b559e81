"""Cache tiers and the bounded per-tier store.

Three tiers ordered from fastest to slowest:
- HOT: raw values, small and frequently accessed
- WARM: values above the compression threshold are gzip-compressed
- COLD: large or rarely accessed values, overflow is deleted outright
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from enum import IntEnum
from typing import Any

from strata.errors import CapacityError, unknown_tier

logger = logging.getLogger(__name__)


class CacheTier(IntEnum):
    """Cache tier levels (lower value = faster tier)."""

    HOT = 1
    WARM = 2
    COLD = 3

    @property
    def label(self) -> str:
        """Lower-case tier name used in stats and events."""
        return self.name.lower()

    @property
    def slower(self) -> CacheTier | None:
        """Next slower tier, or None for COLD."""
        return CacheTier(self + 1) if self < CacheTier.COLD else None

    @property
    def faster(self) -> CacheTier | None:
        """Next faster tier, or None for HOT."""
        return CacheTier(self - 1) if self > CacheTier.HOT else None

    @classmethod
    def parse(cls, value: CacheTier | str | int) -> CacheTier:
        """Accept a tier, its name ("hot") or its level (1).

        Raises:
            ValidationError: If the value names no tier.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise unknown_tier(value) from None
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise unknown_tier(value) from None
        raise unknown_tier(value)


class TierStore:
    """Bounded key -> stored value map for one tier.

    Tracks item count and the byte size recorded for each key. ``set`` never
    exceeds capacity: callers free room first through the eviction path, and
    a write that still does not fit raises CapacityError.

    Not thread-safe on its own; the owning cache serializes access.
    """

    def __init__(
        self,
        tier: CacheTier,
        max_items: int,
        max_bytes: int,
        ttl_seconds: float,
    ) -> None:
        """Initialize tier store.

        Args:
            tier: Tier this store backs.
            max_items: Maximum number of entries.
            max_bytes: Maximum total recorded size in bytes.
            ttl_seconds: Default TTL for entries placed here.
        """
        self.tier = tier
        self.max_items = max_items
        self.max_bytes = max_bytes
        self.ttl_seconds = ttl_seconds
        self._values: dict[str, Any] = {}
        self._sizes: dict[str, int] = {}
        self._current_bytes = 0
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    @property
    def current_items(self) -> int:
        return len(self._values)

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    def has(self, key: str) -> bool:
        return key in self._values

    def get(self, key: str) -> Any | None:
        """Return the stored (possibly compressed) value, or None."""
        return self._values.get(key)

    def size_of(self, key: str) -> int:
        return self._sizes.get(key, 0)

    def fits(self, size_bytes: int, replacing: str | None = None) -> bool:
        """Whether an entry of ``size_bytes`` fits without eviction.

        Args:
            size_bytes: Size of the incoming entry.
            replacing: Key whose current value the entry would overwrite.
        """
        items = len(self._values)
        current = self._current_bytes
        if replacing is not None and replacing in self._values:
            items -= 1
            current -= self._sizes[replacing]
        return items < self.max_items and current + size_bytes <= self.max_bytes

    def set(self, key: str, value: Any, size_bytes: int) -> None:
        """Store a value, replacing any previous value for the key.

        Args:
            key: Cache key.
            value: Value to store (raw or compressed).
            size_bytes: Size charged against the tier budget.

        Raises:
            CapacityError: If the write would exceed item or byte capacity.
        """
        previous = self._sizes.get(key)
        items_after = len(self._values) + (0 if previous is not None else 1)
        bytes_after = self._current_bytes - (previous or 0) + size_bytes
        if items_after > self.max_items or bytes_after > self.max_bytes:
            raise CapacityError(
                f"Tier {self.tier.label} cannot hold {size_bytes} more bytes",
                key=key,
                tier=self.tier.label,
                details={
                    "current_items": len(self._values),
                    "current_bytes": self._current_bytes,
                    "max_items": self.max_items,
                    "max_bytes": self.max_bytes,
                },
            )
        self._values[key] = value
        self._sizes[key] = size_bytes
        self._current_bytes = bytes_after

    def delete(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if removed, False if not found.
        """
        if key not in self._values:
            return False
        del self._values[key]
        self._current_bytes -= self._sizes.pop(key)
        return True

    def oldest_key(self) -> str | None:
        """First key in insertion order, or None if empty."""
        return next(iter(self._values), None)

    def keys(self) -> list[str]:
        return list(self._values)

    def clear(self) -> None:
        """Clear all entries and counters."""
        self._values.clear()
        self._sizes.clear()
        self._current_bytes = 0
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict[str, Any]:
        """Get tier statistics."""
        return {
            "items": len(self._values),
            "bytes": self._current_bytes,
            "max_items": self.max_items,
            "max_bytes": self.max_bytes,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "utilization": (self._current_bytes / self.max_bytes) * 100 if self.max_bytes else 0.0,
        }
