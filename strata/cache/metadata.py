"""Per-key metadata records for stored cache entries."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from enum import Enum

from strata.cache.tiers import CacheTier
from strata.errors import unknown_priority


class Priority(str, Enum):
    """Eviction bias for an entry."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Priority | str) -> Priority:
        """Accept a priority or its name.

        Raises:
            ValidationError: If the value names no priority.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise unknown_priority(value) from None


@dataclass
class EntryMetadata:
    """A stored entry's bookkeeping.

    Timestamps are seconds from the owning cache's clock.
    """

    key: str
    tier: CacheTier
    size_bytes: int
    created_at: float
    last_accessed_at: float
    ttl_seconds: float
    compressed: bool = False
    binary: bool = False
    access_count: int = 0
    priority: Priority = Priority.NORMAL
    tags: frozenset[str] = field(default_factory=frozenset)
    dependencies: frozenset[str] = field(default_factory=frozenset)
    content_hash: str | None = None
    last_moved_at: float | None = None

    def age(self, now: float) -> float:
        return max(now - self.created_at, 0.0)

    def idle(self, now: float) -> float:
        return max(now - self.last_accessed_at, 0.0)

    def access_rate(self, now: float) -> float:
        """Accesses per second over the entry's lifetime."""
        age = self.age(now)
        if age <= 0:
            return 0.0
        return self.access_count / age

    def is_expired(self, now: float) -> bool:
        return now > self.created_at + self.ttl_seconds

    def touch(self, now: float) -> None:
        """Update access time and count."""
        self.last_accessed_at = now
        self.access_count += 1

    def snapshot(self) -> EntryMetadata:
        """Detached copy safe to hand to callers."""
        return replace(self)


class MetadataIndex:
    """key -> EntryMetadata for every stored key."""

    def __init__(self) -> None:
        self._records: dict[str, EntryMetadata] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[EntryMetadata]:
        return iter(list(self._records.values()))

    def get(self, key: str) -> EntryMetadata | None:
        return self._records.get(key)

    def put(self, meta: EntryMetadata) -> None:
        self._records[meta.key] = meta

    def remove(self, key: str) -> EntryMetadata | None:
        return self._records.pop(key, None)

    def with_any_tag(self, tags: frozenset[str]) -> list[EntryMetadata]:
        return [meta for meta in self._records.values() if meta.tags & tags]

    def expired(self, now: float) -> list[EntryMetadata]:
        return [meta for meta in self._records.values() if meta.is_expired(now)]

    def clear(self) -> None:
        self._records.clear()
