"""Content-hash deduplication of cache keys.

A primary key owns a stored payload and maps to itself. An alias maps to the
primary holding identical content and never owns a payload of its own.
"""

from __future__ import annotations


class DeduplicationTable:
    """Alias and content-hash bookkeeping."""

    def __init__(self) -> None:
        # key -> primary key (primaries map to themselves)
        self._pointers: dict[str, str] = {}
        # content hash -> primary key
        self._by_hash: dict[str, str] = {}
        # primary key -> content hash
        self._hash_of: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._pointers)

    def register_primary(self, key: str, content_hash: str | None) -> None:
        """Record ``key`` as the owner of its content."""
        self._pointers[key] = key
        if content_hash is None:
            return
        self._hash_of[key] = content_hash
        self._by_hash.setdefault(content_hash, key)

    def find_primary(self, content_hash: str | None) -> str | None:
        """Primary key already holding this content, if any."""
        if content_hash is None:
            return None
        return self._by_hash.get(content_hash)

    def add_alias(self, alias: str, primary: str) -> None:
        self._pointers[alias] = primary

    def resolve(self, key: str) -> str | None:
        """Primary for an alias, or None if ``key`` is not an alias."""
        target = self._pointers.get(key)
        if target is None or target == key:
            return None
        return target

    def is_alias(self, key: str) -> bool:
        return self.resolve(key) is not None

    def alias_count(self) -> int:
        return sum(1 for key, target in self._pointers.items() if key != target)

    def aliases_of(self, primary: str) -> list[str]:
        return [k for k, target in self._pointers.items() if target == primary and k != primary]

    def remove(self, key: str) -> list[str]:
        """Forget a key.

        Removing a primary also drops every alias pointing at it.

        Returns:
            The aliases removed along with the key.
        """
        target = self._pointers.pop(key, None)
        if target is None or target != key:
            return []

        content_hash = self._hash_of.pop(key, None)
        if content_hash is not None and self._by_hash.get(content_hash) == key:
            del self._by_hash[content_hash]

        aliases = [k for k, t in self._pointers.items() if t == key]
        for alias in aliases:
            del self._pointers[alias]
        return aliases

    def clear(self) -> None:
        self._pointers.clear()
        self._by_hash.clear()
        self._hash_of.clear()
