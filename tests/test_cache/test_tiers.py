"""Tests for cache tiers and the bounded tier store."""

import pytest

from strata.cache.tiers import CacheTier, TierStore
from strata.errors import CapacityError, ErrorCode, ValidationError


class TestCacheTier:
    """Tests for CacheTier parsing and ordering."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("hot", CacheTier.HOT),
            (" Warm ", CacheTier.WARM),
            ("COLD", CacheTier.COLD),
            (1, CacheTier.HOT),
            (CacheTier.WARM, CacheTier.WARM),
        ],
    )
    def test_parse(self, value, expected):
        """Test names, levels and members are accepted."""
        assert CacheTier.parse(value) is expected

    @pytest.mark.parametrize("value", ["lukewarm", 4, True, None, 1.0])
    def test_parse_unknown(self, value):
        """Test unknown tiers raise ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            CacheTier.parse(value)
        assert exc_info.value.code == ErrorCode.VAL_UNKNOWN_TIER

    def test_neighbors(self):
        """Test slower/faster navigation stops at the ends."""
        assert CacheTier.HOT.slower is CacheTier.WARM
        assert CacheTier.WARM.slower is CacheTier.COLD
        assert CacheTier.COLD.slower is None
        assert CacheTier.COLD.faster is CacheTier.WARM
        assert CacheTier.HOT.faster is None

    def test_label(self):
        """Test lower-case labels."""
        assert [tier.label for tier in CacheTier] == ["hot", "warm", "cold"]


class TestTierStore:
    """Tests for TierStore capacity accounting."""

    def _store(self, max_items=3, max_bytes=100):
        return TierStore(CacheTier.HOT, max_items=max_items, max_bytes=max_bytes, ttl_seconds=60)

    def test_set_get(self):
        """Test basic set/get and byte accounting."""
        store = self._store()
        store.set("a", "value", 10)

        assert store.get("a") == "value"
        assert store.has("a")
        assert "a" in store
        assert store.size_of("a") == 10
        assert store.current_items == 1
        assert store.current_bytes == 10

    def test_get_missing(self):
        """Test get returns None for missing keys."""
        assert self._store().get("missing") is None

    def test_overwrite_adjusts_bytes(self):
        """Test replacing a key charges only the new size."""
        store = self._store()
        store.set("a", "v1", 10)
        store.set("a", "v2", 30)

        assert len(store) == 1
        assert store.current_bytes == 30
        assert store.get("a") == "v2"

    def test_item_capacity(self):
        """Test set refuses to exceed max_items."""
        store = self._store(max_items=2)
        store.set("a", 1, 1)
        store.set("b", 2, 1)

        with pytest.raises(CapacityError) as exc_info:
            store.set("c", 3, 1)
        assert exc_info.value.details["tier"] == "hot"
        assert len(store) == 2

    def test_byte_capacity(self):
        """Test set refuses to exceed max_bytes."""
        store = self._store(max_bytes=50)
        store.set("a", 1, 40)

        with pytest.raises(CapacityError):
            store.set("b", 2, 20)
        assert store.current_bytes == 40

    def test_fits(self):
        """Test fits() with and without a key being replaced."""
        store = self._store(max_items=2, max_bytes=50)
        store.set("a", 1, 30)
        store.set("b", 2, 10)

        assert not store.fits(1)
        assert store.fits(40, replacing="a")
        assert not store.fits(41, replacing="a")

    def test_delete(self):
        """Test delete frees bytes and reports whether the key existed."""
        store = self._store()
        store.set("a", 1, 25)

        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.current_bytes == 0

    def test_insertion_order(self):
        """Test oldest_key, keys() and iteration follow insertion order."""
        store = self._store()
        for key in ("c", "a", "b"):
            store.set(key, key, 1)

        assert store.oldest_key() == "c"
        assert store.keys() == ["c", "a", "b"]
        assert list(store) == ["c", "a", "b"]

    def test_oldest_key_empty(self):
        """Test oldest_key is None for an empty store."""
        assert self._store().oldest_key() is None

    def test_clear_resets_counters(self):
        """Test clear drops entries and hit/miss counters."""
        store = self._store()
        store.set("a", 1, 5)
        store.hits = 3
        store.misses = 2

        store.clear()

        assert len(store) == 0
        assert store.current_bytes == 0
        assert store.hits == 0
        assert store.misses == 0

    def test_stats(self):
        """Test stats reports usage and utilization percentage."""
        store = self._store(max_bytes=200)
        store.set("a", 1, 50)

        stats = store.stats()

        assert stats["items"] == 1
        assert stats["bytes"] == 50
        assert stats["max_items"] == 3
        assert stats["max_bytes"] == 200
        assert stats["ttl_seconds"] == 60
        assert stats["utilization"] == 25.0
