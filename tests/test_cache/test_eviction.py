"""Tests for eviction scoring and victim selection."""

import pytest

from strata.cache.eviction import EvictionPolicy
from strata.cache.metadata import EntryMetadata, MetadataIndex, Priority
from strata.cache.tiers import CacheTier, TierStore


def _meta(key, size_bytes=0, created_at=0.0, last_accessed_at=None, **kwargs):
    return EntryMetadata(
        key=key,
        tier=CacheTier.HOT,
        size_bytes=size_bytes,
        created_at=created_at,
        last_accessed_at=created_at if last_accessed_at is None else last_accessed_at,
        ttl_seconds=kwargs.pop("ttl_seconds", 300.0),
        **kwargs,
    )


@pytest.fixture
def store():
    return TierStore(CacheTier.HOT, max_items=10, max_bytes=100_000, ttl_seconds=300)


class TestScore:
    """Tests for EvictionPolicy.score()."""

    def test_formula(self):
        """Test idle + 1/(rate+1) + size in KiB."""
        meta = _meta("a", size_bytes=2048)
        assert EvictionPolicy().score(meta, now=10.0) == pytest.approx(10 + 1 + 2)

    def test_access_rate_lowers_score(self):
        """Test frequently accessed entries score lower."""
        meta = _meta("a", access_count=10, last_accessed_at=10.0)
        # rate = 10 / 10s = 1/s
        assert EvictionPolicy().score(meta, now=10.0) == pytest.approx(0.5)

    @pytest.mark.parametrize(
        ("priority", "expected"),
        [(Priority.LOW, 26.0), (Priority.NORMAL, 13.0), (Priority.HIGH, 6.5)],
    )
    def test_priority_weight(self, priority, expected):
        """Test low priority doubles and high priority halves the score."""
        meta = _meta("a", size_bytes=2048, priority=priority)
        assert EvictionPolicy().score(meta, now=10.0) == pytest.approx(expected)

    def test_expired_multiplier(self):
        """Test expired entries score ten times higher."""
        meta = _meta("a", size_bytes=2048, ttl_seconds=5)
        assert EvictionPolicy().score(meta, now=10.0) == pytest.approx(130.0)


class TestChooseVictim:
    """Tests for EvictionPolicy.choose_victim()."""

    def _populate(self, store, index, metas):
        for meta in metas:
            store.set(meta.key, meta.key, meta.size_bytes)
            index.put(meta)

    def test_picks_maximum_score(self, store):
        """Test the highest scoring key is chosen."""
        index = MetadataIndex()
        self._populate(
            store,
            index,
            [
                _meta("recent", last_accessed_at=9.0),
                _meta("idle", last_accessed_at=1.0),
                _meta("busy", access_count=50, last_accessed_at=9.5),
            ],
        )
        policy = EvictionPolicy()

        victim = policy.choose_victim(store, index, now=10.0)

        scores = {meta.key: policy.score(meta, 10.0) for meta in index}
        assert victim == max(scores, key=scores.get) == "idle"

    def test_respects_exclude(self, store):
        """Test excluded keys are never chosen."""
        index = MetadataIndex()
        self._populate(store, index, [_meta("a", size_bytes=4096), _meta("b")])

        assert EvictionPolicy().choose_victim(store, index, now=1.0, exclude={"a"}) == "b"

    def test_falls_back_to_oldest(self, store):
        """Test keys without metadata fall back to insertion order."""
        store.set("first", 1, 1)
        store.set("second", 2, 1)

        assert EvictionPolicy().choose_victim(store, MetadataIndex(), now=1.0) == "first"

    def test_empty_store(self, store):
        """Test None when there is nothing to evict."""
        assert EvictionPolicy().choose_victim(store, MetadataIndex(), now=1.0) is None

    def test_non_adaptive_is_insertion_order(self, store):
        """Test adaptive=False ignores scores."""
        index = MetadataIndex()
        self._populate(store, index, [_meta("small"), _meta("huge", size_bytes=50_000)])

        assert EvictionPolicy(adaptive=False).choose_victim(store, index, now=1.0) == "small"
        assert EvictionPolicy(adaptive=True).choose_victim(store, index, now=1.0) == "huge"
