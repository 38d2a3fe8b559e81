"""Pytest configuration for Strata tests.

Provides a manual clock so time-dependent behavior (TTL, access rates,
eviction scores) is deterministic, and small tier budgets so capacity
pressure is easy to reach.
"""

import pytest

from strata.cache import create_cache
from strata.config import (
    KIB,
    PlacementConfig,
    PrefetchConfig,
    StrataConfig,
    TierConfig,
    TiersConfig,
    reset_config,
)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_small_config(**overrides) -> StrataConfig:
    """Three entries per tier, 1 KiB/16 KiB placement cut-offs, no prefetch."""
    values = {
        "tiers": TiersConfig(
            hot=TierConfig(max_items=3, max_bytes=4 * KIB, ttl_seconds=60),
            warm=TierConfig(max_items=3, max_bytes=64 * KIB, ttl_seconds=600),
            cold=TierConfig(max_items=3, max_bytes=256 * KIB, ttl_seconds=3600),
        ),
        "placement": PlacementConfig(hot_max_bytes=1 * KIB, warm_max_bytes=16 * KIB),
        "prefetch": PrefetchConfig(enabled=False),
    }
    values.update(overrides)
    return StrataConfig(**values)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def small_config():
    return make_small_config()


@pytest.fixture
def cache(small_config, clock):
    """Small-capacity cache driven by the manual clock."""
    instance = create_cache(small_config, clock=clock)
    yield instance
    instance.stop()


@pytest.fixture
def make_cache(clock):
    """Factory for small-capacity caches with config overrides."""
    created = []

    def factory(**overrides):
        instance = create_cache(make_small_config(**overrides), clock=clock)
        created.append(instance)
        return instance

    yield factory
    for instance in created:
        instance.stop()


@pytest.fixture
def prefetch_cache(make_cache):
    """Small-capacity cache with tag and pattern prefetch enabled."""
    return make_cache(prefetch=PrefetchConfig(enabled=True))


@pytest.fixture
def default_cache(clock):
    """Cache with the default production budgets."""
    instance = create_cache(clock=clock)
    yield instance
    instance.stop()


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    reset_config()
    yield
    reset_config()
