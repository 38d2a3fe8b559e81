"""Access pattern tracking and prefetch scheduling.

Keys accessed at a steady interval are classified as "regular"; the cache
then schedules a one-shot prefetch shortly before the next expected access
so the entry is already hot when it is asked for.
"""

from __future__ import annotations

import logging
import statistics
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class AccessPattern:
    """Tracks access times for a specific key."""

    key: str
    timestamps: list[float] = field(default_factory=list)
    regular: bool = False
    interval: float | None = None

    def record_access(self, now: float, window_seconds: float) -> None:
        """Record an access and drop timestamps older than the window."""
        self.timestamps.append(now)
        cutoff = now - window_seconds
        if self.timestamps[0] <= cutoff:
            self.timestamps = [t for t in self.timestamps if t > cutoff]

    @property
    def intervals(self) -> list[float]:
        return [b - a for a, b in zip(self.timestamps, self.timestamps[1:])]


class AccessPatternTracker:
    """Per-key access timestamps in a rolling window."""

    def __init__(
        self,
        window_seconds: float = 3600.0,
        min_samples: int = 3,
        regularity_threshold: float = 0.2,
    ) -> None:
        """Initialize tracker.

        Args:
            window_seconds: How long timestamps are kept.
            min_samples: Timestamps needed before a pattern is evaluated.
            regularity_threshold: Max stddev/mean ratio for a regular pattern.
        """
        self.window_seconds = window_seconds
        self.min_samples = min_samples
        self.regularity_threshold = regularity_threshold
        self._patterns: dict[str, AccessPattern] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)

    def record_access(self, key: str, now: float) -> AccessPattern:
        pattern = self._patterns.get(key)
        if pattern is None:
            pattern = self._patterns[key] = AccessPattern(key=key)
        pattern.record_access(now, self.window_seconds)
        return pattern

    def detect_pattern(self, key: str) -> float | None:
        """Classify the key's accesses.

        Returns:
            The mean interval in seconds if the pattern is regular, else None.
        """
        pattern = self._patterns.get(key)
        if pattern is None or len(pattern.timestamps) < self.min_samples:
            return None

        intervals = pattern.intervals
        mean = statistics.fmean(intervals)
        if mean <= 0:
            return None
        stddev = statistics.pstdev(intervals, mu=mean)

        if stddev < mean * self.regularity_threshold:
            pattern.regular = True
            pattern.interval = mean
            return mean

        pattern.regular = False
        pattern.interval = None
        return None

    def get(self, key: str) -> AccessPattern | None:
        return self._patterns.get(key)

    def remove(self, key: str) -> None:
        self._patterns.pop(key, None)

    def clear(self) -> None:
        self._patterns.clear()


class PrefetchScheduler:
    """One-shot prefetch timers, at most one pending per key."""

    def __init__(self) -> None:
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, delay_seconds: float, callback: Callable[[str], None]) -> None:
        """Run ``callback(key)`` after ``delay_seconds``, replacing a pending timer."""
        timer = threading.Timer(max(delay_seconds, 0.0), self._fire, args=(key, callback))
        timer.daemon = True
        timer.name = f"strata-prefetch-{key}"
        with self._lock:
            previous = self._timers.pop(key, None)
            self._timers[key] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def _fire(self, key: str, callback: Callable[[str], None]) -> None:
        with self._lock:
            timer = self._timers.get(key)
            if timer is threading.current_thread():
                del self._timers[key]
        try:
            callback(key)
        except Exception as e:
            logger.debug(f"Scheduled prefetch for {key} failed: {e}")

    def pending(self) -> set[str]:
        with self._lock:
            return set(self._timers)

    def cancel(self, key: str) -> bool:
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)
