"""Dependency tracking between cache entries.

When entry A depends on entry B, deleting B also deletes A. Cycles are refused
when edges are added, and cascades are walked iteratively with a visited set.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from collections.abc import Iterable

from strata.errors import DependencyCycleError

logger = logging.getLogger(__name__)


class DependencyTracker:
    """Tracks dependencies between cache entries."""

    def __init__(self) -> None:
        # key -> set of keys that depend on it
        self._dependents: dict[str, set[str]] = defaultdict(set)
        # key -> set of keys it depends on
        self._dependencies: dict[str, set[str]] = defaultdict(set)
        self._lock = threading.RLock()

    def __len__(self) -> int:
        """Number of edges."""
        with self._lock:
            return sum(len(deps) for deps in self._dependencies.values())

    def would_create_cycle(self, key: str, dependencies: Iterable[str]) -> bool:
        """Check whether ``key`` depending on ``dependencies`` closes a cycle.

        A cycle exists if any dependency is the key itself or already
        (transitively) depends on the key.
        """
        deps = set(dependencies)
        if not deps:
            return False
        if key in deps:
            return True
        with self._lock:
            return bool(self.get_cascade(key) & deps)

    def add_dependencies(self, key: str, dependencies: Iterable[str]) -> None:
        """Record that ``key`` depends on each of ``dependencies``.

        Raises:
            DependencyCycleError: If an edge would make cascades cyclic.
        """
        deps = set(dependencies)
        with self._lock:
            if self.would_create_cycle(key, deps):
                raise DependencyCycleError(
                    f"Dependencies of {key!r} would form a cycle",
                    key=key,
                    details={"dependencies": sorted(deps)},
                )
            for dep in deps:
                self._dependents[dep].add(key)
                self._dependencies[key].add(dep)

    def add_dependency(self, dependent_key: str, dependency_key: str) -> None:
        """Add a single dependency relationship."""
        self.add_dependencies(dependent_key, [dependency_key])

    def remove_key(self, key: str) -> None:
        """Remove a key and every edge touching it."""
        with self._lock:
            for dep in self._dependencies.pop(key, set()):
                dependents = self._dependents.get(dep)
                if dependents is not None:
                    dependents.discard(key)
                    if not dependents:
                        del self._dependents[dep]

            for dependent in self._dependents.pop(key, set()):
                deps = self._dependencies.get(dependent)
                if deps is not None:
                    deps.discard(key)
                    if not deps:
                        del self._dependencies[dependent]

    def clear_dependencies_of(self, key: str) -> None:
        """Drop the edges from ``key`` to what it depends on, keep its dependents."""
        with self._lock:
            for dep in self._dependencies.pop(key, set()):
                dependents = self._dependents.get(dep)
                if dependents is not None:
                    dependents.discard(key)
                    if not dependents:
                        del self._dependents[dep]

    def get_dependents(self, key: str) -> set[str]:
        """Keys that directly depend on ``key``."""
        with self._lock:
            return set(self._dependents.get(key, ()))

    def get_dependencies(self, key: str) -> set[str]:
        """Keys that ``key`` directly depends on."""
        with self._lock:
            return set(self._dependencies.get(key, ()))

    def get_cascade(self, key: str) -> set[str]:
        """All keys transitively depending on ``key`` (excluding ``key``).

        Breadth-first with a visited set, so depth is bounded by the number of
        keys and a cycle cannot loop.
        """
        with self._lock:
            visited: set[str] = {key}
            queue = deque([key])
            while queue:
                current = queue.popleft()
                for dependent in self._dependents.get(current, ()):
                    if dependent not in visited:
                        visited.add(dependent)
                        queue.append(dependent)
            visited.discard(key)
            return visited

    def clear(self) -> None:
        """Clear all dependencies."""
        with self._lock:
            self._dependents.clear()
            self._dependencies.clear()
