"""Cache event notifications.

Callbacks receive the event and a payload dict. They run synchronously on the
thread that triggered the event, while the cache lock is held, so they should
be quick and must not block on other threads that use the cache.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CacheEvent(str, Enum):
    """Events emitted by IntelligentCache."""

    HIT = "hit"
    MISS = "miss"
    SET = "set"
    DEDUPLICATED = "deduplicated"
    DELETE = "delete"
    EVICTED = "evicted"
    EXPIRED = "expired"
    PROMOTED = "promoted"
    DEMOTED = "demoted"
    CLEARED = "cleared"


EventCallback = Callable[[CacheEvent, dict[str, Any]], None]


class EventBus:
    """Registry of callbacks per event."""

    def __init__(self) -> None:
        self._callbacks: dict[CacheEvent, list[EventCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def register(self, event: CacheEvent | str, callback: EventCallback) -> None:
        """Register ``callback`` for ``event``."""
        with self._lock:
            self._callbacks[CacheEvent(event)].append(callback)

    def unregister(self, event: CacheEvent | str, callback: EventCallback) -> bool:
        """Remove a callback.

        Returns:
            True if it was registered.
        """
        with self._lock:
            callbacks = self._callbacks.get(CacheEvent(event), [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
            return False

    def emit(self, event: CacheEvent, payload: dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(event, ()))
        for callback in callbacks:
            try:
                callback(event, payload)
            except Exception as e:
                logger.exception(f"Cache {event.value} callback error: {e}")
