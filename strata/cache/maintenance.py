"""Background maintenance sweeps.

Each PeriodicTask owns one daemon thread that calls its function every
``interval`` seconds until stopped. A run that is still in progress when the
next one is due (or that is triggered manually at the same time) is skipped,
never overlapped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Non-reentrant interval task on a daemon thread."""

    def __init__(self, name: str, interval: float, func: Callable[[], Any]) -> None:
        """Initialize the task.

        Args:
            name: Thread name and log label.
            interval: Seconds between runs.
            func: Sweep function; exceptions are logged and the loop continues.
        """
        self.name = name
        self.interval = interval
        self._func = func
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()
        self._lock = threading.Lock()
        self.runs = 0
        self.skipped = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background thread."""
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()
            logger.debug("%s started (interval %.1fs)", self.name, self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background thread.

        Args:
            timeout: Seconds to wait for the thread to finish.
        """
        with self._lock:
            self._stop_event.set()
            thread = self._thread
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=timeout)
                if thread.is_alive():
                    logger.warning("%s did not stop within %.1fs", self.name, timeout)
            self._thread = None

    def run_once(self) -> bool:
        """Run the function now unless a run is already in progress.

        Returns:
            True if the function ran, False if skipped.
        """
        if not self._run_lock.acquire(blocking=False):
            self.skipped += 1
            logger.debug("%s still running, skipping", self.name)
            return False
        try:
            self._func()
            self.runs += 1
            return True
        finally:
            self._run_lock.release()

    def _run_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval):
            try:
                self.run_once()
            except Exception as e:
                logger.exception(f"Error in {self.name}: {e}")
