"""Tests for background maintenance tasks."""

import threading

from strata.cache.maintenance import PeriodicTask


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    def test_run_once(self):
        """Test a manual run calls the function and counts it."""
        calls = []
        task = PeriodicTask("test-task", 60.0, lambda: calls.append(1))

        assert task.run_once() is True
        assert calls == [1]
        assert task.runs == 1

    def test_overlapping_run_is_skipped(self):
        """Test a run triggered while one is in progress is skipped."""
        inner_results = []

        def sweep():
            inner_results.append(task.run_once())

        task = PeriodicTask("test-task", 60.0, sweep)
        task.run_once()

        assert inner_results == [False]
        assert task.skipped == 1
        assert task.runs == 1

    def test_background_loop(self):
        """Test the thread runs the function until stopped."""
        ran = threading.Event()
        task = PeriodicTask("test-task", 0.01, ran.set)

        task.start()
        try:
            assert task.is_running
            assert ran.wait(timeout=2.0)
        finally:
            task.stop()

        assert not task.is_running

    def test_loop_survives_errors(self):
        """Test an exception in one run does not stop the loop."""
        calls = []
        second_run = threading.Event()

        def sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("sweep failed")
            second_run.set()

        task = PeriodicTask("test-task", 0.01, sweep)
        task.start()
        try:
            assert second_run.wait(timeout=2.0)
        finally:
            task.stop()

    def test_start_is_idempotent(self):
        """Test starting twice keeps one thread."""
        task = PeriodicTask("test-task", 60.0, lambda: None)
        task.start()
        thread = task._thread
        task.start()
        try:
            assert task._thread is thread
        finally:
            task.stop()

    def test_stop_without_start(self):
        """Test stop on a task that never started is a no-op."""
        task = PeriodicTask("test-task", 60.0, lambda: None)
        task.stop()
        assert not task.is_running
