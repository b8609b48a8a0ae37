"""
Integration tests for ThreadManager.

Tests the centralized threading functionality including:
- Thread pool initialization
- Task submission and execution
- Failure logging
- Shutdown behavior
"""
import logging
import threading
import time
import pytest

from core.threading.manager import (
    ThreadManager,
    ThreadPoolType,
    Task,
)


class TestThreadManagerInit:
    """Thread manager initialization tests."""

    def test_init_creates_io_pool(self):
        """Test that IO pool is created."""
        manager = ThreadManager()
        assert ThreadPoolType.IO in manager._executors
        manager.shutdown()

    def test_init_with_custom_config(self):
        """Test initialization with custom pool sizes."""
        manager = ThreadManager(config={ThreadPoolType.IO: 2})
        assert manager.config[ThreadPoolType.IO] == 2
        manager.shutdown()

    def test_init_default_io_workers(self):
        """Default IO pool fits one worker per fetch chain."""
        manager = ThreadManager()
        assert manager.config[ThreadPoolType.IO] == 6
        manager.shutdown()


class TestTaskClass:
    """Tests for Task wrapper class."""

    def test_task_with_args_and_kwargs(self):
        def greet(greeting, name="World"):
            return f"{greeting}, {name}"

        task = Task(greet, "Hello", name="Test")
        assert task.args == ("Hello",)
        assert task.kwargs == {"name": "Test"}

    def test_task_with_task_id(self):
        task = Task(lambda: None, task_id="my_task")
        assert task.task_id == "my_task"

    def test_task_default_id(self):
        task = Task(lambda: None)
        assert task.task_id.startswith("task_")


class TestThreadManagerSubmit:
    """Task submission tests."""

    def test_submit_io_task(self, thread_manager):
        """Test submitting task to IO pool."""
        done = threading.Event()

        task_id = thread_manager.submit_io_task(done.set)
        assert task_id is not None
        assert done.wait(timeout=2.0)

    def test_args_reach_the_task(self, thread_manager):
        results = []
        finished = threading.Event()

        def add(a, b, scale=1):
            results.append((a + b) * scale)
            finished.set()

        thread_manager.submit_task(ThreadPoolType.IO, add, 5, 3, scale=2)
        assert finished.wait(timeout=2.0)
        assert results == [16]

    def test_task_error_is_logged(self, caplog):
        """Task errors are logged on the worker, not raised to the submitter."""
        manager = ThreadManager()

        def failing_task():
            raise ValueError("intentional error")

        with caplog.at_level(logging.ERROR, logger="core.threading.manager"):
            manager.submit_io_task(failing_task, task_id="broken")
            manager.shutdown(wait=True)

        assert "Task broken failed: intentional error" in caplog.text

    def test_active_tasks_tracked_until_done(self, thread_manager):
        gate = threading.Event()
        thread_manager.submit_io_task(gate.wait, task_id="slow")
        assert "slow" in thread_manager.get_active_tasks()

        gate.set()
        deadline = time.time() + 2.0
        while "slow" in thread_manager.get_active_tasks() and time.time() < deadline:
            time.sleep(0.01)
        assert "slow" not in thread_manager.get_active_tasks()

    def test_submit_after_shutdown_raises(self):
        """Test that submitting after shutdown raises error."""
        manager = ThreadManager()
        manager.shutdown()

        with pytest.raises(RuntimeError):
            manager.submit_task(ThreadPoolType.IO, lambda: None)


class TestThreadManagerConcurrency:
    """Concurrency and thread safety tests."""

    def test_multiple_concurrent_tasks(self):
        """Test multiple tasks run concurrently."""
        manager = ThreadManager()
        results = []
        lock = threading.Lock()

        def task(task_id):
            time.sleep(0.05)
            with lock:
                results.append(task_id)

        for i in range(10):
            manager.submit_task(ThreadPoolType.IO, task, i)

        manager.shutdown(wait=True)
        assert sorted(results) == list(range(10))


class TestThreadManagerShutdown:
    """Shutdown behavior tests."""

    def test_shutdown_completes_pending_tasks(self):
        """Test shutdown waits for pending tasks."""
        manager = ThreadManager()
        results = []

        def slow_task():
            time.sleep(0.1)
            results.append("done")

        manager.submit_task(ThreadPoolType.IO, slow_task)
        manager.shutdown(wait=True)

        assert "done" in results

    def test_shutdown_without_wait_leaves_running_task(self):
        manager = ThreadManager()
        gate = threading.Event()
        manager.submit_io_task(gate.wait, task_id="stuck")

        started = time.time()
        manager.shutdown(wait=False)
        assert time.time() - started < 1.0
        gate.set()

    def test_double_shutdown_safe(self):
        """Test calling shutdown twice is safe."""
        manager = ThreadManager()
        manager.shutdown()
        manager.shutdown()

    def test_pool_type_values(self):
        assert ThreadPoolType.IO.value == "io"
