"""
Thread Manager for the content blocker sync tool.

Centralized thread management around a ThreadPoolExecutor. Feed fetch chains
are network-bound, so a single IO pool is all the update pipeline needs.
"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, List, Optional

from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_THREADING

logger = get_logger(__name__)


class ThreadPoolType(Enum):
    """Thread pool types"""
    IO = "io"               # Network fetches, file I/O


class Task:
    """Wrapper for executable tasks with metadata"""
    def __init__(self, func: Callable, *args, task_id: Optional[str] = None, **kwargs):
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self.task_id = task_id or f"task_{id(self)}"
        self.created_at = time.time()
        self.future: Optional[Future] = None


class ThreadManager:
    """
    Centralized thread manager.

    Features:
    - IO thread pool sized for the number of concurrent fetch chains
    - Failures are logged on the worker and never reach the submitter
    - Active task tracking for shutdown diagnostics
    """

    DEFAULT_IO_WORKERS = 6

    def __init__(self, config: Optional[Dict[ThreadPoolType, int]] = None):
        """
        Initialize thread manager.

        Args:
            config: Dictionary mapping ThreadPoolType to max_workers count
        """
        self._shutdown = False
        self._lock = threading.Lock()

        default_config = {
            ThreadPoolType.IO: self.DEFAULT_IO_WORKERS,
        }
        self.config = {**default_config, **(config or {})}

        self._executors: Dict[ThreadPoolType, ThreadPoolExecutor] = {}
        self._active_tasks: Dict[str, Task] = {}

        for pool_type, max_workers in self.config.items():
            self._executors[pool_type] = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix=f"{pool_type.value}_pool"
            )
            logger.info(f"{TAG_THREADING} Initialized {pool_type.value} pool with {max_workers} workers")

    def submit_task(self, pool_type: ThreadPoolType, func: Callable, *args,
                    task_id: Optional[str] = None, **kwargs) -> str:
        """
        Submit a task to the specified thread pool.

        Args:
            pool_type: Which thread pool to use
            func: Function to execute
            *args: Positional arguments for func
            task_id: Optional unique identifier
            **kwargs: Keyword arguments for func

        Returns:
            str: Task ID for tracking
        """
        if self._shutdown:
            raise RuntimeError("Thread manager is shut down")

        task = Task(func, *args, task_id=task_id, **kwargs)
        executor = self._executors[pool_type]

        def wrapped_func():
            start_time = time.time()
            try:
                task.func(*task.args, **task.kwargs)
            except Exception as e:
                logger.error(f"{TAG_THREADING} Task {task.task_id} failed: {e}")
            finally:
                with self._lock:
                    self._active_tasks.pop(task.task_id, None)
            if is_verbose_logging():
                logger.debug(f"{TAG_THREADING} Task {task.task_id} finished in {time.time() - start_time:.3f}s")

        with self._lock:
            self._active_tasks[task.task_id] = task
        task.future = executor.submit(wrapped_func)

        if is_verbose_logging():
            logger.debug(f"{TAG_THREADING} Submitted task {task.task_id} to {pool_type.value} pool")
        return task.task_id

    def submit_io_task(self, func: Callable, *args, **kwargs) -> str:
        """Convenience method for IO pool submissions"""
        return self.submit_task(ThreadPoolType.IO, func, *args, **kwargs)

    def get_active_tasks(self) -> List[str]:
        """Get list of currently active task IDs"""
        with self._lock:
            return list(self._active_tasks.keys())

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown all thread pools.

        Args:
            wait: Whether to wait for running tasks. When False, queued tasks
                are cancelled and running ones are left to finish on their own.
        """
        if self._shutdown:
            return
        self._shutdown = True
        logger.info(f"{TAG_THREADING} Shutting down thread manager...")

        for pool_type, executor in self._executors.items():
            pending = self.get_active_tasks()
            if pending:
                logger.info(f"{TAG_THREADING} Pool {pool_type.value} has {len(pending)} pending tasks during shutdown")
            executor.shutdown(wait=wait, cancel_futures=not wait)

        self._executors.clear()
        with self._lock:
            self._active_tasks.clear()

        logger.info(f"{TAG_THREADING} Thread manager shut down complete")
