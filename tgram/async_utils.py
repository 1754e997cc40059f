"""
Async Utilities - Tracked task management.

The dispatcher spawns one short-lived task per message. TaskTracker keeps a
handle on each so failures are logged instead of silently dropped and so
shutdown can wait for (or cancel) whatever is still in flight.

Usage:
    tracker = TaskTracker("dispatch")
    tracker.create_task(handle(message), name=f"update_{update_id}")
    await tracker.wait_all(timeout=10.0)
"""

import asyncio
import functools
import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Coroutine, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TaskInfo:
    """Information about a tracked task."""
    name: str
    created_at: datetime
    task: asyncio.Task


class TaskTracker:
    """
    Tracks asyncio tasks to prevent silent failures and leaks.

    Completed tasks are forgotten as soon as they finish; only counters
    survive.
    """

    def __init__(self, component_name: str = "default"):
        self.component_name = component_name
        self._tasks: Dict[str, TaskInfo] = {}
        self._task_counter = 0
        self._total_created = 0
        self._total_succeeded = 0
        self._total_failed = 0
        self._total_cancelled = 0

    def create_task(
        self,
        coro: Coroutine,
        name: Optional[str] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> asyncio.Task:
        """
        Create a tracked asyncio task.

        Args:
            coro: Coroutine to run
            name: Optional name for the task
            on_error: Optional callback when the task raises
        """
        self._task_counter += 1
        self._total_created += 1
        task_name = name or f"task_{self._task_counter}"
        full_name = f"{self.component_name}.{task_name}#{self._task_counter}"

        task = asyncio.create_task(coro, name=full_name)
        self._tasks[full_name] = TaskInfo(
            name=full_name,
            created_at=datetime.now(),
            task=task,
        )

        task.add_done_callback(
            functools.partial(self._on_task_done, task_name=full_name, on_error=on_error)
        )
        return task

    def _on_task_done(
        self,
        task: asyncio.Task,
        task_name: str,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        """Record the outcome and forget the task."""
        self._tasks.pop(task_name, None)

        if task.cancelled():
            self._total_cancelled += 1
            logger.debug(f"[{task_name}] Task was cancelled")
            return

        exc = task.exception()
        if exc is None:
            self._total_succeeded += 1
            return

        self._total_failed += 1
        logger.error(
            f"[{task_name}] Task failed: {type(exc).__name__}: {exc}\n"
            f"{''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}"
        )
        if on_error:
            try:
                on_error(exc)
            except Exception as callback_err:
                logger.error(f"[{task_name}] on_error callback failed: {callback_err}")

    @property
    def running_count(self) -> int:
        return len(self._tasks)

    def get_running_tasks(self) -> List[TaskInfo]:
        """Get all currently running tasks."""
        return [info for info in self._tasks.values() if not info.task.done()]

    async def wait_all(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every running task to finish.

        Returns:
            True if all finished, False if the timeout expired first
        """
        tasks = [info.task for info in self.get_running_tasks()]
        if not tasks:
            return True

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        return not pending

    async def cancel_all(self, timeout: float = 5.0) -> int:
        """
        Cancel all running tasks.

        Returns:
            Number of tasks cancelled
        """
        running = self.get_running_tasks()
        if not running:
            return 0

        for info in running:
            info.task.cancel()

        tasks = [info.task for info in running]
        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{self.component_name}] Some tasks did not cancel within {timeout}s")

        return len(running)

    def get_stats(self) -> Dict[str, Any]:
        """Get task tracker statistics."""
        return {
            "component": self.component_name,
            "total_created": self._total_created,
            "total_succeeded": self._total_succeeded,
            "total_failed": self._total_failed,
            "total_cancelled": self._total_cancelled,
            "currently_running": len(self._tasks),
        }
