"""Background task helpers for the FXP transfer tool.

Provides ThreadedTask, which runs one callable on a daemon thread and
reports how it ended, either to a callback or to a caller blocked in
``wait``.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar


T = TypeVar("T")


class TaskStatus(Enum):
    """Lifecycle of a background task."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskResult(Generic[T]):
    """Outcome of a finished task: a return value or the exception raised."""
    status: TaskStatus
    result: Optional[T] = None
    error: Optional[Exception] = None


class ThreadedTask(Generic[T]):
    """
    A callable bound to its own daemon thread.

    The monitor starts one per control channel:

        task = ThreadedTask(watch, args=(channel, draining), on_complete=outcomes.put)
        task.start()
        ...
        outcome = task.wait(timeout=5)
    """

    def __init__(
        self,
        target: Callable[..., T],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        on_complete: Optional[Callable[[TaskResult[T]], None]] = None,
        name: Optional[str] = None
    ):
        """
        Args:
            target: Callable to run
            args: Positional arguments for target
            kwargs: Keyword arguments for target
            on_complete: Receives the TaskResult, on the worker thread
            name: Thread name shown in debuggers and thread dumps
        """
        self._call = lambda: target(*args, **(kwargs or {}))
        self._on_complete = on_complete
        self._thread = threading.Thread(target=self._execute, name=name, daemon=True)
        self._finished = threading.Event()
        self._outcome = TaskResult(status=TaskStatus.PENDING)

    def start(self) -> None:
        """
        Launch the worker thread.

        Raises:
            RuntimeError: If the task was already started
        """
        if self._outcome.status != TaskStatus.PENDING:
            raise RuntimeError("Task already started")
        self._outcome = TaskResult(status=TaskStatus.RUNNING)
        self._thread.start()

    def _execute(self) -> None:
        try:
            outcome = TaskResult(status=TaskStatus.COMPLETED, result=self._call())
        except Exception as e:
            outcome = TaskResult(status=TaskStatus.FAILED, error=e)

        self._outcome = outcome
        try:
            if self._on_complete is not None:
                self._on_complete(outcome)
        finally:
            self._finished.set()

    def wait(self, timeout: Optional[float] = None) -> TaskResult[T]:
        """
        Block until the task has finished and its thread has exited.

        Returns immediately with a PENDING result if it was never started.

        Raises:
            TimeoutError: If the task is still running after ``timeout``
        """
        if self._outcome.status == TaskStatus.PENDING:
            return self._outcome
        if not self._finished.wait(timeout):
            raise TimeoutError("Task did not complete within timeout")
        self._thread.join()
        return self._outcome
