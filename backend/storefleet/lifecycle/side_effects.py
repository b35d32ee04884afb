"""
Bounded background queue for fire-and-forget side effects.

Status history writes and directory syncs are submitted here after the
primary status change has committed. The request path never waits on them.

Semantics:
- Bounded: submit() returns False and drops the task when the queue is full
- In order: one worker thread runs tasks in submission order
- Time-boxed: each task gets at most timeout_seconds, then the worker moves on
- At-most-once: failed or timed-out tasks are logged, never retried
"""

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, Optional

from storefleet.entitlements.errors import SideEffectFailure

logger = logging.getLogger(__name__)


@dataclass
class SideEffectTask:
    """One unit of deferred work."""

    name: str
    fn: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    tenant_id: Optional[str] = None
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class SideEffectQueue:
    """
    Queue plus a daemon worker thread.

    The worker hands each task to a small thread pool so a hanging call can
    be abandoned after the timeout without blocking the tasks behind it.
    """

    def __init__(
        self,
        max_queue_size: int = 1000,
        timeout_seconds: float = 10.0,
        max_workers: int = 4,
    ):
        self._queue: Queue = Queue(maxsize=max_queue_size)
        self._timeout = timeout_seconds
        self._max_workers = max_workers
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()

        self._pending = 0
        self._idle = threading.Condition()
        self._stats = {
            "submitted": 0,
            "completed": 0,
            "failed": 0,
            "timed_out": 0,
            "dropped": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the background worker thread."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="side-effect",
            )
            self._thread = threading.Thread(
                target=self._process_queue,
                name="side-effect-queue",
                daemon=True,
            )
            self._thread.start()
            logger.info(
                "Side-effect queue started",
                extra={"timeout_seconds": self._timeout, "max_workers": self._max_workers},
            )

    def stop(self, drain_timeout: float = 5.0) -> None:
        """Drain outstanding work, then stop the worker."""
        self.drain(timeout=drain_timeout)
        with self._lock:
            self._running = False
            if self._thread:
                self._thread.join(timeout=5.0)
                self._thread = None
            if self._executor:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None
        logger.info("Side-effect queue stopped", extra={"stats": self.stats()})

    def submit(
        self,
        name: str,
        fn: Callable[..., Any],
        *args: Any,
        tenant_id: Optional[str] = None,
        **kwargs: Any,
    ) -> bool:
        """
        Enqueue a task without waiting for it.

        Returns:
            True if queued, False if the queue was full and the task dropped
        """
        if not self._running:
            self.start()

        task = SideEffectTask(name=name, fn=fn, args=args, kwargs=kwargs, tenant_id=tenant_id)

        with self._idle:
            self._pending += 1
        try:
            self._queue.put_nowait(task)
        except Full:
            self._task_finished("dropped")
            logger.warning(
                "Side-effect queue full, dropping task",
                extra={"task": name, "tenant_id": tenant_id, "task_id": task.task_id},
            )
            return False

        with self._stats_lock:
            self._stats["submitted"] += 1
        return True

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted task has finished.

        Returns:
            False if the timeout elapsed first
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats, pending=self._pending)

    def _task_finished(self, outcome: str) -> None:
        with self._stats_lock:
            self._stats[outcome] += 1
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    def _process_queue(self) -> None:
        """Background thread loop."""
        while self._running or not self._queue.empty():
            try:
                task = self._queue.get(timeout=0.5)
            except Empty:
                continue
            try:
                outcome = self._run(task)
            finally:
                self._queue.task_done()
            self._task_finished(outcome)

    def _run(self, task: SideEffectTask) -> str:
        executor = self._executor
        if executor is None:
            return "dropped"

        future = executor.submit(task.fn, *task.args, **task.kwargs)
        try:
            future.result(timeout=self._timeout)
            return "completed"
        except FuturesTimeoutError:
            # Only stops a task that has not started yet
            future.cancel()
            failure = SideEffectFailure(
                task.name,
                f"Side effect '{task.name}' timed out after {self._timeout}s",
                tenant_id=task.tenant_id,
                task_id=task.task_id,
            )
            logger.error(
                "Side effect timed out",
                extra={"side_effect": failure.to_dict()},
            )
            return "timed_out"
        except Exception as e:
            failure = SideEffectFailure(
                task.name,
                f"Side effect '{task.name}' failed: {e}",
                tenant_id=task.tenant_id,
                task_id=task.task_id,
            )
            logger.error(
                "Side effect failed",
                extra={"side_effect": failure.to_dict()},
                exc_info=True,
            )
            return "failed"
