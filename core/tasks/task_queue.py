# ============================================================
# Suspect Re-identification
# core/tasks/task_queue.py
# ============================================================
# Single-consumer FIFO for all model inference.
#
#   enqueue()  — fire-and-forget, failures go to the log and ErrorLog
#   submit()   — same FIFO, but the caller awaits the outcome
#
# One consumer coroutine pulls tasks in order and runs each on a
# one-thread executor, so at most one task executes at any time
# and the event loop itself never runs inference.
# ============================================================

from __future__ import annotations

import asyncio
import functools
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from loguru import logger

from core.errors import PipelineCancelled, TaskTimeoutError
from utils.error_log import ErrorLog


class CancellationToken:
    """
    Thread-safe flag shared between the queue and the running task.

    Long tasks call :meth:`raise_if_cancelled` at safe points (pipeline
    stage boundaries) so a timed-out or abandoned run stops early.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        if self._event.is_set():
            where = f" before {stage}" if stage else ""
            raise PipelineCancelled(f"Run cancelled{where}: {self.reason}")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self.reason!r})"


@dataclass
class _Task:
    name: str
    fn: Callable[..., Any]
    args: tuple
    token: CancellationToken
    # Set for submit(); None for fire-and-forget
    future: Optional[asyncio.Future] = None
    enqueued_at: float = field(default_factory=time.perf_counter)


class BackgroundTaskQueue:
    """
    Unbounded FIFO with exactly one worker.

    Task callables are plain (blocking) functions and receive the task's
    :class:`CancellationToken` as the ``token`` keyword argument.

    Usage::

        queue = BackgroundTaskQueue(task_timeout=60.0, error_log=error_log)
        await queue.start()

        queue.enqueue(service.run_pipeline, upload, name="upload 123.jpg")
        result = await queue.submit(service.run_pipeline, upload, name="authenticate")

        await queue.stop()

    Args:
        task_timeout: Seconds a single task may run before its token is
                      cancelled and its caller gets :class:`TaskTimeoutError`.
        error_log:    Where fire-and-forget failures are recorded.
    """

    def __init__(
        self,
        task_timeout: float = 60.0,
        error_log: Optional[ErrorLog] = None,
    ) -> None:
        self.task_timeout = float(task_timeout)
        self.error_log = error_log

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._current: Optional[_Task] = None

        self.processed: int = 0
        self.failed: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.is_running:
            return
        self._queue = asyncio.Queue()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reid-worker")
        self._worker = asyncio.create_task(self._consume(), name="reid-task-consumer")
        logger.info(f"Background task queue started (timeout={self.task_timeout:.0f}s)")

    async def stop(self) -> None:
        """
        Stop the worker.

        Tasks still waiting in the FIFO are cancelled. The running task's
        token is cancelled and ``stop`` returns only after its thread has
        finished, so callers may release the models afterwards.
        """
        queue, self._queue = self._queue, None

        current = self._current
        if current is not None:
            current.token.cancel("shutdown")

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        dropped = 0
        if queue is not None:
            while not queue.empty():
                task = queue.get_nowait()
                task.token.cancel("shutdown")
                if task.future is not None and not task.future.done():
                    task.future.set_exception(PipelineCancelled("Service is shutting down."))
                queue.task_done()
                dropped += 1

        if self._executor is not None:
            executor, self._executor = self._executor, None
            # Blocks until the in-flight run reaches its next stage check
            await asyncio.get_running_loop().run_in_executor(
                None, functools.partial(executor.shutdown, wait=True, cancel_futures=True)
            )

        logger.info(
            f"Background task queue stopped | processed={self.processed} "
            f"failed={self.failed} dropped={dropped}"
        )

    async def join(self) -> None:
        """Wait until every task enqueued so far has finished."""
        self._require_started()
        await self._queue.join()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def enqueue(self, fn: Callable[..., Any], *args: Any, name: str = "task") -> CancellationToken:
        """
        Schedule *fn* and return immediately.

        Never blocks; the FIFO is unbounded. Failures are logged and
        recorded in the ErrorLog, never raised to the caller.
        """
        self._require_started()
        token = CancellationToken()
        self._queue.put_nowait(_Task(name=name, fn=fn, args=args, token=token))
        logger.debug(f"Task enqueued: {name} (depth={self.depth})")
        return token

    async def submit(self, fn: Callable[..., Any], *args: Any, name: str = "task") -> Any:
        """
        Schedule *fn* behind everything already queued and await its result.

        Raises:
            TaskTimeoutError: If the task exceeds ``task_timeout``.
            Exception:        Whatever *fn* raised.
        """
        self._require_started()
        loop = asyncio.get_running_loop()
        token = CancellationToken()
        future = loop.create_future()
        self._queue.put_nowait(_Task(name=name, fn=fn, args=args, token=token, future=future))
        logger.debug(f"Task submitted: {name} (depth={self.depth})")
        try:
            return await future
        except asyncio.CancelledError:
            token.cancel("caller went away")
            raise

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def depth(self) -> int:
        """Tasks waiting to run (excludes the one currently running)."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def busy(self) -> bool:
        return self._current is not None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "busy": self.busy,
            "depth": self.depth,
            "processed": self.processed,
            "failed": self.failed,
        }

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        queue = self._queue
        while True:
            task = await queue.get()
            try:
                await self._run(task)
            finally:
                queue.task_done()

    async def _run(self, task: _Task) -> None:
        if task.future is not None and task.future.done():
            # Caller gave up while the task was still waiting
            logger.debug(f"Skipping abandoned task: {task.name}")
            return

        loop = asyncio.get_running_loop()
        self._current = task
        wait_ms = (time.perf_counter() - task.enqueued_at) * 1000.0
        logger.debug(f"Task started: {task.name} (waited {wait_ms:.0f} ms)")
        t0 = time.perf_counter()

        running = loop.run_in_executor(
            self._executor,
            functools.partial(task.fn, *task.args, token=task.token),
        )
        try:
            result = await asyncio.wait_for(asyncio.shield(running), timeout=self.task_timeout)
        except asyncio.TimeoutError:
            task.token.cancel("timeout")
            self._fail(
                task,
                TaskTimeoutError(f"Task {task.name!r} exceeded {self.task_timeout:.0f}s"),
            )
            # The thread stops at its next stage check; wait so runs never overlap
            await asyncio.gather(asyncio.shield(running), return_exceptions=True)
        except asyncio.CancelledError:
            task.token.cancel("shutdown")
            if task.future is not None and not task.future.done():
                task.future.set_exception(PipelineCancelled("Service is shutting down."))
            raise
        except Exception as exc:
            self._fail(task, exc)
        else:
            self.processed += 1
            if task.future is not None and not task.future.done():
                task.future.set_result(result)
            logger.debug(f"Task done: {task.name} ({(time.perf_counter() - t0) * 1000.0:.0f} ms)")
        finally:
            self._current = None

    def _fail(self, task: _Task, exc: BaseException) -> None:
        self.failed += 1
        if task.future is not None:
            if not task.future.done():
                task.future.set_exception(exc)
            return

        logger.error(f"Background task {task.name!r} failed: {type(exc).__name__}: {exc}")
        if self.error_log is not None:
            self.error_log.record(exc, task.name)

    def _require_started(self) -> None:
        if self._queue is None:
            raise RuntimeError(
                "BackgroundTaskQueue is not running. Call 'await queue.start()' first."
            )

    def __repr__(self) -> str:
        return f"BackgroundTaskQueue(depth={self.depth}, busy={self.busy}, running={self.is_running})"
