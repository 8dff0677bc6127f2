from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from loguru import logger

from core.errors import ReidError
from core.pipeline.reid_pipeline import PipelineResult, ReidPipeline, UploadedImage
from core.tasks.task_queue import BackgroundTaskQueue, CancellationToken
from utils.error_log import ErrorLog


class ExecutionMode(str, Enum):
    """How the caller wants to consume a pipeline run."""

    SYNCHRONOUS = "synchronous"
    QUEUED = "queued"


class ReidentificationService:
    """
    Single entry point for processing an uploaded photo.

    Both modes go through the same FIFO, so runs never overlap:

    * ``SYNCHRONOUS`` — waits for the run and returns its
      :class:`PipelineResult`; failures are logged, recorded and re-raised.
    * ``QUEUED`` — returns ``None`` at once; failures are logged and
      recorded by the queue.

    Args:
        pipeline:   The re-identification pipeline.
        queue:      Started task queue.
        error_log:  Failure log for the synchronous path.
        on_outcome: Called with ``"matched" | "created" | "failed"`` after
                    every run (metrics hook).
    """

    def __init__(
        self,
        pipeline: ReidPipeline,
        queue: BackgroundTaskQueue,
        error_log: Optional[ErrorLog] = None,
        on_outcome: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.pipeline = pipeline
        self.queue = queue
        self.error_log = error_log
        self._on_outcome = on_outcome

    async def process(
        self,
        upload: UploadedImage,
        mode: ExecutionMode = ExecutionMode.QUEUED,
    ) -> Optional[PipelineResult]:
        task_name = f"{mode.value} {upload.filename}"

        if mode is ExecutionMode.QUEUED:
            self.queue.enqueue(self._run, upload, name=task_name)
            return None

        try:
            return await self.queue.submit(self._run, upload, name=task_name)
        except ReidError as exc:
            logger.warning(f"Synchronous run failed for {upload.filename}: {exc.message}")
            self._record(exc, task_name)
            raise
        except Exception as exc:
            logger.exception(f"Unexpected error processing {upload.filename}: {exc}")
            self._record(exc, task_name)
            raise

    def _run(self, upload: UploadedImage, token: Optional[CancellationToken] = None) -> PipelineResult:
        """Queue task body; runs on the worker thread."""
        try:
            result = self.pipeline.run(upload, token=token)
        except Exception:
            self._notify("failed")
            raise
        self._notify(result.outcome)
        return result

    def _notify(self, outcome: str) -> None:
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(outcome)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Outcome hook failed: {exc}")

    def _record(self, exc: BaseException, context: str) -> None:
        if self.error_log is not None:
            self.error_log.record(exc, context)
