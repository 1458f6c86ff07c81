"""Claims pending jobs and hands them to the processor without waiting."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ai_tagging.services.tagging.processor import JobProcessor
from ai_tagging.services.tagging.queue import DEFAULT_CLAIM_LIMIT, TaggingQueue

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    claimed: int
    skipped_due_to_race: int


class Dispatcher:
    """One tick claims a batch and starts a processing task per claimed job.

    Tasks are tracked so they are not garbage collected mid-flight and so
    shutdown can drain them. A task's exception is logged by its done
    callback and never reaches the caller of tick().
    """

    def __init__(self, session_factory: Callable[[], Session], processor: JobProcessor):
        self.session_factory = session_factory
        self.processor = processor
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def tick(self, limit: int = DEFAULT_CLAIM_LIMIT) -> DispatchReport:
        db = self.session_factory()
        try:
            result = TaggingQueue(db).claim_batch(limit)
        finally:
            db.close()

        for job_id in result.claimed:
            task = asyncio.create_task(
                self.processor.process(job_id), name=f"tagging-job-{job_id}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

        logger.info(
            f"Dispatch tick: processing {len(result.claimed)}, skipped {result.skipped}",
            extra={"claimed": len(result.claimed), "skipped": result.skipped},
        )
        return DispatchReport(claimed=len(result.claimed), skipped_due_to_race=result.skipped)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Tagging task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Tagging task {task.get_name()} raised",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight processing tasks (shutdown and tests)."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} tagging tasks still running after drain timeout")
