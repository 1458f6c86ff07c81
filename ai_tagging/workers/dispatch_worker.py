"""In-process polling loop that ticks the tagging Dispatcher.

Runs inside the FastAPI lifespan. Several instances (one per app process) may
poll the same database; the conditional claim keeps them from processing the
same job twice.
"""

import asyncio
import logging
from uuid import uuid4

from ai_tagging.config import Settings, get_settings
from ai_tagging.services.tagging.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class DispatchWorker:
    """Async background worker that ticks the dispatcher on an interval."""

    def __init__(self, dispatcher: Dispatcher, settings: Settings | None = None):
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.worker_id = f"worker-{uuid4().hex[:8]}"
        self._task: asyncio.Task | None = None
        self._shutdown = asyncio.Event()

    async def start(self) -> None:
        """Start worker as asyncio task."""
        self._shutdown.clear()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"DispatchWorker {self.worker_id} started")

    async def stop(self, drain_timeout: float = 30) -> None:
        """Stop polling, then wait for in-flight jobs up to ``drain_timeout`` seconds."""
        logger.info(f"DispatchWorker {self.worker_id} stopping...")
        self._shutdown.set()

        if self._task:
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=10)
            except (TimeoutError, asyncio.CancelledError):
                pass
            self._task = None

        await self.dispatcher.drain(timeout=drain_timeout)
        logger.info(f"DispatchWorker {self.worker_id} stopped")

    async def _run_loop(self) -> None:
        """Main worker loop: tick, then sleep until the next interval or shutdown."""
        while not self._shutdown.is_set():
            try:
                report = await self.dispatcher.tick(self.settings.dispatch_batch_size)
                if report.claimed:
                    logger.debug(
                        f"[DISPATCH] {self.worker_id} started {report.claimed} jobs "
                        f"({report.skipped_due_to_race} skipped)"
                    )
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"[DISPATCH] Worker loop error: {e}")

            try:
                await asyncio.wait_for(
                    self._shutdown.wait(), timeout=self.settings.dispatch_interval_seconds
                )
            except TimeoutError:
                pass
            except asyncio.CancelledError:
                break
