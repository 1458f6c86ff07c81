"""Tagging queue dispatch ARQ task.

Scheduled by cron in the standalone ARQ worker. Each run claims a batch and
waits for its jobs, so ``max_jobs`` bounds how many batches run at once.
"""

import logging

from ai_tagging.config import get_settings

logger = logging.getLogger(__name__)


async def dispatch_tagging_queue(ctx: dict, limit: int | None = None) -> dict:
    """ARQ task: claim pending tagging jobs and process them.

    Args:
        ctx: ARQ context dict (contains settings and dispatcher from on_startup)
        limit: Batch size override (defaults to settings.dispatch_batch_size)

    Returns:
        Dict with dispatch result (success, processing, skipped)
    """
    settings = ctx.get("settings") or get_settings()
    dispatcher = ctx.get("dispatcher")
    if dispatcher is None:
        from ai_tagging.db.database import SessionLocal
        from ai_tagging.services.tagging import build_dispatcher

        dispatcher = build_dispatcher(settings, SessionLocal)
        ctx["dispatcher"] = dispatcher

    report = await dispatcher.tick(limit or settings.dispatch_batch_size)
    if report.claimed:
        logger.info(f"[ARQ] Dispatched {report.claimed} tagging jobs")
        await dispatcher.drain(timeout=settings.arq_job_timeout)

    return {
        "success": True,
        "processing": report.claimed,
        "skipped": report.skipped_due_to_race,
    }
