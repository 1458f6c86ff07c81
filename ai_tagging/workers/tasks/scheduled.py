"""Scheduled tagging ARQ task.

Runs once a day from the ARQ worker cron. The sweep only creates ``scheduled``
jobs; the dispatch cron processes them.
"""

import asyncio
import logging

from ai_tagging.config import get_settings

logger = logging.getLogger(__name__)


def _run_sweep(batch_size: int) -> dict:
    from ai_tagging.db.database import SessionLocal
    from ai_tagging.services.tagging.scheduling import ScheduledTagger

    db = SessionLocal()
    try:
        report = ScheduledTagger(db, batch_size=batch_size).run()
    finally:
        db.close()
    return {
        "success": True,
        "processed_teams": len(report.results),
        "enqueued": report.enqueued,
    }


async def enqueue_scheduled_tagging(ctx: dict) -> dict:
    """ARQ task: enqueue scheduled tagging jobs for every opted-in team.

    Args:
        ctx: ARQ context dict (contains settings from on_startup)

    Returns:
        Dict with the sweep result (success, processed_teams, enqueued)
    """
    settings = ctx.get("settings") or get_settings()
    result = await asyncio.to_thread(_run_sweep, settings.scheduled_tagging_batch_size)
    logger.info(f"[ARQ] Scheduled tagging enqueued {result['enqueued']} jobs")
    return result
