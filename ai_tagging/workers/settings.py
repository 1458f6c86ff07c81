"""ARQ worker settings.

Start the worker with:
    arq ai_tagging.workers.settings.WorkerSettings

Set DISPATCH_WORKER_ENABLED=false on the API processes when this worker
does the dispatching.
"""

import logging

from arq import cron
from arq.connections import RedisSettings

from ai_tagging.config import Settings, get_settings
from ai_tagging.workers.tasks import dispatch_tagging_queue, enqueue_scheduled_tagging

logger = logging.getLogger(__name__)


async def on_startup(ctx: dict) -> None:
    """ARQ worker startup: initialize shared resources."""
    from ai_tagging.core.logging import configure_logging
    from ai_tagging.db.database import SessionLocal, init_db
    from ai_tagging.services.tagging import build_dispatcher

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    init_db()

    ctx["settings"] = settings
    ctx["dispatcher"] = build_dispatcher(settings, SessionLocal)
    logger.info("ARQ worker started, tagging dispatcher initialized")


async def on_shutdown(ctx: dict) -> None:
    """ARQ worker shutdown: wait for in-flight tagging jobs."""
    dispatcher = ctx.get("dispatcher")
    if dispatcher is not None:
        await dispatcher.drain(timeout=30)
    logger.info("ARQ worker shutting down")


def cron_seconds(interval: int) -> set[int]:
    """Seconds-of-minute at which the dispatch cron fires for a given interval."""
    interval = max(1, min(interval, 60))
    return set(range(0, 60, interval))


def get_worker_settings(settings: Settings | None = None) -> dict:
    """Build WorkerSettings configuration dict."""
    settings = settings or get_settings()

    return {
        "functions": [dispatch_tagging_queue, enqueue_scheduled_tagging],
        "cron_jobs": [
            cron(
                dispatch_tagging_queue,
                second=cron_seconds(settings.arq_dispatch_cron_seconds),
                unique=True,
                run_at_startup=True,
            ),
            cron(
                enqueue_scheduled_tagging,
                hour={settings.arq_scheduled_tagging_hour},
                minute={0},
                unique=True,
            ),
        ],
        "redis_settings": RedisSettings.from_dsn(settings.redis_url),
        "max_jobs": settings.arq_max_jobs,
        "job_timeout": settings.arq_job_timeout,
        "health_check_interval": settings.arq_health_check_interval,
        "on_startup": on_startup,
        "on_shutdown": on_shutdown,
    }


class WorkerSettings:
    """ARQ WorkerSettings for `arq ai_tagging.workers.settings.WorkerSettings`."""

    _config = get_worker_settings()

    functions = _config["functions"]
    cron_jobs = _config["cron_jobs"]
    redis_settings = _config["redis_settings"]
    max_jobs = _config["max_jobs"]
    job_timeout = _config["job_timeout"]
    health_check_interval = _config["health_check_interval"]
    on_startup = on_startup
    on_shutdown = on_shutdown
