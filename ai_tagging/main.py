"""FastAPI application entry point."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ai_tagging.api import health, review, tagging
from ai_tagging.api import settings as settings_api
from ai_tagging.config import get_settings
from ai_tagging.core.error_handlers import register_error_handlers
from ai_tagging.core.logging import configure_logging
from ai_tagging.core.redis import close_redis_pool, get_redis_pool
from ai_tagging.db.database import SessionLocal, init_db
from ai_tagging.middleware.request_logging import RequestLoggingMiddleware
from ai_tagging.services.tagging import build_dispatcher
from ai_tagging.workers.dispatch_worker import DispatchWorker

settings = get_settings()
configure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize and cleanup services."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"  ENV_PROFILE: {settings.env_profile}")
    logger.info(f"  Tagging model: {settings.tagging_llm_model}")
    logger.info(f"  Dispatch worker: {settings.dispatch_worker_enabled}")
    logger.info("=" * 60)

    app.state.start_time = time.time()
    app.state.settings = settings

    init_db()

    dispatcher = getattr(app.state, "dispatcher", None) or build_dispatcher(settings, SessionLocal)
    app.state.dispatcher = dispatcher

    # Redis is only needed by the standalone ARQ dispatcher; report, don't require
    if await get_redis_pool():
        logger.info("Redis connected, ARQ dispatcher available")
    else:
        logger.warning("Redis unavailable, in-process dispatch only (degraded mode)")

    dispatch_worker: DispatchWorker | None = None
    if settings.dispatch_worker_enabled:
        dispatch_worker = DispatchWorker(dispatcher, settings)
        await dispatch_worker.start()
    else:
        logger.info("DispatchWorker disabled; relying on process-queue trigger or ARQ cron")
    app.state.dispatch_worker = dispatch_worker

    yield

    # Shutdown
    if dispatch_worker:
        await dispatch_worker.stop()
    else:
        await dispatcher.drain(timeout=30)

    await close_redis_pool()
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AI-assisted asset tagging: job queue, multi-source score fusion and review",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Register global error handlers (AppError -> JSON responses)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware (adds X-Request-ID, logs method/path/latency)
app.add_middleware(RequestLoggingMiddleware)

# API Routes
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(tagging.router, prefix="/api/tagging", tags=["Tagging"])
app.include_router(review.router, prefix="/api/tagging/review", tags=["Review"])
app.include_router(settings_api.router, prefix="/api/tagging/settings", tags=["Settings"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ai_tagging.main:app", host=settings.host, port=settings.port, reload=settings.debug)
