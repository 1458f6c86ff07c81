"""Health check endpoints."""

import logging
import time

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ai_tagging.config import get_settings
from ai_tagging.core.redis import is_redis_available
from ai_tagging.db.database import get_db
from ai_tagging.db.repositories.job import TaggingJobRepository

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()


def _check_database(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        return False


@router.get("/health")
async def health_check(request: Request, db: Session = Depends(get_db)):
    """Service health with database, Redis and tagging queue status."""
    database_ok = _check_database(db)
    jobs = TaggingJobRepository(db)

    queue: dict = {}
    if database_ok:
        queue = {status: jobs.count(status=status) for status in ("pending", "processing")}

    dispatcher = getattr(request.app.state, "dispatcher", None)
    dispatch_worker = getattr(request.app.state, "dispatch_worker", None)
    start_time = getattr(request.app.state, "start_time", None)

    return {
        "status": "healthy" if database_ok else "degraded",
        "version": settings.app_version,
        "database": "connected" if database_ok else "unavailable",
        "redis": "connected" if await is_redis_available() else "unavailable",
        "tagging_queue": {
            **queue,
            "in_flight": dispatcher.in_flight if dispatcher else 0,
            "dispatch_worker": "running" if dispatch_worker else "disabled",
        },
        "uptime_seconds": round(time.time() - start_time) if start_time else None,
    }


@router.get("/version")
async def version():
    """Application name and version."""
    return {"name": settings.app_name, "version": settings.app_version}
