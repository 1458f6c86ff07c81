"""Database connection and session management."""

import logging
import os
from collections.abc import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from ai_tagging.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite:///./"):
        os.makedirs(os.path.dirname(database_url.removeprefix("sqlite:///")), exist_ok=True)

    kwargs: dict = {"echo": False, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    if ":memory:" not in database_url:
        kwargs.update(
            poolclass=QueuePool,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_pool_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
    return create_engine(database_url, **kwargs)


engine = _build_engine(settings.database_url)


# Enable WAL mode for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if not settings.database_url.startswith("sqlite"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db():
    """Initialize database tables and apply tracked migrations."""
    # Import models so every table is registered on Base.metadata
    import ai_tagging.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    apply_tracked_migrations(engine)

    logger.info("database_initialized", extra={"database_url": settings.database_url})


# ---------------------------------------------------------------------------
# Tracked migration system for schema changes
# ---------------------------------------------------------------------------

_TRACKED_MIGRATIONS: list[tuple[str, list[str]]] = [
    (
        "review_items_team_status_index",
        [
            "CREATE INDEX IF NOT EXISTS idx_review_items_team_status "
            "ON tagging_review_items(team_id, status)",
        ],
    ),
]


def apply_tracked_migrations(eng) -> None:
    """Apply tracked migrations that haven't been applied yet. Fail-fast on error."""
    with eng.connect() as conn:
        conn.execute(
            text(
                "CREATE TABLE IF NOT EXISTS schema_migrations "
                "(name VARCHAR PRIMARY KEY, applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
            )
        )
        conn.commit()

        for name, statements in _TRACKED_MIGRATIONS:
            row = conn.execute(
                text("SELECT 1 FROM schema_migrations WHERE name = :name"),
                {"name": name},
            ).fetchone()
            if row:
                continue

            for stmt in statements:
                conn.execute(text(stmt))
            conn.execute(
                text("INSERT INTO schema_migrations (name) VALUES (:name)"),
                {"name": name},
            )
            conn.commit()
            logger.info("tracked.migration.applied", extra={"migration": name})


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
