"""Shared model utilities and mixins."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how SQLite stores DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class TimestampMixin:
    """Provides standard ``created_at`` / ``updated_at`` columns."""

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
