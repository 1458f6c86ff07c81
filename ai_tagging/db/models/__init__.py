"""SQLAlchemy ORM models.

Import from here: ``from ai_tagging.db.models import TaggingJob, AssetObject``
"""

from ai_tagging.db.models.asset import AssetObject, AssetTag
from ai_tagging.db.models.base import TimestampMixin, generate_uuid, utcnow
from ai_tagging.db.models.tagging import (
    JOB_STATUSES,
    REVIEW_STATUSES,
    TASK_TYPES,
    TERMINAL_JOB_STATUSES,
    ReviewItem,
    TaggingJob,
)
from ai_tagging.db.models.team import TeamConfig

__all__ = [
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "AssetObject",
    "AssetTag",
    "TaggingJob",
    "ReviewItem",
    "TeamConfig",
    "JOB_STATUSES",
    "TERMINAL_JOB_STATUSES",
    "TASK_TYPES",
    "REVIEW_STATUSES",
]
