"""Tagging job queue and review models."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text

from ai_tagging.db.database import Base
from ai_tagging.db.models.base import TimestampMixin, generate_uuid

JOB_STATUSES = ("pending", "processing", "completed", "failed")
TERMINAL_JOB_STATUSES = frozenset({"completed", "failed"})
TASK_TYPES = ("default", "test", "manual", "scheduled")
REVIEW_STATUSES = ("pending", "approved", "rejected")


class TaggingJob(TimestampMixin, Base):
    """One request to tag one asset.

    Lifecycle: pending -> processing -> completed | failed. A failed job can be
    reset to pending by an operator; nothing moves a job out of processing
    except the processor that claimed it.

    ``options`` is captured at enqueue and never mutated. ``result`` holds
    ``{"predictions", "scored_tags"}`` on completion or ``{"error"}`` on
    failure. All three JSON columns are JSON encoded text.
    """

    __tablename__ = "tagging_jobs"
    __table_args__ = (
        Index("idx_tagging_jobs_status", "status", "starts_at"),
        Index(
            "idx_tagging_jobs_pending",
            "starts_at",
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_tagging_jobs_team", "team_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    team_id = Column(String, nullable=False)
    asset_id = Column(String, ForeignKey("asset_objects.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, nullable=False, default="pending")
    task_type = Column(String, nullable=False, default="default")
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    options = Column(Text, nullable=True)
    result = Column(Text, nullable=True)
    usage = Column(Text, nullable=True)  # LLM usage metadata


class ReviewItem(TimestampMixin, Base):
    """A scored tag candidate awaiting (or already past) human review.

    Outlives its job: ``job_id`` is nulled when the job row is deleted.
    """

    __tablename__ = "tagging_review_items"
    __table_args__ = (
        Index("idx_review_items_job", "job_id"),
        Index("idx_review_items_asset", "asset_id"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    job_id = Column(String, ForeignKey("tagging_jobs.id", ondelete="SET NULL"), nullable=True)
    asset_id = Column(String, ForeignKey("asset_objects.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String, nullable=False)
    leaf_tag_id = Column(Integer, nullable=False)
    tag_path = Column(Text, nullable=False)  # JSON list[str]
    score = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending")
    reviewed_by = Column(String, nullable=True)
