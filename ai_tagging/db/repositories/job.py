"""Tagging job repository."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select

from ai_tagging.db.models import TaggingJob, utcnow
from ai_tagging.db.repositories.base import BaseRepository


class TaggingJobRepository(BaseRepository[TaggingJob]):
    model = TaggingJob

    def list_pending(self, limit: int) -> list[TaggingJob]:
        """Oldest pending jobs first. Jobs reset by an operator (no starts_at) go first."""
        stmt = (
            select(TaggingJob)
            .where(TaggingJob.status == "pending")
            .order_by(
                TaggingJob.starts_at.is_not(None),
                TaggingJob.starts_at.asc(),
                TaggingJob.created_at.asc(),
            )
            .limit(limit)
        )
        return list(self.db.scalars(stmt).all())

    def asset_ids_in_flight(self, team_id: str) -> set[str]:
        """Assets of a team with a pending or processing job."""
        stmt = select(TaggingJob.asset_id).where(
            TaggingJob.team_id == team_id,
            TaggingJob.status.in_(("pending", "processing")),
            TaggingJob.asset_id.is_not(None),
        )
        return set(self.db.scalars(stmt).all())

    def try_claim(self, job_id: str) -> bool:
        """Atomically claim a pending job for processing. Returns True if claimed.

        Conditional update: only succeeds when the row is still pending, so
        concurrent dispatchers can never both claim the same job.
        """
        updated = (
            self.db.query(TaggingJob)
            .filter(TaggingJob.id == job_id, TaggingJob.status == "pending")
            .update(
                {"status": "processing", "starts_at": utcnow(), "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def set_terminal(
        self,
        job_id: str,
        status: str,
        result: dict[str, Any],
        usage: dict[str, Any] | None = None,
        ends_at: datetime | None = None,
    ) -> int:
        """Write a terminal status and payload by id. Does not commit."""
        values: dict[str, Any] = {
            "status": status,
            "ends_at": ends_at or utcnow(),
            "result": json.dumps(result),
            "updated_at": utcnow(),
        }
        if usage is not None:
            values["usage"] = json.dumps(usage)
        return (
            self.db.query(TaggingJob)
            .filter(TaggingJob.id == job_id)
            .update(values, synchronize_session=False)
        )

    def reset_failed(self, job_id: str) -> int:
        """Move a failed job back to pending, clearing run data. Does not commit."""
        return (
            self.db.query(TaggingJob)
            .filter(TaggingJob.id == job_id, TaggingJob.status == "failed")
            .update(
                {
                    "status": "pending",
                    "starts_at": None,
                    "ends_at": None,
                    "result": None,
                    "usage": None,
                    "updated_at": utcnow(),
                },
                synchronize_session=False,
            )
        )
