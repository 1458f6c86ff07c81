"""Persisted tagging job queue.

The relational store is the only coordination point between dispatchers:
a job is claimed with a conditional ``pending -> processing`` update, and only
the caller whose update affected the row may process it.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ai_tagging.core.exceptions import EntityNotFound, InvalidStateTransition
from ai_tagging.db.models import TaggingJob, utcnow
from ai_tagging.db.repositories.job import TaggingJobRepository
from ai_tagging.schemas.tagging import JobOptions

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_LIMIT = 30


@dataclass
class ClaimResult:
    claimed: list[str] = field(default_factory=list)  # job ids
    skipped: int = 0


@dataclass
class JobStatus:
    status: str
    result: dict[str, Any] | None


def load_json(raw: str | None) -> Any:
    return json.loads(raw) if raw else None


class TaggingQueue:
    """Queue operations over tagging_jobs. Owns the commit for each operation."""

    def __init__(self, db: Session):
        self.db = db
        self.jobs = TaggingJobRepository(db)

    def enqueue(
        self,
        team_id: str,
        asset_id: str,
        options: JobOptions | None = None,
        task_type: str = "default",
    ) -> TaggingJob:
        """Create a pending job. Enqueuing the same asset twice creates two jobs."""
        options = options or JobOptions()
        job = TaggingJob(
            team_id=team_id,
            asset_id=asset_id,
            status="pending",
            task_type=task_type,
            starts_at=utcnow(),
            options=options.model_dump_json(),
        )
        self.jobs.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info(
            "tagging.job.enqueued",
            extra={"job_id": job.id, "team_id": team_id, "asset_id": asset_id, "task_type": task_type},
        )
        return job

    def claim_batch(self, limit: int = DEFAULT_CLAIM_LIMIT) -> ClaimResult:
        """Claim up to ``limit`` pending jobs, oldest first.

        A job whose conditional update affects no row was taken by another
        dispatcher and is counted as skipped; it is not retried in this batch.
        A database error on one claim is logged and also counted as skipped.
        """
        result = ClaimResult()
        pending = [(job.id, job.team_id, job.asset_id) for job in self.jobs.list_pending(limit)]
        for job_id, team_id, asset_id in pending:
            try:
                claimed = self.jobs.try_claim(job_id)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(
                    "Failed to claim tagging job (pending -> processing)",
                    extra={"job_id": job_id, "team_id": team_id, "asset_id": asset_id},
                )
                result.skipped += 1
                continue

            if claimed:
                result.claimed.append(job_id)
            else:
                logger.debug("tagging.job.claim_race_lost", extra={"job_id": job_id})
                result.skipped += 1

        logger.info(
            "tagging.queue.claim_batch",
            extra={"claimed": len(result.claimed), "skipped": result.skipped},
        )
        return result

    def complete(
        self,
        job_id: str,
        result: dict[str, Any],
        usage: dict[str, Any] | None = None,
    ) -> None:
        self.jobs.set_terminal(job_id, "completed", result, usage)
        self.db.commit()

    def fail(self, job_id: str, error: str) -> None:
        self.jobs.set_terminal(job_id, "failed", {"error": error})
        self.db.commit()

    def reset(self, job_id: str) -> TaggingJob:
        """Operator action: move a failed job back to pending.

        Raises:
            EntityNotFound: No job with this id.
            InvalidStateTransition: The job is not failed.
        """
        job = self.jobs.get(job_id)
        if job is None:
            raise EntityNotFound(f"Job {job_id} not found.")
        if job.status != "failed":
            raise InvalidStateTransition(
                f"Only failed jobs can be reset (job {job_id} is {job.status}).",
                context={"job_id": job_id, "status": job.status},
            )

        if not self.jobs.reset_failed(job_id):
            self.db.rollback()
            raise InvalidStateTransition(f"Job {job_id} changed state during reset.")
        self.db.commit()
        self.db.refresh(job)
        logger.info("tagging.job.reset", extra={"job_id": job_id})
        return job

    def get_status(self, job_id: str) -> JobStatus | None:
        job = self.jobs.get(job_id)
        if job is None:
            return None
        return JobStatus(status=job.status, result=load_json(job.result))
