"""Tagging job API: enqueue, status polling, manual retry and the internal triggers."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ai_tagging.core.dependencies import get_app_settings, get_dispatcher, require_internal_key
from ai_tagging.db.database import get_db
from ai_tagging.db.models import TaggingJob
from ai_tagging.db.repositories.asset import AssetRepository
from ai_tagging.db.repositories.job import TaggingJobRepository
from ai_tagging.schemas.tagging import (
    EnqueueJobRequest,
    EnqueueJobResponse,
    JobOptions,
    JobStatusResponse,
    ProcessQueueResponse,
    ProcessScheduledResponse,
    ScheduledTeamResult,
)
from ai_tagging.services.settings_service import TeamSettingsService
from ai_tagging.services.tagging.queue import TaggingQueue, load_json
from ai_tagging.services.tagging.scheduling import ScheduledTagger, check_admission

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_status(job: TaggingJob) -> JobStatusResponse:
    duration_ms = None
    if job.starts_at and job.ends_at:
        duration_ms = int((job.ends_at - job.starts_at).total_seconds() * 1000)
    return JobStatusResponse(
        job_id=job.id,
        team_id=job.team_id,
        asset_id=job.asset_id,
        status=job.status,
        task_type=job.task_type,
        starts_at=job.starts_at,
        ends_at=job.ends_at,
        duration_ms=duration_ms,
        result=load_json(job.result),
        created_at=job.created_at,
    )


@router.post("/jobs", response_model=EnqueueJobResponse, status_code=status.HTTP_201_CREATED)
async def enqueue_job(
    request: EnqueueJobRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Enqueue an asset for tagging.

    Matching sources and recognition accuracy default to the team settings
    when omitted. Returns 404 if the asset is not known for this team.
    When team settings refuse the trigger, nothing is queued and ``job_id`` is
    null: 200 for a disabled trigger, 202 for an asset outside the
    application scope.
    """
    asset = AssetRepository(db).get_with_filter(request.asset_id, team_id=request.team_id)
    if asset is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Asset {request.asset_id} not found.",
        )

    team_settings = TeamSettingsService(db).get_tagging_settings(request.team_id)
    skip = check_admission(team_settings, asset, request.task_type)
    if skip is not None:
        logger.info(
            "tagging.job.not_enqueued",
            extra={
                "team_id": request.team_id,
                "asset_id": asset.id,
                "task_type": request.task_type,
                "reason": skip.message,
            },
        )
        response.status_code = (
            status.HTTP_202_ACCEPTED if skip.out_of_scope else status.HTTP_200_OK
        )
        return EnqueueJobResponse(message=skip.message)

    options = JobOptions(
        matching_sources=request.matching_sources or team_settings.matching_sources,
        recognition_accuracy=request.recognition_accuracy or team_settings.recognition_accuracy,
    )
    job = TaggingQueue(db).enqueue(
        team_id=request.team_id,
        asset_id=asset.id,
        options=options,
        task_type=request.task_type,
    )
    return EnqueueJobResponse(job_id=job.id, status=job.status)


@router.get("/jobs/{job_id}/status", response_model=JobStatusResponse)
async def get_job_status(job_id: str, team_id: str | None = None, db: Session = Depends(get_db)):
    """Get status and result for a tagging job.

    When ``team_id`` is given the job must belong to that team.
    Returns 404 if not found.
    """
    repo = TaggingJobRepository(db)
    job = repo.get_with_filter(job_id, team_id=team_id) if team_id else repo.get(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found.",
        )
    return _to_status(job)


@router.post("/jobs/{job_id}/retry", response_model=JobStatusResponse)
async def retry_job(job_id: str, db: Session = Depends(get_db)):
    """Reset a failed job to pending so the next dispatch picks it up.

    Returns 404 if not found, 409 if the job is not failed.
    """
    job = TaggingQueue(db).reset(job_id)
    logger.info(f"Tagging job {job_id} reset to pending")
    return _to_status(job)


@router.post(
    "/process-queue",
    response_model=ProcessQueueResponse,
    dependencies=[Depends(require_internal_key)],
)
async def process_queue(
    dispatcher=Depends(get_dispatcher),
    settings=Depends(get_app_settings),
):
    """Internal trigger: run one dispatch tick.

    Requires ``Authorization: Bearer <INTERNAL_API_KEY>``. Claimed jobs keep
    processing after the response is sent.
    """
    report = await dispatcher.tick(settings.dispatch_batch_size)
    return ProcessQueueResponse(
        success=True,
        processing=report.claimed,
        skipped=report.skipped_due_to_race,
    )


@router.post(
    "/process-scheduled",
    response_model=ProcessScheduledResponse,
    dependencies=[Depends(require_internal_key)],
)
async def process_scheduled(
    db: Session = Depends(get_db),
    settings=Depends(get_app_settings),
):
    """Internal trigger: enqueue ``scheduled`` jobs for teams with scheduled tagging on.

    Requires ``Authorization: Bearer <INTERNAL_API_KEY>``. Jobs are picked up
    by the next dispatch tick.
    """
    report = ScheduledTagger(db, batch_size=settings.scheduled_tagging_batch_size).run()
    return ProcessScheduledResponse(
        success=True,
        processed_teams=len(report.results),
        enqueued=report.enqueued,
        results=[ScheduledTeamResult(**asdict(result)) for result in report.results],
    )
