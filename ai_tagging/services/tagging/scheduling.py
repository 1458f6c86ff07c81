"""Team-setting admission rules and the scheduled tagging sweep.

Whether an asset may be queued depends on the trigger that asked for it:

- ``test`` jobs are always accepted.
- ``manual`` jobs need ``trigger_timing.manual_trigger_tagging``.
- ``default`` (real-time) jobs need tagging enabled,
  ``trigger_timing.auto_realtime_tagging`` and the asset inside the
  application scope.
- ``scheduled`` jobs need tagging enabled, ``trigger_timing.scheduled_tagging``
  and the asset inside the application scope.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ai_tagging.db.models import AssetObject
from ai_tagging.db.repositories.asset import AssetRepository
from ai_tagging.db.repositories.job import TaggingJobRepository
from ai_tagging.db.repositories.team import TeamConfigRepository
from ai_tagging.schemas.tagging import JobOptions, TeamTaggingSettings
from ai_tagging.services.settings_service import TeamSettingsService
from ai_tagging.services.tagging.queue import TaggingQueue

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULED_BATCH_SIZE = 100


@dataclass
class SkipReason:
    message: str
    out_of_scope: bool = False


def check_admission(
    settings: TeamTaggingSettings, asset: AssetObject, task_type: str
) -> SkipReason | None:
    """Return why team settings refuse this asset for ``task_type``, or None."""
    if task_type == "test":
        return None
    if task_type == "manual":
        if not settings.trigger_timing.manual_trigger_tagging:
            return SkipReason("Manual tagging is not enabled")
        return None

    if not settings.is_tagging_enabled:
        return SkipReason("Tagging is not enabled for this team")
    if task_type == "default" and not settings.trigger_timing.auto_realtime_tagging:
        return SkipReason("Tagging auto realtime is not enabled")
    if task_type == "scheduled" and not settings.trigger_timing.scheduled_tagging:
        return SkipReason("Scheduled tagging is not enabled")
    if not settings.application_scope.contains(asset.materialized_path):
        return SkipReason(f"Asset {asset.id} is not in the selected folders", out_of_scope=True)
    return None


@dataclass
class TeamScheduleResult:
    team_id: str
    enqueued: int = 0
    skipped_in_flight: int = 0
    skipped_out_of_scope: int = 0


@dataclass
class ScheduledRunReport:
    results: list[TeamScheduleResult] = field(default_factory=list)

    @property
    def enqueued(self) -> int:
        return sum(result.enqueued for result in self.results)


class ScheduledTagger:
    """Enqueues ``scheduled`` jobs for every team that turned scheduled tagging on.

    Assets that already have a pending or processing job are left alone.
    At most ``batch_size`` jobs are created per team per run.
    """

    def __init__(self, db: Session, batch_size: int = DEFAULT_SCHEDULED_BATCH_SIZE):
        self.db = db
        self.batch_size = batch_size

    def run(self) -> ScheduledRunReport:
        report = ScheduledRunReport()
        for team_id in TeamConfigRepository(self.db).list_team_ids():
            try:
                result = self.run_team(team_id)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Scheduled tagging failed for team", extra={"team_id": team_id})
                continue
            if result is not None:
                report.results.append(result)

        logger.info(
            "tagging.scheduled.completed",
            extra={"teams": len(report.results), "enqueued": report.enqueued},
        )
        return report

    def run_team(self, team_id: str) -> TeamScheduleResult | None:
        """Enqueue one team's assets. None when the team has scheduled tagging off."""
        settings = TeamSettingsService(self.db).get_tagging_settings(team_id)
        if not (settings.is_tagging_enabled and settings.trigger_timing.scheduled_tagging):
            return None

        result = TeamScheduleResult(team_id=team_id)
        in_flight = TaggingJobRepository(self.db).asset_ids_in_flight(team_id)
        options = JobOptions(
            matching_sources=settings.matching_sources,
            recognition_accuracy=settings.recognition_accuracy,
        )
        queue = TaggingQueue(self.db)

        for asset in AssetRepository(self.db).list_for_team(team_id):
            if result.enqueued >= self.batch_size:
                break
            if asset.id in in_flight:
                result.skipped_in_flight += 1
                continue
            reason = check_admission(settings, asset, "scheduled")
            if reason is not None:
                result.skipped_out_of_scope += 1
                continue
            queue.enqueue(team_id, asset.id, options=options, task_type="scheduled")
            result.enqueued += 1

        logger.info(
            "tagging.scheduled.team",
            extra={
                "team_id": team_id,
                "enqueued": result.enqueued,
                "skipped_in_flight": result.skipped_in_flight,
                "skipped_out_of_scope": result.skipped_out_of_scope,
            },
        )
        return result
