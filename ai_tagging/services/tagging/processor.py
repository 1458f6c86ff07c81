"""Runs one claimed tagging job end to end.

Prediction or scoring failures fail the job. Once the job is completed,
anything that goes wrong while creating review rows or applying tags is
logged and never changes the job's status.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ai_tagging.core.exceptions import ApplyError
from ai_tagging.core.logging import bind_job_context, clear_job_context
from ai_tagging.db.models import ReviewItem
from ai_tagging.db.repositories.asset import AssetRepository, AssetTagRepository
from ai_tagging.db.repositories.job import TaggingJobRepository
from ai_tagging.db.repositories.review import ReviewItemRepository
from ai_tagging.schemas.tagging import JobOptions, ScoredTag
from ai_tagging.services.protocols import AssetTaggingAPI, SettingsProvider, TaxonomyProvider
from ai_tagging.services.tagging.predictor import AssetContext, TagPredictor
from ai_tagging.services.tagging.queue import TaggingQueue
from ai_tagging.services.tagging.scoring import DAMPING_FACTOR, calculate_tag_scores

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutcome:
    """Summary of one process() call."""

    job_id: str
    status: str  # "completed", "failed", or "skipped"
    scored_tags: int = 0
    review_items_created: int = 0
    malformed_dropped: int = 0
    tags_applied: int = 0
    error: str | None = None


def is_well_formed(tag: ScoredTag) -> bool:
    return tag.leaf_tag_id is not None and bool(tag.tag_path)


def parse_job_options(raw: str | None) -> JobOptions:
    """Options stored on the job, with defaults for anything missing."""
    if not raw:
        return JobOptions()
    data = json.loads(raw) or {}
    return JobOptions.model_validate({k: v for k, v in data.items() if v is not None})


class JobProcessor:
    """Processes claimed jobs. Each call opens its own database session."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        predictor: TagPredictor,
        taxonomy_provider: TaxonomyProvider,
        settings_provider: SettingsProvider,
        asset_api: AssetTaggingAPI,
        damping: float = DAMPING_FACTOR,
    ):
        self.session_factory = session_factory
        self.predictor = predictor
        self.taxonomy_provider = taxonomy_provider
        self.settings_provider = settings_provider
        self.asset_api = asset_api
        self.damping = damping

    async def process(self, job_id: str) -> ProcessOutcome:
        db = self.session_factory()
        try:
            return await self._process(db, job_id)
        finally:
            db.close()
            clear_job_context()

    async def _process(self, db: Session, job_id: str) -> ProcessOutcome:
        job = TaggingJobRepository(db).get(job_id)
        if job is None:
            logger.warning("Tagging job is missing, skipping", extra={"job_id": job_id})
            return ProcessOutcome(job_id=job_id, status="skipped")

        bind_job_context(job_id=job.id, team_id=job.team_id, asset_id=job.asset_id)
        asset = AssetRepository(db).get(job.asset_id) if job.asset_id else None
        if asset is None:
            logger.warning("Asset is missing, skipping tagging job")
            return ProcessOutcome(job_id=job_id, status="skipped")

        team_id = job.team_id
        task_type = job.task_type
        queue = TaggingQueue(db)
        logger.info("tagging.job.started")

        # Predict and score; any failure here fails the job
        try:
            options = parse_job_options(job.options)
            taxonomy = self.taxonomy_provider.fetch_tag_tree(team_id)
            predictions, usage = await self.predictor.predict(
                AssetContext.from_model(asset),
                taxonomy,
                options.matching_sources,
                options.recognition_accuracy,
            )
            scored_tags = calculate_tag_scores(predictions, damping=self.damping)
        except Exception as e:
            logger.exception("tagging.job.failed")
            db.rollback()
            queue.fail(job_id, str(e))
            return ProcessOutcome(job_id=job_id, status="failed", error=str(e))

        queue.complete(
            job_id,
            {
                "predictions": [p.model_dump(mode="json") for p in predictions],
                "scored_tags": [t.model_dump(mode="json") for t in scored_tags],
            },
            usage,
        )
        outcome = ProcessOutcome(job_id=job_id, status="completed", scored_tags=len(scored_tags))
        logger.info("tagging.job.completed", extra={"scored_tags": len(scored_tags)})

        if task_type == "test":
            return outcome

        try:
            await self._route_results(db, job_id, team_id, asset.id, scored_tags, outcome)
        except ApplyError:
            logger.exception("Failed to apply tags to external asset")
        except Exception:
            db.rollback()
            logger.exception("Post-completion tagging step failed")
        return outcome

    async def _route_results(
        self,
        db: Session,
        job_id: str,
        team_id: str,
        asset_id: str,
        scored_tags: list[ScoredTag],
        outcome: ProcessOutcome,
    ) -> None:
        """Create review rows and, in direct mode, apply tags externally."""
        mode = self.settings_provider.get_tagging_mode(team_id)

        well_formed = [tag for tag in scored_tags if is_well_formed(tag)]
        outcome.malformed_dropped = len(scored_tags) - len(well_formed)
        if outcome.malformed_dropped:
            logger.warning(
                "Dropped malformed scored tags",
                extra={"dropped": outcome.malformed_dropped},
            )

        review_status = "approved" if mode == "direct" else "pending"
        items = [
            ReviewItem(
                job_id=job_id,
                asset_id=asset_id,
                team_id=team_id,
                leaf_tag_id=tag.leaf_tag_id,
                tag_path=json.dumps(tag.tag_path, ensure_ascii=False),
                score=tag.score,
                status=review_status,
            )
            for tag in well_formed
        ]
        if items:
            ReviewItemRepository(db).add_all(items)
            db.commit()
        else:
            logger.warning("No review items created for tagging job")
        outcome.review_items_created = len(items)

        if mode == "direct":
            outcome.tags_applied = await self._apply_direct(db, team_id, asset_id, well_formed)

    async def _apply_direct(
        self, db: Session, team_id: str, asset_id: str, tags: list[ScoredTag]
    ) -> int:
        leaf_ids = [tag.leaf_tag_id for tag in tags]
        external = AssetTagRepository(db).external_ids_for(team_id, leaf_ids)
        unresolved = [leaf_id for leaf_id in leaf_ids if leaf_id not in external]
        if unresolved:
            logger.warning(
                "Skipping tags without an external id", extra={"leaf_tag_ids": unresolved}
            )

        tag_external_ids = list(
            dict.fromkeys(external[leaf_id] for leaf_id in leaf_ids if leaf_id in external)
        )
        if not tag_external_ids:
            logger.info("No resolvable tags to apply")
            return 0

        asset_repo = AssetRepository(db)
        asset = asset_repo.get(asset_id)
        await self.asset_api.apply_tags(team_id, asset.external_id, tag_external_ids, append=True)

        refreshed = await self.asset_api.fetch_assets_by_ids(team_id, [asset.external_id])
        if refreshed:
            asset_repo.replace_tags(asset, refreshed[0].tags)
            db.commit()
        logger.info("tagging.job.tags_applied", extra={"tag_count": len(tag_external_ids)})
        return len(tag_external_ids)
