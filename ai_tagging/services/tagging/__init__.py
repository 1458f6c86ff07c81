"""Asset tagging pipeline: queue, prediction, score fusion, processing, dispatch."""

from collections.abc import Callable

from sqlalchemy.orm import Session

from ai_tagging.config import Settings
from ai_tagging.services.asset_api import CredentialCache, MuseAssetClient
from ai_tagging.services.settings_service import TeamSettingsProvider
from ai_tagging.services.tagging.dispatcher import DispatchReport, Dispatcher
from ai_tagging.services.tagging.llm_client import OllamaStructuredClient
from ai_tagging.services.tagging.predictor import TagPredictor
from ai_tagging.services.tagging.processor import JobProcessor, ProcessOutcome
from ai_tagging.services.tagging.queue import ClaimResult, JobStatus, TaggingQueue
from ai_tagging.services.tagging.scoring import calculate_tag_scores, fuse
from ai_tagging.services.tagging.taxonomy import DatabaseTaxonomyProvider


def build_dispatcher(
    settings: Settings,
    session_factory: Callable[[], Session],
    credential_cache: CredentialCache | None = None,
) -> Dispatcher:
    """Wire the default collaborators into a Dispatcher."""
    credential_cache = credential_cache or CredentialCache(settings.credential_cache_ttl_seconds)
    processor = JobProcessor(
        session_factory=session_factory,
        predictor=TagPredictor(OllamaStructuredClient(settings)),
        taxonomy_provider=DatabaseTaxonomyProvider(session_factory),
        settings_provider=TeamSettingsProvider(session_factory),
        asset_api=MuseAssetClient(settings, credential_cache),
        damping=settings.scoring_damping_factor,
    )
    return Dispatcher(session_factory, processor)


__all__ = [
    "build_dispatcher",
    "ClaimResult",
    "DispatchReport",
    "Dispatcher",
    "JobProcessor",
    "JobStatus",
    "ProcessOutcome",
    "TaggingQueue",
    "TagPredictor",
    "calculate_tag_scores",
    "fuse",
]
