"""Tagging pipeline schemas.

Prediction payloads accept the camelCase names the LLM is asked to produce
(``leafTagId``, ``tagPath``) as well as snake_case, and always serialize to
snake_case for storage and API responses.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Source(str, Enum):
    """Evidence source a prediction was derived from."""

    BASIC_INFO = "basicInfo"
    MATERIALIZED_PATH = "materializedPath"
    CONTENT_ANALYSIS = "contentAnalysis"
    TAG_KEYWORDS = "tagKeywords"


RecognitionAccuracy = Literal["precise", "balanced", "broad"]
TaskType = Literal["default", "test", "manual", "scheduled"]
TaggingMode = Literal["direct", "review"]
ReviewStatus = Literal["pending", "approved", "rejected"]
ScopeType = Literal["all", "specific"]


# -----------------------------------------------------------------------------
# Predictions and scores
# -----------------------------------------------------------------------------


class TagPrediction(BaseModel):
    """One tag candidate proposed for one source."""

    model_config = ConfigDict(populate_by_name=True)

    leaf_tag_id: int | None = Field(
        default=None, validation_alias=AliasChoices("leaf_tag_id", "leafTagId")
    )
    tag_path: list[str] = Field(
        default_factory=list,
        max_length=3,
        validation_alias=AliasChoices("tag_path", "tagPath"),
    )
    confidence: float = Field(ge=0.0, le=1.0)


class SourcePrediction(BaseModel):
    source: Source
    tags: list[TagPrediction] = Field(default_factory=list)


class ScoredTag(BaseModel):
    """A distinct leaf tag with its per-source confidences and fused 0-100 score."""

    model_config = ConfigDict(populate_by_name=True)

    leaf_tag_id: int | None = Field(
        default=None, validation_alias=AliasChoices("leaf_tag_id", "leafTagId")
    )
    tag_path: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("tag_path", "tagPath")
    )
    confidence_by_sources: dict[Source, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("confidence_by_sources", "confidenceBySources"),
    )
    score: int = Field(default=0, ge=0, le=100)


# -----------------------------------------------------------------------------
# Job options
# -----------------------------------------------------------------------------


class MatchingSources(BaseModel):
    """Per-source toggles. A disabled source's predictions are discarded."""

    model_config = ConfigDict(populate_by_name=True)

    basic_info: bool = Field(True, validation_alias=AliasChoices("basic_info", "basicInfo"))
    materialized_path: bool = Field(
        True, validation_alias=AliasChoices("materialized_path", "materializedPath")
    )
    content_analysis: bool = Field(
        True, validation_alias=AliasChoices("content_analysis", "contentAnalysis")
    )
    tag_keywords: bool = Field(
        True, validation_alias=AliasChoices("tag_keywords", "tagKeywords")
    )

    def enabled_sources(self) -> set[Source]:
        flags = {
            Source.BASIC_INFO: self.basic_info,
            Source.MATERIALIZED_PATH: self.materialized_path,
            Source.CONTENT_ANALYSIS: self.content_analysis,
            Source.TAG_KEYWORDS: self.tag_keywords,
        }
        return {source for source, enabled in flags.items() if enabled}


class JobOptions(BaseModel):
    """Options captured at enqueue time and read once by the processor."""

    matching_sources: MatchingSources = Field(default_factory=MatchingSources)
    recognition_accuracy: RecognitionAccuracy = "balanced"


# -----------------------------------------------------------------------------
# API request / response models
# -----------------------------------------------------------------------------


class EnqueueJobRequest(BaseModel):
    team_id: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)
    matching_sources: MatchingSources | None = None
    recognition_accuracy: RecognitionAccuracy | None = None
    task_type: TaskType = "default"


class EnqueueJobResponse(BaseModel):
    """``job_id`` and ``status`` are None when team settings skipped the asset."""

    job_id: str | None = None
    status: str | None = None
    message: str = "Asset tagging job enqueued"


class JobStatusResponse(BaseModel):
    """Job status as returned by the status endpoint."""

    job_id: str
    team_id: str
    asset_id: str | None = None
    status: str
    task_type: str
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    duration_ms: int | None = None
    result: dict | None = None
    created_at: datetime | None = None


class ProcessQueueResponse(BaseModel):
    success: bool = True
    processing: int
    skipped: int


class ScheduledTeamResult(BaseModel):
    team_id: str
    enqueued: int
    skipped_in_flight: int
    skipped_out_of_scope: int


class ProcessScheduledResponse(BaseModel):
    success: bool = True
    processed_teams: int
    enqueued: int
    results: list[ScheduledTeamResult]


class ReviewStatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class ReviewItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str | None = None
    asset_id: str
    team_id: str
    leaf_tag_id: int
    tag_path: list[str]
    score: int
    status: str
    reviewed_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReviewItemListResponse(BaseModel):
    items: list[ReviewItemResponse]
    total: int
    limit: int
    offset: int


class ReviewStatusUpdate(BaseModel):
    status: ReviewStatus
    reviewed_by: str | None = None


class TriggerTiming(BaseModel):
    """Which triggers may create jobs for a team."""

    model_config = ConfigDict(populate_by_name=True)

    auto_realtime_tagging: bool = Field(
        True, validation_alias=AliasChoices("auto_realtime_tagging", "autoRealtimeTagging")
    )
    manual_trigger_tagging: bool = Field(
        True, validation_alias=AliasChoices("manual_trigger_tagging", "manualTriggerTagging")
    )
    scheduled_tagging: bool = Field(
        False, validation_alias=AliasChoices("scheduled_tagging", "scheduledTagging")
    )


class ApplicationScope(BaseModel):
    """Folders whose assets are tagged automatically.

    ``selected_folders`` holds materialized folder paths. A folder covers
    itself and every subfolder below it.
    """

    model_config = ConfigDict(populate_by_name=True)

    scope_type: ScopeType = Field("all", validation_alias=AliasChoices("scope_type", "scopeType"))
    selected_folders: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("selected_folders", "selectedFolders"),
    )

    def contains(self, materialized_path: str | None) -> bool:
        if self.scope_type == "all":
            return True
        if not materialized_path:
            return False
        path = materialized_path.rstrip("/")
        for folder in self.selected_folders:
            folder = folder.rstrip("/")
            if folder and (path == folder or path.startswith(folder + "/")):
                return True
        return False


class TeamTaggingSettings(BaseModel):
    """Team-level tagging configuration."""

    is_tagging_enabled: bool = True
    tagging_mode: TaggingMode = "review"
    recognition_accuracy: RecognitionAccuracy = "balanced"
    matching_sources: MatchingSources = Field(default_factory=MatchingSources)
    trigger_timing: TriggerTiming = Field(default_factory=TriggerTiming)
    application_scope: ApplicationScope = Field(default_factory=ApplicationScope)


class TeamTaggingSettingsUpdate(BaseModel):
    is_tagging_enabled: bool | None = None
    tagging_mode: TaggingMode | None = None
    recognition_accuracy: RecognitionAccuracy | None = None
    matching_sources: MatchingSources | None = None
    trigger_timing: TriggerTiming | None = None
    application_scope: ApplicationScope | None = None

    @field_validator("tagging_mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v
