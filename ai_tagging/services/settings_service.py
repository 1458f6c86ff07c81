"""Per-team tagging settings persistence service."""

import json
import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session

from ai_tagging.db.models import TeamConfig
from ai_tagging.db.repositories.team import TeamConfigRepository
from ai_tagging.schemas.tagging import TeamTaggingSettings, TeamTaggingSettingsUpdate

logger = logging.getLogger(__name__)

# Default values for team tagging settings
TAGGING_SETTINGS_DEFAULTS: dict[str, Any] = {
    "is_tagging_enabled": True,
    "tagging_mode": "review",
    "recognition_accuracy": "balanced",
    "matching_sources": {
        "basic_info": True,
        "materialized_path": True,
        "content_analysis": True,
        "tag_keywords": True,
    },
    "trigger_timing": {
        "auto_realtime_tagging": True,
        "manual_trigger_tagging": True,
        "scheduled_tagging": False,
    },
    "application_scope": {"scope_type": "all", "selected_folders": []},
}

VALID_TAGGING_MODES = frozenset({"direct", "review"})


class TeamSettingsService:
    """Service for team settings CRUD operations. Values are JSON encoded."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TeamConfigRepository(db)

    def get(self, team_id: str, key: str, default: Any = None) -> Any:
        """Get setting value, falling back to ``default`` then the built-in default."""
        entry = self.repo.get_entry(team_id, key)
        if entry is not None:
            return json.loads(entry.value)
        if default is not None:
            return default
        return TAGGING_SETTINGS_DEFAULTS.get(key)

    def set(self, team_id: str, key: str, value: Any, updated_by: str | None = None) -> TeamConfig:
        """Set setting value (create or update)."""
        entry = self.repo.get_entry(team_id, key)
        json_value = json.dumps(value)

        if entry is None:
            entry = self.repo.add(
                TeamConfig(team_id=team_id, key=key, value=json_value, updated_by=updated_by)
            )
        else:
            self.repo.partial_update(entry, value=json_value, updated_by=updated_by)

        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_tagging_settings(self, team_id: str) -> TeamTaggingSettings:
        """All tagging settings for a team, filling in defaults for missing keys."""
        stored = {entry.key: json.loads(entry.value) for entry in self.repo.list_for_team(team_id)}
        merged = {**TAGGING_SETTINGS_DEFAULTS, **stored}
        return TeamTaggingSettings.model_validate(
            {key: merged[key] for key in TAGGING_SETTINGS_DEFAULTS}
        )

    def update_tagging_settings(
        self,
        team_id: str,
        update: TeamTaggingSettingsUpdate,
        updated_by: str | None = None,
    ) -> TeamTaggingSettings:
        for key, value in update.model_dump(exclude_none=True).items():
            self.set(team_id, key, value, updated_by=updated_by)
        logger.info(
            "team.settings.updated",
            extra={"team_id": team_id, "keys": sorted(update.model_dump(exclude_none=True))},
        )
        return self.get_tagging_settings(team_id)

    def get_tagging_mode(self, team_id: str) -> str:
        """Return "direct" or "review". Unknown stored values read as "review"."""
        mode = self.get(team_id, "tagging_mode")
        if mode not in VALID_TAGGING_MODES:
            logger.warning(
                "Unknown tagging mode, using review", extra={"team_id": team_id, "mode": mode}
            )
            return "review"
        return mode


class TeamSettingsProvider:
    """SettingsProvider that opens its own session per lookup."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_tagging_mode(self, team_id: str) -> str:
        db = self.session_factory()
        try:
            return TeamSettingsService(db).get_tagging_mode(team_id)
        finally:
            db.close()
