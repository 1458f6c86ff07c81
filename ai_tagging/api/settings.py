"""Team tagging settings API."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ai_tagging.db.database import get_db
from ai_tagging.schemas.tagging import TeamTaggingSettings, TeamTaggingSettingsUpdate
from ai_tagging.services.settings_service import TeamSettingsService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{team_id}", response_model=TeamTaggingSettings)
async def get_team_settings(team_id: str, db: Session = Depends(get_db)):
    """Tagging settings for a team, with defaults for anything never set."""
    return TeamSettingsService(db).get_tagging_settings(team_id)


@router.put("/{team_id}", response_model=TeamTaggingSettings)
async def update_team_settings(
    team_id: str,
    update: TeamTaggingSettingsUpdate,
    db: Session = Depends(get_db),
):
    """Partially update tagging settings. Omitted fields keep their value."""
    return TeamSettingsService(db).update_tagging_settings(team_id, update)
