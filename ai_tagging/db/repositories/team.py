"""Team configuration repository."""

from sqlalchemy import select

from ai_tagging.db.models import TeamConfig
from ai_tagging.db.repositories.base import BaseRepository


class TeamConfigRepository(BaseRepository[TeamConfig]):
    model = TeamConfig

    def get_entry(self, team_id: str, key: str) -> TeamConfig | None:
        results = self.list_by(team_id=team_id, key=key)
        return results[0] if results else None

    def list_for_team(self, team_id: str) -> list[TeamConfig]:
        return self.list_by(team_id=team_id)

    def list_team_ids(self) -> list[str]:
        """Teams with at least one stored setting."""
        stmt = select(TeamConfig.team_id).distinct().order_by(TeamConfig.team_id)
        return list(self.db.scalars(stmt).all())
