"""Asset and tag taxonomy repositories."""

import json

from sqlalchemy import select

from ai_tagging.db.models import AssetObject, AssetTag
from ai_tagging.db.repositories.base import BaseRepository

MAX_TAG_DEPTH = 3


class AssetRepository(BaseRepository[AssetObject]):
    model = AssetObject

    def list_for_team(self, team_id: str, limit: int | None = None) -> list[AssetObject]:
        """Team assets, oldest first."""
        stmt = (
            select(AssetObject)
            .where(AssetObject.team_id == team_id)
            .order_by(AssetObject.created_at.asc(), AssetObject.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt).all())

    def replace_tags(self, asset: AssetObject, tags: list[dict]) -> AssetObject:
        """Overwrite the cached tag list. Does not commit."""
        return self.partial_update(asset, tags=json.dumps(tags, ensure_ascii=False))


class AssetTagRepository(BaseRepository[AssetTag]):
    model = AssetTag

    def list_enabled(self, team_id: str) -> list[AssetTag]:
        """All tagging-enabled tags for a team, in display order."""
        stmt = (
            select(AssetTag)
            .where(AssetTag.team_id == team_id, AssetTag.tagging_enabled.is_(True))
            .order_by(AssetTag.sort.asc(), AssetTag.id.asc())
        )
        return list(self.db.scalars(stmt).all())

    def external_ids_for(self, team_id: str, tag_ids: list[int]) -> dict[int, str]:
        """Map local tag ids to external ids. Tags without an external id are omitted."""
        if not tag_ids:
            return {}
        stmt = select(AssetTag.id, AssetTag.external_id).where(
            AssetTag.team_id == team_id,
            AssetTag.id.in_(tag_ids),
            AssetTag.external_id.is_not(None),
        )
        return {tag_id: external_id for tag_id, external_id in self.db.execute(stmt).all()}
