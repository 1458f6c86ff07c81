"""Review item repository."""

from sqlalchemy import func, select

from ai_tagging.db.models import ReviewItem
from ai_tagging.db.repositories.base import BaseRepository


class ReviewItemRepository(BaseRepository[ReviewItem]):
    model = ReviewItem

    def count_by_status(self, team_id: str) -> dict[str, int]:
        """Counts per status for a team, e.g. {"pending": 3, "approved": 1}."""
        stmt = (
            select(ReviewItem.status, func.count())
            .where(ReviewItem.team_id == team_id)
            .group_by(ReviewItem.status)
        )
        return {status: count for status, count in self.db.execute(stmt).all()}

    def list_for_team(
        self,
        team_id: str,
        status: str | None = None,
        asset_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ReviewItem], int]:
        """Page of review items, highest score first, plus the unpaged total."""
        stmt = select(ReviewItem).where(ReviewItem.team_id == team_id)
        if status:
            stmt = stmt.where(ReviewItem.status == status)
        if asset_id:
            stmt = stmt.where(ReviewItem.asset_id == asset_id)

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.db.scalars(
            stmt.order_by(ReviewItem.score.desc(), ReviewItem.created_at.asc())
            .limit(limit)
            .offset(offset)
        ).all()
        return list(items), total
