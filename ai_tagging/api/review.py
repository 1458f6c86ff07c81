"""Review queue API: stats, listing and status updates for scored tag candidates."""

import json
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ai_tagging.core.exceptions import EntityNotFound
from ai_tagging.db.database import get_db
from ai_tagging.db.models import REVIEW_STATUSES, ReviewItem
from ai_tagging.db.repositories.review import ReviewItemRepository
from ai_tagging.schemas.tagging import (
    ReviewItemListResponse,
    ReviewItemResponse,
    ReviewStatsResponse,
    ReviewStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(item: ReviewItem) -> ReviewItemResponse:
    return ReviewItemResponse(
        id=item.id,
        job_id=item.job_id,
        asset_id=item.asset_id,
        team_id=item.team_id,
        leaf_tag_id=item.leaf_tag_id,
        tag_path=json.loads(item.tag_path),
        score=item.score,
        status=item.status,
        reviewed_by=item.reviewed_by,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


@router.get("/stats", response_model=ReviewStatsResponse)
async def get_review_stats(team_id: str, db: Session = Depends(get_db)):
    """Review item counts by status for a team."""
    counts = ReviewItemRepository(db).count_by_status(team_id)
    by_status = {s: counts.get(s, 0) for s in REVIEW_STATUSES}
    return ReviewStatsResponse(total=sum(counts.values()), **by_status)


@router.get("/items", response_model=ReviewItemListResponse)
async def list_review_items(
    team_id: str,
    status: str | None = Query(None, pattern="^(pending|approved|rejected)$"),
    asset_id: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List review items for a team, highest score first."""
    items, total = ReviewItemRepository(db).list_for_team(
        team_id, status=status, asset_id=asset_id, limit=limit, offset=offset
    )
    return ReviewItemListResponse(
        items=[_to_response(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.patch("/items/{item_id}", response_model=ReviewItemResponse)
async def update_review_item(
    item_id: str,
    update: ReviewStatusUpdate,
    db: Session = Depends(get_db),
):
    """Approve, reject, or reopen a review item."""
    repo = ReviewItemRepository(db)
    item = repo.get(item_id)
    if item is None:
        raise EntityNotFound(f"Review item {item_id} not found.")

    repo.partial_update(item, status=update.status, reviewed_by=update.reviewed_by)
    db.commit()
    db.refresh(item)
    logger.info(
        "review.item.updated",
        extra={"review_item_id": item_id, "status": update.status, "team_id": item.team_id},
    )
    return _to_response(item)
