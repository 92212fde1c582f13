from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...config import Settings
from ...persistence import BaseDatabase
from ...schemas import DashboardStats, DeleteResponse, FeedbackEntry, FeedbackFilters
from ..deps import get_database, get_settings, require_owner

router = APIRouter()


def feedback_filters(
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    max_rating: Optional[int] = Query(None, ge=1, le=5),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    owner_id: str = Depends(require_owner),
    settings: Settings = Depends(get_settings),
) -> FeedbackFilters:
    return FeedbackFilters(
        min_rating=min_rating,
        max_rating=max_rating,
        start_date=start_date,
        end_date=end_date,
        owner_id=owner_id,
        limit=limit or settings.feedback_fetch_limit,
    )


@router.get("/feedback", response_model=List[FeedbackEntry])
async def read_feedback(
    filters: FeedbackFilters = Depends(feedback_filters),
    db: BaseDatabase = Depends(get_database),
):
    return await db.get_all_feedback(filters)


@router.delete("/feedback/{feedback_id}", response_model=DeleteResponse)
async def delete_feedback_item(
    feedback_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    """404 unless the entry belongs to the calling owner."""
    await db.delete_feedback(feedback_id, owner_id=owner_id)
    return DeleteResponse(id=feedback_id, message="Feedback deleted.")


@router.get("/dashboard", response_model=DashboardStats)
async def read_dashboard(
    filters: FeedbackFilters = Depends(feedback_filters),
    db: BaseDatabase = Depends(get_database),
):
    """Totals, average, distribution and daily trends over one fetched window."""
    return await db.get_dashboard_stats(filters)
