from fastapi import APIRouter, Depends, HTTPException, status

from ...config import Settings
from ...insights import NOT_CONFIGURED_MESSAGE, InsightsService
from ...persistence import BaseDatabase
from ...schemas import FeedbackFilters, InsightsResponse
from ..deps import get_database, get_insights, get_settings, require_owner

router = APIRouter()


def _require_configured(service: InsightsService) -> None:
    if not service.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=NOT_CONFIGURED_MESSAGE
        )


@router.post("/feedback", response_model=InsightsResponse)
async def analyze_feedback(
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
    service: InsightsService = Depends(get_insights),
    settings: Settings = Depends(get_settings),
):
    _require_configured(service)
    entries = await db.get_all_feedback(
        FeedbackFilters(owner_id=owner_id, limit=settings.feedback_fetch_limit)
    )
    return await service.analyze_feedback(entries)


@router.post("/survey-responses", response_model=InsightsResponse)
async def analyze_survey_responses(
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
    service: InsightsService = Depends(get_insights),
):
    _require_configured(service)
    responses = await db.get_all_survey_responses(owner_id=owner_id)
    surveys = await db.get_all_surveys(creator_id=owner_id)
    return await service.analyze_survey_responses(responses, surveys)
