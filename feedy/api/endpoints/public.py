import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence import BaseDatabase
from ...schemas import (
    FeedbackCreate,
    FeedbackCreateResponse,
    MenuSection,
    SurveyForm,
    SurveyResponseCreate,
    SurveyResponseCreated,
)
from ..deps import get_database

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/feedback",
    response_model=FeedbackCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_feedback(
    feedback_in: FeedbackCreate, db: BaseDatabase = Depends(get_database)
):
    """Anonymous submission from the QR feedback page."""
    feedback_id = await db.insert_feedback(feedback_in.to_entry())
    return FeedbackCreateResponse(feedback_id=feedback_id)


@router.get("/owners/{owner_id}/survey", response_model=SurveyForm)
async def read_active_survey(owner_id: str, db: BaseDatabase = Depends(get_database)):
    survey = await db.get_active_survey(creator_id=owner_id)
    if survey is None:
        raise HTTPException(status_code=404, detail="No active survey")
    return survey


@router.post(
    "/owners/{owner_id}/survey-responses",
    response_model=SurveyResponseCreated,
    status_code=status.HTTP_201_CREATED,
)
async def submit_survey_response(
    owner_id: str,
    response_in: SurveyResponseCreate,
    db: BaseDatabase = Depends(get_database),
):
    if response_in.survey_id is not None:
        survey = await db.get_survey(response_in.survey_id)
        if survey is None or survey.creator_id != owner_id:
            raise HTTPException(status_code=404, detail="Survey not found")

    response_id = await db.submit_survey_response(
        response_in.answers, owner_id=owner_id, survey_id=response_in.survey_id
    )
    logger.info("Survey response %s stored for owner %s", response_id, owner_id)
    return SurveyResponseCreated(response_id=response_id)


@router.get("/owners/{owner_id}/menu", response_model=List[MenuSection])
async def read_active_menu(owner_id: str, db: BaseDatabase = Depends(get_database)):
    return await db.get_active_menu_sections(owner_id=owner_id)
