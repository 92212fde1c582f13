import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence import BaseDatabase
from ...schemas import DeleteResponse, SurveyForm, SurveySaveResponse, utcnow
from ..deps import get_database, require_owner

logger = logging.getLogger(__name__)

router = APIRouter()


async def _owned_survey(db: BaseDatabase, survey_id: str, owner_id: str) -> SurveyForm:
    survey = await db.get_survey(survey_id)
    if survey is None or survey.creator_id != owner_id:
        raise HTTPException(status_code=404, detail="Survey not found")
    return survey


def _assign_question_ids(survey: SurveyForm) -> None:
    # Answers are keyed by question id across all of an owner's surveys
    seen = set()
    for question in survey.questions:
        if not question.id:
            question.id = uuid.uuid4().hex[:12]
        if question.id in seen:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Duplicate question id '{question.id}'",
            )
        seen.add(question.id)


@router.get("", response_model=List[SurveyForm])
async def read_surveys(
    owner_id: str = Depends(require_owner), db: BaseDatabase = Depends(get_database)
):
    return await db.get_all_surveys(creator_id=owner_id)


@router.post("", response_model=SurveySaveResponse, status_code=status.HTTP_201_CREATED)
async def create_survey(
    survey_in: SurveyForm,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    # New surveys start inactive; activation goes through /activate only
    survey = survey_in.model_copy(
        update={"id": "", "creator_id": owner_id, "is_active": False, "created_at": utcnow()}
    )
    _assign_question_ids(survey)
    await db.save_survey(survey)
    logger.info("Survey %s created by %s", survey.id, owner_id)
    return SurveySaveResponse(survey_id=survey.id)


@router.get("/{survey_id}", response_model=SurveyForm)
async def read_survey(
    survey_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    return await _owned_survey(db, survey_id, owner_id)


@router.put("/{survey_id}", response_model=SurveySaveResponse)
async def update_survey(
    survey_id: str,
    survey_in: SurveyForm,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    existing = await _owned_survey(db, survey_id, owner_id)
    survey = survey_in.model_copy(
        update={
            "id": survey_id,
            "creator_id": owner_id,
            "is_active": existing.is_active,
            "created_at": existing.created_at,
        }
    )
    _assign_question_ids(survey)
    await db.save_survey(survey)
    return SurveySaveResponse(survey_id=survey_id)


@router.delete("/{survey_id}", response_model=DeleteResponse)
async def delete_survey(
    survey_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    await _owned_survey(db, survey_id, owner_id)
    await db.delete_survey(survey_id)
    return DeleteResponse(id=survey_id, message="Survey deleted.")


@router.post("/{survey_id}/activate", response_model=SurveyForm)
async def activate_survey(
    survey_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    """Toggles the survey. Activating it deactivates every other survey of the owner."""
    await _owned_survey(db, survey_id, owner_id)
    await db.activate_survey(survey_id)
    return await _owned_survey(db, survey_id, owner_id)
