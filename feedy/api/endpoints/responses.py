from typing import List

from fastapi import APIRouter, Depends

from ...persistence import BaseDatabase
from ...schemas import DeleteResponse, SurveyResponse
from ..deps import get_database, require_owner

router = APIRouter()


@router.get("", response_model=List[SurveyResponse])
async def read_survey_responses(
    owner_id: str = Depends(require_owner), db: BaseDatabase = Depends(get_database)
):
    return await db.get_all_survey_responses(owner_id=owner_id)


@router.delete("/{response_id}", response_model=DeleteResponse)
async def delete_survey_response(
    response_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    await db.delete_survey_response(response_id, owner_id=owner_id)
    return DeleteResponse(id=response_id, message="Survey response deleted.")
