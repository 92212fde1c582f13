import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from ... import exporters
from ...config import Settings
from ...persistence import BaseDatabase
from ...schemas import FeedbackFilters
from ..deps import get_database, get_settings, require_owner

logger = logging.getLogger(__name__)

router = APIRouter()


def _csv_response(content: str, kind: str) -> StreamingResponse:
    filename = exporters.export_filename(kind, "csv")
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _owner_filters(owner_id: str, settings: Settings) -> FeedbackFilters:
    return FeedbackFilters(owner_id=owner_id, limit=settings.feedback_fetch_limit)


@router.get("/feedback.csv", response_description="CSV file of feedback entries")
async def export_feedback_csv(
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    entries = await db.get_all_feedback(_owner_filters(owner_id, settings))
    logger.info("Owner %s exports %d feedback entries as CSV", owner_id, len(entries))
    return _csv_response(exporters.feedback_csv(entries), "feedback")


@router.get("/survey-responses.csv", response_description="CSV file of survey responses")
async def export_survey_responses_csv(
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    responses = await db.get_all_survey_responses(owner_id=owner_id)
    surveys = await db.get_all_surveys(creator_id=owner_id)
    return _csv_response(exporters.survey_responses_csv(responses, surveys), "survey_responses")


@router.get("/all.csv", response_description="CSV file with feedback and survey responses")
async def export_all_csv(
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    entries = await db.get_all_feedback(_owner_filters(owner_id, settings))
    responses = await db.get_all_survey_responses(owner_id=owner_id)
    surveys = await db.get_all_surveys(creator_id=owner_id)
    return _csv_response(exporters.all_data_csv(entries, responses, surveys), "all_data")


@router.get("/report.pdf", response_description="PDF report of all owner data")
async def export_pdf_report(
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    if not exporters.pdf_available():
        raise HTTPException(status_code=501, detail="PDF exporter not installed on server")

    entries = await db.get_all_feedback(_owner_filters(owner_id, settings))
    responses = await db.get_all_survey_responses(owner_id=owner_id)
    surveys = await db.get_all_surveys(creator_id=owner_id)
    menus = await db.get_all_menu_sections(owner_id=owner_id)
    profile = await db.get_user_profile(owner_id)

    report_html = exporters.build_report_html(
        entries,
        responses,
        surveys,
        menus,
        business_name=profile.business_name if profile else None,
    )
    # WeasyPrint layout is CPU bound
    pdf_bytes = await run_in_threadpool(exporters.render_pdf, report_html)
    filename = exporters.export_filename("data_export", "pdf")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
