from datetime import datetime
from typing import Optional

from ..schemas import utcnow
from .csv_exporter import all_data_csv, feedback_csv, survey_responses_csv
from .pdf_exporter import build_report_html, pdf_available, render_pdf

__all__ = [
    "all_data_csv",
    "build_report_html",
    "export_filename",
    "feedback_csv",
    "pdf_available",
    "render_pdf",
    "survey_responses_csv",
]


def export_filename(kind: str, ext: str = "csv", now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"feedy_{kind}_{now.strftime('%Y%m%d_%H%M%S')}.{ext}"
