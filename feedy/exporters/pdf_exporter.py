# feedy/exporters/pdf_exporter.py
import html
import logging
from datetime import datetime
from typing import Optional, Sequence

from .. import aggregation
from ..errors import ExportError
from ..schemas import FeedbackEntry, MenuSection, SurveyForm, SurveyResponse, utcnow
from .csv_exporter import format_answer

# ----- Optional PDF engine (WeasyPrint). The HTML report still builds without it. -----
try:
    from weasyprint import HTML
    _PDF_AVAILABLE = True
except Exception:
    _PDF_AVAILABLE = False

logger = logging.getLogger(__name__)

REPORT_CSS = """
@page { size: A4; margin: 18mm; }
body { font-family: "Helvetica", "Arial", sans-serif; font-size: 10pt; color: #222; }
h1 { font-size: 24pt; margin-bottom: 4pt; }
h2 { font-size: 16pt; border-bottom: 1px solid #999; padding-bottom: 3pt; margin-top: 24pt; }
.cover { page-break-after: always; }
.muted { color: #777; }
.stats td { padding: 4pt 12pt 4pt 0; }
.stat-value { font-size: 16pt; font-weight: bold; }
table.grid { width: 100%; border-collapse: collapse; margin-top: 6pt; }
table.grid th { background: #e0e0e0; text-align: left; }
table.grid th, table.grid td { border: 1px solid #bbb; padding: 4pt; vertical-align: top; }
.bar { background: #4a7bd0; height: 8pt; }
.card { border: 1px solid #bbb; border-radius: 4pt; padding: 8pt; margin-bottom: 10pt; page-break-inside: avoid; }
.card-head { display: flex; justify-content: space-between; border-bottom: 1px solid #ddd; padding-bottom: 4pt; }
.answer-title { color: #555; font-weight: bold; width: 40%; }
"""


def pdf_available() -> bool:
    return _PDF_AVAILABLE


def _e(value) -> str:
    return html.escape("" if value is None else str(value))


def _short_id(value: Optional[str]) -> str:
    value = value or ""
    return f"{value[:8]}..." if len(value) > 8 else value


def _section(title: str, count: int) -> str:
    return f"<h2>{_e(title)} ({count})</h2>"


def _cover(feedback: Sequence[FeedbackEntry], generated_at: datetime, business_name: Optional[str]) -> str:
    distribution = aggregation.rating_distribution(feedback)
    total = len(feedback)
    widest = max(distribution.values()) or 1
    rows = "".join(
        f"<tr><td>{rating} &#9733;</td>"
        f'<td style="width: 70%"><div class="bar" style="width: {count * 100 // widest}%"></div></td>'
        f"<td>{count}</td></tr>"
        for rating, count in sorted(distribution.items(), reverse=True)
    )
    subtitle = f"<p>{_e(business_name)}</p>" if business_name else ""
    return f"""
<div class="cover">
  <h1>Feedy Data Export</h1>
  {subtitle}
  <p class="muted">Generated {_e(generated_at.strftime('%b %d, %Y %H:%M'))} UTC</p>
  <table class="stats">
    <tr>
      <td>Total feedback<br><span class="stat-value">{total}</span></td>
      <td>Average rating<br><span class="stat-value">{aggregation.average_rating(feedback):.2f}</span></td>
    </tr>
  </table>
  <h2>Rating distribution</h2>
  <table class="stats" style="width: 100%">{rows}</table>
</div>
"""


def _feedback_table(feedback: Sequence[FeedbackEntry]) -> str:
    if not feedback:
        return '<p class="muted">No feedback data available.</p>'
    rows = "".join(
        "<tr>"
        f"<td>{_e(_short_id(entry.id))}</td>"
        f"<td>{_e(entry.name or 'Anonymous')}</td>"
        f"<td>{_e(entry.email or '-')}</td>"
        f"<td>{entry.rating}</td>"
        f"<td>{_e(entry.created_at.strftime('%b %d, %Y'))}</td>"
        f"<td>{_e(entry.comments)}</td>"
        "</tr>"
        for entry in feedback
    )
    return (
        '<table class="grid"><tr><th>ID</th><th>Name</th><th>Email</th>'
        f"<th>Rating</th><th>Date</th><th>Comment</th></tr>{rows}</table>"
    )


def _response_cards(responses: Sequence[SurveyResponse], surveys: Sequence[SurveyForm]) -> str:
    if not responses:
        return '<p class="muted">No survey responses available.</p>'
    titles = aggregation.question_title_map(surveys)
    cards = []
    for response in responses:
        submitted = (
            response.submitted_at.strftime("%b %d, %Y %H:%M") if response.submitted_at else "Unknown Date"
        )
        answers = "".join(
            f'<tr><td class="answer-title">{_e(titles.get(qid) or f"Question: {qid}")}:</td>'
            f"<td>{_e(format_answer(value))}</td></tr>"
            for qid, value in response.answers.items()
        )
        cards.append(
            '<div class="card">'
            f'<div class="card-head"><strong>Response ID: {_e(response.id or "Unknown ID")}</strong>'
            f'<span class="muted">Submitted: {_e(submitted)}</span></div>'
            f'<table style="width: 100%">{answers}</table>'
            "</div>"
        )
    return "".join(cards)


def _surveys_table(surveys: Sequence[SurveyForm]) -> str:
    if not surveys:
        return '<p class="muted">No surveys configured.</p>'
    rows = []
    for survey in surveys:
        questions = "<br>".join(
            f"- {_e(q.title)} ({_e(q.type.value)})" for q in survey.questions
        )
        rows.append(
            f"<tr><td>{_e(survey.title)}</td>"
            f"<td>{'Active' if survey.is_active else 'Inactive'}</td>"
            f"<td>{_e(survey.creator_id or '-')}</td><td>{questions}</td></tr>"
        )
    return (
        '<table class="grid"><tr><th>Title</th><th>Status</th><th>Creator ID</th>'
        f"<th>Questions Info</th></tr>{''.join(rows)}</table>"
    )


def _menus_table(menus: Sequence[MenuSection]) -> str:
    if not menus:
        return '<p class="muted">No menus configured.</p>'
    rows = []
    for menu in menus:
        dishes = "<br>".join(
            f"{_e(d.name)} ({d.price:.2f}){'' if d.is_available else ' - unavailable'}"
            for d in menu.dishes
        )
        rows.append(
            f"<tr><td>{_e(menu.title)}</td>"
            f"<td>{'Active' if menu.is_active else 'Inactive'}</td>"
            f"<td>{_e(menu.description)}</td><td>{dishes}</td></tr>"
        )
    return (
        '<table class="grid"><tr><th>Title</th><th>Status</th><th>Description</th>'
        f"<th>Dishes</th></tr>{''.join(rows)}</table>"
    )


def build_report_html(
    feedback: Sequence[FeedbackEntry],
    responses: Sequence[SurveyResponse],
    surveys: Sequence[SurveyForm],
    menus: Sequence[MenuSection] = (),
    generated_at: Optional[datetime] = None,
    business_name: Optional[str] = None,
) -> str:
    generated_at = generated_at or utcnow()
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Feedy Data Export</title><style>{REPORT_CSS}</style></head>
<body>
{_cover(feedback, generated_at, business_name)}
{_section('1. Feedback Responses', len(feedback))}
{_feedback_table(feedback)}
{_section('2. Survey Responses', len(responses))}
{_response_cards(responses, surveys)}
{_section('3. Surveys Configuration', len(surveys))}
{_surveys_table(surveys)}
{_section('4. Menus', len(menus))}
{_menus_table(menus)}
</body>
</html>
"""


def render_pdf(report_html: str) -> bytes:
    if not _PDF_AVAILABLE:
        raise ExportError("PDF exporter not installed on server")
    logger.info("Rendering PDF report (%d bytes of HTML)", len(report_html))
    return HTML(string=report_html).write_pdf()
