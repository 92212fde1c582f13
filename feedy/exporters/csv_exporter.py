# feedy/exporters/csv_exporter.py
import csv
import io
from typing import Any, Dict, Iterable, List, Sequence

from .. import aggregation
from ..errors import ExportError
from ..schemas import FeedbackEntry, SurveyForm, SurveyResponse

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

FEEDBACK_HEADERS = ["ID", "Name", "Email", "Rating", "Comments", "Date Created"]
FEEDBACK_SECTION = "=== FEEDBACK RESPONSES ==="
SURVEY_SECTION = "=== SURVEY RESPONSES ==="


def _writer(output: io.StringIO):
    # QUOTE_MINIMAL wraps fields holding a comma, quote or newline and doubles embedded quotes
    return csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")


def format_answer(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def answered_question_ids(responses: Iterable[SurveyResponse]) -> List[str]:
    """Union of question ids across responses, in first-seen order."""
    seen: Dict[str, None] = {}
    for response in responses:
        for question_id in response.answers:
            seen.setdefault(str(question_id), None)
    return list(seen)


def _write_feedback(output: io.StringIO, entries: Sequence[FeedbackEntry]) -> None:
    writer = _writer(output)
    writer.writerow(FEEDBACK_HEADERS)
    for entry in entries:
        writer.writerow(
            [
                entry.id or "",
                entry.name or "Anonymous",
                entry.email or "",
                entry.rating,
                entry.comments,
                entry.created_at.strftime(DATE_FORMAT),
            ]
        )


def _write_survey_responses(
    output: io.StringIO, responses: Sequence[SurveyResponse], surveys: Sequence[SurveyForm]
) -> None:
    titles = aggregation.question_title_map(surveys)
    question_ids = answered_question_ids(responses)

    writer = _writer(output)
    writer.writerow(
        ["Response ID", "Submitted Date"] + [titles.get(qid) or qid for qid in question_ids]
    )
    for response in responses:
        submitted = response.submitted_at.strftime(DATE_FORMAT) if response.submitted_at else ""
        writer.writerow(
            [response.id or "", submitted]
            + [format_answer(response.answers.get(qid)) for qid in question_ids]
        )


def feedback_csv(entries: Sequence[FeedbackEntry]) -> str:
    if not entries:
        raise ExportError("No feedback data to export")
    output = io.StringIO()
    _write_feedback(output, entries)
    return output.getvalue()


def survey_responses_csv(
    responses: Sequence[SurveyResponse], surveys: Sequence[SurveyForm]
) -> str:
    """One row per response, one column per question answered anywhere in the set.

    Column titles come from the owner's surveys; a question that no longer
    exists keeps its raw id as the title.
    """
    if not responses:
        raise ExportError("No survey responses to export")
    output = io.StringIO()
    _write_survey_responses(output, responses, surveys)
    return output.getvalue()


def all_data_csv(
    entries: Sequence[FeedbackEntry],
    responses: Sequence[SurveyResponse],
    surveys: Sequence[SurveyForm],
) -> str:
    output = io.StringIO()
    output.write(f"{FEEDBACK_SECTION}\n\n")
    _write_feedback(output, entries)
    output.write("\n\n")
    output.write(f"{SURVEY_SECTION}\n\n")
    _write_survey_responses(output, responses, surveys)
    return output.getvalue()
