import csv
import io
from datetime import datetime

import pytest
from conftest import make_entry

from feedy.errors import ExportError
from feedy.exporters import (
    all_data_csv,
    build_report_html,
    export_filename,
    feedback_csv,
    pdf_exporter,
    render_pdf,
    survey_responses_csv,
)
from feedy.schemas import MenuDish, MenuSection, Question, SurveyForm, SurveyResponse


def parse(text):
    return list(csv.reader(io.StringIO(text)))


@pytest.fixture
def surveys():
    return [
        SurveyForm(
            id="s1",
            title="Visit",
            is_active=True,
            creator_id="owner",
            questions=[Question(id="q1", title="How was the food?"), Question(id="q2", title="Which sides?")],
        )
    ]


@pytest.fixture
def responses():
    return [
        SurveyResponse(id="r1", answers={"q1": "Great", "q2": ["Fries", "Salad"]}, submitted_at=datetime(2024, 3, 1, 12, 0)),
        SurveyResponse(id="r2", answers={"q1": "Okay", "gone": "old answer"}, submitted_at=datetime(2024, 3, 2, 9, 30)),
    ]


def test_feedback_csv_rows():
    entries = [
        make_entry(5, "2024-01-01T10:00:00", id="f1", name="Ann", email="ann@example.com"),
        make_entry(2, "2024-01-02T11:30:00", id="f2", comments='Slow, and "cold" food\non a Sunday'),
    ]

    rows = parse(feedback_csv(entries))

    assert rows[0] == ["ID", "Name", "Email", "Rating", "Comments", "Date Created"]
    assert rows[1] == ["f1", "Ann", "ann@example.com", "5", "rated 5", "2024-01-01 10:00:00"]
    assert rows[2] == ["f2", "Anonymous", "", "2", 'Slow, and "cold" food\non a Sunday', "2024-01-02 11:30:00"]


def test_feedback_csv_quotes_special_characters():
    text = feedback_csv([make_entry(3, "2024-01-01T10:00:00", id="f1", comments='said "hi", left')])
    assert '"said ""hi"", left"' in text


def test_survey_csv_columns_cover_every_answered_question(responses, surveys):
    rows = parse(survey_responses_csv(responses, surveys))

    assert rows[0] == ["Response ID", "Submitted Date", "How was the food?", "Which sides?", "gone"]
    assert rows[1] == ["r1", "2024-03-01 12:00:00", "Great", "Fries, Salad", ""]
    assert rows[2] == ["r2", "2024-03-02 09:30:00", "Okay", "", "old answer"]


def test_empty_exports_are_rejected(surveys):
    with pytest.raises(ExportError):
        feedback_csv([])
    with pytest.raises(ExportError):
        survey_responses_csv([], surveys)


def test_all_data_csv_has_both_sections(responses, surveys):
    text = all_data_csv([make_entry(4, "2024-01-01T10:00:00", id="f1")], responses, surveys)

    feedback_part, survey_part = text.split("=== SURVEY RESPONSES ===")
    assert feedback_part.startswith("=== FEEDBACK RESPONSES ===\n\nID,Name,Email")
    assert "f1,Anonymous" in feedback_part
    assert "Response ID,Submitted Date,How was the food?" in survey_part


def test_export_filename():
    assert export_filename("feedback", now=datetime(2024, 5, 6, 7, 8, 9)) == "feedy_feedback_20240506_070809.csv"
    assert export_filename("report", "pdf", now=datetime(2024, 5, 6, 7, 8, 9)).endswith(".pdf")


def test_report_html_sections(responses, surveys):
    menus = [MenuSection(id="m1", title="Lunch", dishes=[MenuDish(name="Soup & Bread", price=4.5)])]
    feedback = [
        make_entry(5, "2024-01-01T10:00:00", id="abcdefghijkl", comments="<b>great</b>"),
        make_entry(3, "2024-01-02T10:00:00"),
    ]

    report = build_report_html(
        feedback, responses, surveys, menus, generated_at=datetime(2024, 5, 6, 7, 8), business_name="Ann's Diner"
    )

    assert "Ann&#x27;s Diner" in report
    assert "Average rating" in report and "4.00" in report
    assert "1. Feedback Responses (2)" in report
    assert "2. Survey Responses (2)" in report
    assert "3. Surveys Configuration (1)" in report
    assert "4. Menus (1)" in report
    assert "abcdefgh..." in report
    assert "&lt;b&gt;great&lt;/b&gt;" in report
    assert "How was the food?" in report
    assert "Question: gone" in report
    assert "Fries, Salad" in report
    assert "Soup &amp; Bread (4.50)" in report


def test_report_html_without_data():
    report = build_report_html([], [], [])
    assert "No feedback data available." in report
    assert "No survey responses available." in report
    assert "0.00" in report


def test_render_pdf_without_engine(monkeypatch):
    monkeypatch.setattr(pdf_exporter, "_PDF_AVAILABLE", False)
    with pytest.raises(ExportError):
        render_pdf("<html></html>")


@pytest.mark.skipif(not pdf_exporter.pdf_available(), reason="WeasyPrint not available")
def test_render_pdf():
    pdf = render_pdf(build_report_html([make_entry(4, "2024-01-01T10:00:00")], [], []))
    assert pdf.startswith(b"%PDF")
