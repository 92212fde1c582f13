import asyncio
import csv
import io

import pytest
from fastapi.testclient import TestClient

from feedy import exporters
from feedy.errors import PersistenceError
from feedy.main import create_app
from feedy.persistence import LocalDatabase

OWNER = {"X-Owner-Id": "owner-1"}
OTHER_OWNER = {"X-Owner-Id": "owner-2"}


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


def test_health_reports_backend(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "backend": "local"}


def test_owner_routes_require_owner_header(client):
    for path in ("/api/feedback", "/api/dashboard", "/api/surveys", "/api/menus", "/api/export/feedback.csv"):
        response = client.get(path)
        assert response.status_code == 401, path
        assert response.json()["detail"] == "Not authenticated: owner id required."


def test_public_feedback_reaches_the_owner_dashboard(client):
    created = client.post(
        "/api/public/feedback",
        json={"name": "Ann", "rating": 4, "comments": "Lovely lunch", "owner_id": "owner-1"},
    )
    client.post("/api/public/feedback", json={"rating": 2, "comments": "Too slow", "owner_id": "owner-2"})

    assert created.status_code == 201
    feedback = client.get("/api/feedback", headers=OWNER).json()
    assert [f["comments"] for f in feedback] == ["Lovely lunch"]
    assert feedback[0]["id"] == created.json()["feedback_id"]

    dashboard = client.get("/api/dashboard", headers=OWNER).json()
    assert dashboard["total"] == 1
    assert dashboard["average_rating"] == 4.0
    assert dashboard["rating_distribution"] == {"1": 0, "2": 0, "3": 0, "4": 1, "5": 0}
    assert len(dashboard["trends"]) == 1

    deleted = client.delete(f"/api/feedback/{feedback[0]['id']}", headers=OWNER)
    assert deleted.status_code == 200
    assert client.get("/api/feedback", headers=OWNER).json() == []


@pytest.mark.parametrize(
    "payload",
    [
        {"rating": 6, "comments": "too good"},
        {"rating": 3, "comments": "   "},
        {"rating": 3, "comments": "ok", "email": "nope"},
    ],
)
def test_invalid_feedback_is_rejected(client, payload):
    assert client.post("/api/public/feedback", json=payload).status_code == 422
    assert client.get("/api/feedback", headers=OWNER).json() == []


def test_feedback_filters_from_query(client):
    for rating in (1, 3, 5):
        client.post("/api/public/feedback", json={"rating": rating, "comments": f"r{rating}", "owner_id": "owner-1"})

    response = client.get("/api/feedback", params={"min_rating": 3}, headers=OWNER)

    assert sorted(f["rating"] for f in response.json()) == [3, 5]
    assert client.get("/api/feedback", params={"min_rating": 9}, headers=OWNER).status_code == 422


def test_survey_lifecycle(client):
    survey = {
        "title": "Lunch survey",
        "questions": [
            {"title": "How was the food?", "type": "rating"},
            {"title": "Which sides?", "type": "multipleChoice", "options": ["Fries", "Salad"]},
        ],
        "isActive": True,
    }
    created = client.post("/api/surveys", json=survey, headers=OWNER)
    assert created.status_code == 201
    survey_id = created.json()["survey_id"]

    stored = client.get(f"/api/surveys/{survey_id}", headers=OWNER).json()
    assert stored["isActive"] is False
    assert stored["creatorId"] == "owner-1"
    assert all(q["id"] for q in stored["questions"])
    assert client.get(f"/api/surveys/{survey_id}", headers=OTHER_OWNER).status_code == 404
    assert client.get("/api/public/owners/owner-1/survey").status_code == 404

    activated = client.post(f"/api/surveys/{survey_id}/activate", headers=OWNER)
    assert activated.json()["isActive"] is True

    public = client.get("/api/public/owners/owner-1/survey")
    assert public.status_code == 200
    question_ids = [q["id"] for q in public.json()["questions"]]

    submitted = client.post(
        "/api/public/owners/owner-1/survey-responses",
        json={"survey_id": survey_id, "answers": {question_ids[0]: 5, question_ids[1]: ["Fries", "Salad"]}},
    )
    assert submitted.status_code == 201

    responses = client.get("/api/survey-responses", headers=OWNER).json()
    assert len(responses) == 1
    assert responses[0]["submittedAt"]

    export = client.get("/api/export/survey-responses.csv", headers=OWNER)
    rows = list(csv.reader(io.StringIO(export.text)))
    assert rows[0] == ["Response ID", "Submitted Date", "How was the food?", "Which sides?"]
    assert rows[1][2:] == ["5", "Fries, Salad"]


def test_survey_response_for_foreign_survey_is_rejected(client):
    survey_id = client.post("/api/surveys", json={"title": "Mine"}, headers=OWNER).json()["survey_id"]

    response = client.post(
        "/api/public/owners/owner-2/survey-responses",
        json={"survey_id": survey_id, "answers": {"q": "yes"}},
    )

    assert response.status_code == 404


def test_update_keeps_activation_state(client):
    survey_id = client.post("/api/surveys", json={"title": "v1"}, headers=OWNER).json()["survey_id"]
    client.post(f"/api/surveys/{survey_id}/activate", headers=OWNER)

    client.put(f"/api/surveys/{survey_id}", json={"title": "v2", "isActive": False}, headers=OWNER)

    stored = client.get(f"/api/surveys/{survey_id}", headers=OWNER).json()
    assert stored["title"] == "v2"
    assert stored["isActive"] is True
    assert client.delete(f"/api/surveys/{survey_id}", headers=OWNER).status_code == 200
    assert client.get("/api/surveys", headers=OWNER).json() == []


def test_menus_are_separate_from_surveys(client):
    created = client.post(
        "/api/menus",
        json={"title": "Lunch", "dishes": [{"name": "Soup", "price": 4.5}]},
        headers=OWNER,
    )
    menu_id = created.json()["menu_id"]

    assert client.get("/api/public/owners/owner-1/menu").json() == []
    toggled = client.post(f"/api/menus/{menu_id}/toggle", headers=OWNER)
    assert toggled.json()["isActive"] is True

    public_menu = client.get("/api/public/owners/owner-1/menu").json()
    assert [m["title"] for m in public_menu] == ["Lunch"]
    assert public_menu[0]["dishes"][0]["price"] == 4.5
    assert client.get("/api/surveys", headers=OWNER).json() == []


def test_user_profile_never_exposes_password(client):
    payload = {"name": "Ann", "email": "ann@example.com", "business_name": "Ann's Diner", "password": "s3cret-pw"}

    created = client.post("/api/users", json=payload, headers=OWNER)
    assert created.status_code == 201
    assert client.post("/api/users", json=payload, headers=OWNER).status_code == 409

    me = client.get("/api/users/me", headers=OWNER).json()
    assert me["business_name"] == "Ann's Diner"
    assert "password" not in me and "password_hash" not in me
    assert "s3cret-pw" not in created.text

    updated = client.put("/api/users/me", json={"name": "Ann B", "email": "ann@example.com"}, headers=OWNER)
    assert updated.json()["name"] == "Ann B"
    assert client.get("/api/users/me", headers=OTHER_OWNER).status_code == 404


def test_csv_export_download(client):
    client.post("/api/public/feedback", json={"rating": 5, "comments": "Great, thanks", "owner_id": "owner-1"})

    response = client.get("/api/export/feedback.csv", headers=OWNER)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith("attachment; filename=feedy_feedback_")
    assert '"Great, thanks"' in response.text


def test_empty_export_is_not_found(client):
    assert client.get("/api/export/feedback.csv", headers=OWNER).status_code == 404


def test_all_data_export(client):
    response = client.get("/api/export/all.csv", headers=OWNER)
    assert response.status_code == 200
    assert "=== FEEDBACK RESPONSES ===" in response.text
    assert "=== SURVEY RESPONSES ===" in response.text


def test_insights_unavailable_without_api_key(client):
    response = client.post("/api/insights/feedback", headers=OWNER)
    assert response.status_code == 503


def test_qr_codes(client):
    response = client.get("/api/qr/feedback.png", headers=OWNER)
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")
    assert client.get("/api/qr/unknown.png", headers=OWNER).status_code == 404


class UnreachableDatabase(LocalDatabase):
    async def get_all_feedback(self, filters=None):
        raise PersistenceError("Permission denied by the data store")


def test_persistence_errors_become_503(settings):
    database = UnreachableDatabase(settings.local_store_path, feedback_count=0)
    with TestClient(create_app(settings, database=database)) as client:
        response = client.get("/api/feedback", headers=OWNER)

    assert response.status_code == 503
    assert response.json()["detail"] == "Permission denied by the data store"


def test_owners_cannot_delete_each_others_records(client):
    feedback_id = client.post(
        "/api/public/feedback", json={"rating": 5, "comments": "Mine", "owner_id": "owner-1"}
    ).json()["feedback_id"]
    response_id = client.post(
        "/api/public/owners/owner-1/survey-responses", json={"answers": {"q1": "Yes"}}
    ).json()["response_id"]

    assert client.delete(f"/api/feedback/{feedback_id}", headers=OTHER_OWNER).status_code == 404
    assert client.delete(f"/api/survey-responses/{response_id}", headers=OTHER_OWNER).status_code == 404

    assert [f["id"] for f in client.get("/api/feedback", headers=OWNER).json()] == [feedback_id]
    assert [r["id"] for r in client.get("/api/survey-responses", headers=OWNER).json()] == [response_id]
    assert client.delete(f"/api/survey-responses/{response_id}", headers=OWNER).status_code == 200


def test_duplicate_question_ids_are_rejected(client):
    survey = {"title": "Dup", "questions": [{"id": "q1", "title": "A"}, {"id": "q1", "title": "B"}]}

    response = client.post("/api/surveys", json=survey, headers=OWNER)

    assert response.status_code == 422
    assert client.get("/api/surveys", headers=OWNER).json() == []


def test_pdf_is_rendered_off_the_event_loop(client, monkeypatch):
    rendered = []

    def fake_render(report_html):
        try:
            asyncio.get_running_loop()
            rendered.append("event loop")
        except RuntimeError:
            rendered.append("worker thread")
        return b"%PDF-1.7 fake"

    monkeypatch.setattr(exporters, "pdf_available", lambda: True)
    monkeypatch.setattr(exporters, "render_pdf", fake_render)

    response = client.get("/api/export/report.pdf", headers=OWNER)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert rendered == ["worker thread"]
