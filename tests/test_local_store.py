import asyncio
import json

import pytest
from conftest import make_entry

from feedy.config import BACKEND_DOCUMENT, BACKEND_TREE
from feedy.errors import NotFoundError, PersistenceError
from feedy.persistence import LocalDatabase, open_database
from feedy.persistence.local_store import FEEDBACK_KEY, KeyValueStore, generate_mock_feedback
from feedy.schemas import FeedbackFilters, MenuSection, SurveyForm


def run(coro):
    return asyncio.run(coro)


def test_mock_dataset_is_stable_across_startups(tmp_path):
    path = tmp_path / "store.json"

    first = LocalDatabase(path, seed=1, feedback_count=25)
    run(first.init())
    first_entries = run(first.get_all_feedback())

    # A different seed on the second start must not regenerate the cached set
    second = LocalDatabase(path, seed=99, feedback_count=5)
    run(second.init())
    second_entries = run(second.get_all_feedback())

    assert len(first_entries) == 25
    assert [e.model_dump() for e in first_entries] == [e.model_dump() for e in second_entries]


def test_mock_generation_is_seeded():
    assert generate_mock_feedback(3, 10)[0]["rating"] == generate_mock_feedback(3, 10)[0]["rating"]
    ratings = [doc["rating"] for doc in generate_mock_feedback(3, 40)]
    assert all(1 <= rating <= 5 for rating in ratings)


def test_mock_feedback_is_visible_to_any_owner(local_db):
    run(local_db.init())
    entries = run(local_db.get_all_feedback(FeedbackFilters(owner_id="whoever")))
    assert len(entries) == 20


def test_inserted_feedback_survives_restart(tmp_path):
    path = tmp_path / "store.json"
    db = LocalDatabase(path, seed=1, feedback_count=0)
    run(db.init())
    feedback_id = run(db.insert_feedback(make_entry(5, "2024-01-01T10:00:00", owner_id="owner")))

    restarted = LocalDatabase(path)
    run(restarted.init())
    entries = run(restarted.get_all_feedback(FeedbackFilters(owner_id="owner")))

    assert [e.id for e in entries] == [feedback_id]
    run(restarted.delete_feedback(feedback_id))
    assert run(db.get_all_feedback()) == []


def test_activation_and_menus(local_db):
    run(local_db.init())
    run(local_db.save_survey(SurveyForm(id="a", creator_id="owner", is_active=True)))
    run(local_db.save_survey(SurveyForm(id="b", creator_id="owner")))

    run(local_db.activate_survey("b"))

    assert run(local_db.get_active_survey(creator_id="owner")).id == "b"
    assert not run(local_db.get_survey("a")).is_active
    with pytest.raises(NotFoundError):
        run(local_db.activate_survey("missing"))

    menu = MenuSection(title="Lunch", owner_id="owner")
    run(local_db.save_menu_section(menu))
    assert run(local_db.toggle_menu_active(menu.id)).is_active
    assert [m.id for m in run(local_db.get_active_menu_sections(owner_id="owner"))] == [menu.id]


def test_survey_responses(local_db):
    run(local_db.init())
    response_id = run(local_db.submit_survey_response({"q1": "Yes"}, owner_id="owner"))
    responses = run(local_db.get_all_survey_responses(owner_id="owner"))
    assert [r.id for r in responses] == [response_id]
    run(local_db.delete_survey_response(response_id))
    assert run(local_db.get_all_survey_responses()) == []


def test_key_value_store_writes_whole_file(tmp_path):
    store = KeyValueStore(tmp_path / "nested" / "kv.json")
    store.set("a", [1, 2])
    store.set("b", {"x": True})
    store.delete("a")

    assert json.loads((tmp_path / "nested" / "kv.json").read_text()) == {"b": {"x": True}}
    assert "b" in store
    assert store.get("a", "missing") == "missing"
    assert list((tmp_path / "nested").iterdir()) == [tmp_path / "nested" / "kv.json"]


def test_corrupt_store_raises_persistence_error(tmp_path):
    path = tmp_path / "kv.json"
    path.write_text("{not json")
    with pytest.raises(PersistenceError):
        KeyValueStore(path).get(FEEDBACK_KEY)


def test_open_database_falls_back_to_local_data(settings):
    settings.backend = BACKEND_TREE
    settings.tree_store_url = None
    settings.mock_feedback_count = 12

    db = run(open_database(settings))

    assert isinstance(db, LocalDatabase)
    assert len(run(db.get_all_feedback())) == 12


def test_open_database_falls_back_when_document_store_is_unreachable(settings, tmp_path):
    settings.backend = BACKEND_DOCUMENT
    settings.database_url = f"sqlite+aiosqlite:///{tmp_path / 'no' / 'such' / 'dir.db'}"

    db = run(open_database(settings))

    assert db.backend_name == "local"


@pytest.mark.parametrize("url", ["sqlite:///{dir}/sync.db", "nosuchdialect+driver:///{dir}/x.db"])
def test_open_database_falls_back_when_engine_cannot_be_built(settings, tmp_path, url):
    settings.backend = BACKEND_DOCUMENT
    settings.database_url = url.format(dir=tmp_path)
    settings.mock_feedback_count = 3

    db = run(open_database(settings))

    assert db.backend_name == "local"
    assert len(run(db.get_all_feedback())) == 3


def test_open_database_uses_document_store_when_available(settings):
    settings.backend = BACKEND_DOCUMENT

    async def scenario():
        db = await open_database(settings)
        try:
            return db.backend_name
        finally:
            await db.close()

    assert run(scenario()) == "document"


def test_deletes_check_the_owner(local_db):
    run(local_db.init())
    mine = run(local_db.insert_feedback(make_entry(4, "2024-01-01T10:00:00", owner_id="owner")))
    response_id = run(local_db.submit_survey_response({"q1": "Yes"}, owner_id="owner"))

    with pytest.raises(NotFoundError):
        run(local_db.delete_feedback(mine, owner_id="intruder"))
    with pytest.raises(NotFoundError):
        run(local_db.delete_survey_response(response_id, owner_id="intruder"))
    with pytest.raises(NotFoundError):
        run(local_db.delete_feedback("missing", owner_id="owner"))

    # Owner-less mock entries stay deletable by whoever is signed in
    run(local_db.delete_feedback("mock_0000", owner_id="intruder"))
    run(local_db.delete_feedback(mine, owner_id="owner"))

    remaining = {e.id for e in run(local_db.get_all_feedback())}
    assert mine not in remaining and "mock_0000" not in remaining
    assert len(remaining) == 19
