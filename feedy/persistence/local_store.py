"""
Offline fallback backend.

Everything lives in one JSON file used as a key-value store. The mock feedback
set is generated from a seeded RNG the first time the file is opened and is
then reloaded verbatim, so repeated starts without a network see the same
dashboard.
"""

import json
import logging
import os
import random
import tempfile
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from .. import aggregation
from ..errors import NotFoundError, PersistenceError
from ..schemas import (
    FeedbackEntry,
    FeedbackFilters,
    MenuSection,
    SurveyForm,
    SurveyResponse,
    UserProfile,
    utcnow,
)
from .base import BaseDatabase, activation_plan, decode_records

logger = logging.getLogger(__name__)

FEEDBACK_KEY = "mock_feedback_data"
SURVEYS_KEY = "all_surveys"
RESPONSES_KEY = "survey_responses"
MENUS_KEY = "menu_sections"
USERS_KEY = "users"

MOCK_NAMES = [
    "Alice Martin",
    "Bob Nguyen",
    "Chloe Dubois",
    "David Okafor",
    "Emma Rossi",
    "Farid Haddad",
    "Grace Kim",
    None,
]
MOCK_COMMENTS = {
    1: ["Very disappointing visit.", "Cold food and a long wait."],
    2: ["Service was slow.", "Not as good as last time."],
    3: ["It was okay.", "Average experience, nothing special."],
    4: ["Good food, friendly staff.", "Nice place, will come back."],
    5: ["Excellent, loved everything!", "Best meal we had this month."],
}
MOCK_HISTORY_DAYS = 30


class KeyValueStore:
    """JSON object on disk. Each write replaces the file through a temp file."""

    def __init__(self, path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
            return json.loads(text) if text.strip() else {}
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Local store {self.path} is unreadable: {e}") from e

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write local store {self.path}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def __contains__(self, key: str) -> bool:
        return key in self._read()


def generate_mock_feedback(seed: int, count: int, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    now = now or utcnow()
    documents = []
    for index in range(count):
        rating = rng.randint(1, 5)
        name = rng.choice(MOCK_NAMES)
        created_at = now - timedelta(
            days=rng.randint(0, MOCK_HISTORY_DAYS - 1),
            minutes=rng.randint(0, 24 * 60 - 1),
        )
        documents.append(
            {
                "id": f"mock_{index:04d}",
                "name": name,
                "email": f"{name.split()[0].lower()}@example.com" if name else None,
                "rating": rating,
                "comments": rng.choice(MOCK_COMMENTS[rating]),
                "created_at": created_at.replace(microsecond=0).isoformat(),
                "owner_id": None,
                "survey_id": None,
            }
        )
    return documents


def _records(documents: Any) -> List[tuple]:
    if not isinstance(documents, list):
        return []
    return [(doc.get("id", ""), doc) for doc in documents if isinstance(doc, dict)]


def _require_visible(records: list, record_id: str, owner_id: str, label: str) -> None:
    # Owner-less records belong to whoever is signed in, as for reads
    record = next((r for r in records if r.id == record_id), None)
    if record is None or record.owner_id not in (owner_id, None):
        raise NotFoundError(f"{label} {record_id} not found")


class LocalDatabase(BaseDatabase):
    """Single-tenant store over a `KeyValueStore`.

    Mock feedback carries no owner, so it is visible to whichever owner is
    signed in while the live backend is down.
    """

    backend_name = "local"

    def __init__(
        self,
        path,
        seed: int = 42,
        feedback_count: int = 50,
        default_limit: int = 100,
    ):
        super().__init__(default_limit=default_limit)
        self.store = KeyValueStore(path)
        self.seed = seed
        self.feedback_count = feedback_count

    async def init(self) -> None:
        if FEEDBACK_KEY in self.store:
            logger.info("Loaded cached mock feedback from %s", self.store.path)
            return
        documents = generate_mock_feedback(self.seed, self.feedback_count)
        self.store.set(FEEDBACK_KEY, documents)
        logger.info("Generated %d mock feedback entries (seed %s)", len(documents), self.seed)

    def _load(self, key: str, model, source: str) -> list:
        return decode_records(_records(self.store.get(key, [])), model, source)

    def _save(self, key: str, items: list) -> None:
        self.store.set(key, [item.model_dump(mode="json", by_alias=True) for item in items])

    # --- User profiles ---

    async def create_user_profile(self, user: UserProfile) -> None:
        users = self.store.get(USERS_KEY, {})
        users[user.id] = user.to_document()
        self.store.set(USERS_KEY, users)

    async def get_user_profile(self, uid: str) -> Optional[UserProfile]:
        data = self.store.get(USERS_KEY, {}).get(uid)
        if data is None:
            return None
        users = decode_records([(uid, data)], UserProfile, "user")
        return users[0] if users else None

    # --- Feedback ---

    async def insert_feedback(self, feedback: FeedbackEntry) -> str:
        entries = self._load(FEEDBACK_KEY, FeedbackEntry, "feedback")
        feedback_id = f"local_{uuid.uuid4().hex[:12]}"
        entries.append(feedback.model_copy(update={"id": feedback_id}))
        self._save(FEEDBACK_KEY, entries)
        return feedback_id

    async def get_all_feedback(
        self, filters: Optional[FeedbackFilters] = None
    ) -> List[FeedbackEntry]:
        filters = self._filters(filters)
        window = aggregation.newest_first(self._load(FEEDBACK_KEY, FeedbackEntry, "feedback"))
        return aggregation.filter_feedback(window[: filters.limit], filters, include_unowned=True)

    async def delete_feedback(self, feedback_id: str, owner_id: Optional[str] = None) -> None:
        entries = self._load(FEEDBACK_KEY, FeedbackEntry, "feedback")
        if owner_id is not None:
            _require_visible(entries, feedback_id, owner_id, "Feedback")
        self._save(FEEDBACK_KEY, [e for e in entries if e.id != feedback_id])

    # --- Surveys ---

    async def get_all_surveys(self, creator_id: Optional[str] = None) -> List[SurveyForm]:
        surveys = self._load(SURVEYS_KEY, SurveyForm, "survey")
        if creator_id is not None:
            surveys = [s for s in surveys if s.creator_id == creator_id]
        return sorted(surveys, key=lambda s: s.created_at, reverse=True)

    async def get_survey(self, survey_id: str) -> Optional[SurveyForm]:
        surveys = self._load(SURVEYS_KEY, SurveyForm, "survey")
        return next((s for s in surveys if s.id == survey_id), None)

    async def save_survey(self, survey: SurveyForm) -> None:
        if not survey.id:
            survey.id = uuid.uuid4().hex
        surveys = [s for s in self._load(SURVEYS_KEY, SurveyForm, "survey") if s.id != survey.id]
        surveys.append(survey)
        self._save(SURVEYS_KEY, surveys)

    async def delete_survey(self, survey_id: str) -> None:
        surveys = self._load(SURVEYS_KEY, SurveyForm, "survey")
        self._save(SURVEYS_KEY, [s for s in surveys if s.id != survey_id])

    async def activate_survey(self, survey_id: str) -> None:
        surveys = self._load(SURVEYS_KEY, SurveyForm, "survey")
        plan = activation_plan(surveys, survey_id)
        for survey in surveys:
            if survey.id in plan:
                survey.is_active = plan[survey.id]
        # One file replace, so the flags change together
        self._save(SURVEYS_KEY, surveys)

    # --- Survey responses ---

    async def submit_survey_response(
        self,
        answers: Dict[str, Any],
        owner_id: Optional[str] = None,
        survey_id: Optional[str] = None,
    ) -> str:
        responses = self._load(RESPONSES_KEY, SurveyResponse, "survey response")
        response = SurveyResponse(
            id=f"local_{uuid.uuid4().hex[:12]}",
            answers=answers,
            submitted_at=utcnow(),
            owner_id=owner_id,
            survey_id=survey_id,
        )
        responses.append(response)
        self._save(RESPONSES_KEY, responses)
        return response.id

    async def get_all_survey_responses(self, owner_id: Optional[str] = None) -> List[SurveyResponse]:
        responses = self._load(RESPONSES_KEY, SurveyResponse, "survey response")
        if owner_id is not None:
            responses = [r for r in responses if r.owner_id in (owner_id, None)]
        return sorted(responses, key=lambda r: r.submitted_at or datetime.min, reverse=True)

    async def delete_survey_response(
        self, response_id: str, owner_id: Optional[str] = None
    ) -> None:
        responses = self._load(RESPONSES_KEY, SurveyResponse, "survey response")
        if owner_id is not None:
            _require_visible(responses, response_id, owner_id, "Survey response")
        self._save(RESPONSES_KEY, [r for r in responses if r.id != response_id])

    # --- Menu sections ---

    async def get_all_menu_sections(self, owner_id: Optional[str] = None) -> List[MenuSection]:
        menus = self._load(MENUS_KEY, MenuSection, "menu")
        if owner_id is not None:
            menus = [m for m in menus if m.owner_id in (owner_id, None)]
        return sorted(menus, key=lambda m: m.created_at, reverse=True)

    async def save_menu_section(self, menu: MenuSection) -> None:
        if not menu.id:
            menu.id = uuid.uuid4().hex
        menu.updated_at = utcnow()
        menus = [m for m in self._load(MENUS_KEY, MenuSection, "menu") if m.id != menu.id]
        menus.append(menu)
        self._save(MENUS_KEY, menus)

    async def delete_menu_section(self, menu_id: str) -> None:
        menus = self._load(MENUS_KEY, MenuSection, "menu")
        self._save(MENUS_KEY, [m for m in menus if m.id != menu_id])

    async def toggle_menu_active(self, menu_id: str) -> MenuSection:
        menus = self._load(MENUS_KEY, MenuSection, "menu")
        menu = next((m for m in menus if m.id == menu_id), None)
        if menu is None:
            raise NotFoundError(f"Menu {menu_id} not found")
        menu.is_active = not menu.is_active
        menu.updated_at = utcnow()
        self._save(MENUS_KEY, menus)
        return menu
