import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

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

FEEDBACK_PATH = "feedback"
SURVEYS_PATH = "surveys"
RESPONSES_PATH = "survey_responses"
MENUS_PATH = "menu_sections"
USERS_PATH = "users"


class TreeStoreClient:
    """Minimal async client for a JSON tree served over the Realtime Database REST dialect.

    Every node is addressed as ``{base_url}/{path}.json``. Window queries use
    ``orderBy``/``limitToLast`` whose values are JSON-encoded, as the dialect
    requires.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @staticmethod
    def _node_url(path: str) -> str:
        return f"/{path.strip('/')}.json"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
    ) -> Any:
        params = dict(params or {})
        if self.auth_token:
            params["auth"] = self.auth_token
        try:
            response = await self._client.request(
                method,
                self._node_url(path),
                params=params,
                json=payload if method in ("PUT", "POST", "PATCH") else None,
            )
        except httpx.HTTPError as e:
            logger.error("Tree store %s %s failed: %s", method, path, e)
            raise PersistenceError(f"Tree store unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise PersistenceError(f"Tree store denied access to {path} ({response.status_code})")
        if not response.is_success:
            logger.error("Tree store %s %s returned %s: %s", method, path, response.status_code, response.text)
            raise PersistenceError(
                f"Tree store returned {response.status_code} for {method} {path}"
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError(f"Tree store sent invalid JSON for {path}") from e

    async def get(
        self,
        path: str,
        order_by: Optional[str] = None,
        limit_to_last: Optional[int] = None,
        shallow: bool = False,
    ) -> Any:
        params: Dict[str, str] = {}
        if order_by is not None:
            params["orderBy"] = json.dumps(order_by)
        if limit_to_last is not None:
            params["limitToLast"] = str(limit_to_last)
        if shallow:
            params["shallow"] = "true"
        return await self._request("GET", path, params=params)

    async def put(self, path: str, value: Any) -> None:
        await self._request("PUT", path, payload=value)

    async def post(self, path: str, value: Any) -> str:
        """Appends under a generated push key and returns that key."""
        result = await self._request("POST", path, payload=value)
        if not isinstance(result, dict) or "name" not in result:
            raise PersistenceError(f"Tree store did not return a key for {path}")
        return result["name"]

    async def patch(self, path: str, updates: Dict[str, Any]) -> None:
        # Keys may be relative paths ("abc/isActive") for multi-location updates
        await self._request("PATCH", path, payload=updates)

    async def delete(self, path: str) -> None:
        await self._request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()


def _children(node: Any) -> List[tuple]:
    # Lists come back when every key is a small integer
    if isinstance(node, dict):
        return list(node.items())
    if isinstance(node, list):
        return [(str(index), value) for index, value in enumerate(node) if value is not None]
    return []


def survey_to_tree(survey: SurveyForm) -> Dict[str, Any]:
    """Survey document with questions keyed by id, plus the web viewer's mirror fields.

    Questions without an id get one assigned on the model itself, so the
    caller sees the key that was written. Duplicate ids would collapse into
    one map entry and raise `ValueError` instead.
    """
    document = survey.to_document()
    questions: Dict[str, Any] = {}
    for position, question in enumerate(survey.questions):
        if not question.id:
            question.id = uuid.uuid4().hex[:12]
        if question.id in questions:
            raise ValueError(f"Duplicate question id '{question.id}' in survey {survey.id}")
        entry = question.model_dump(mode="json")
        entry.update(position=position, value=question.id, text=question.title)
        questions[question.id] = entry
    document["questions"] = questions
    return document


class TreeStoreDatabase(BaseDatabase):
    """Backend over a path-addressed JSON tree.

    There is no compound query support: feedback is read as the last
    ``limit`` nodes ordered by ``created_at`` and every other predicate is
    applied in memory. Survey activation is a single multi-path PATCH with
    no rollback.
    """

    backend_name = "tree"

    def __init__(self, client: TreeStoreClient, default_limit: int = 100):
        super().__init__(default_limit=default_limit)
        self.client = client

    async def init(self) -> None:
        await self.client.get("", shallow=True)
        logger.info("Tree store reachable at %s", self.client.base_url)

    async def close(self) -> None:
        await self.client.aclose()

    # --- User profiles ---

    async def create_user_profile(self, user: UserProfile) -> None:
        await self.client.put(f"{USERS_PATH}/{user.id}", user.to_document())

    async def get_user_profile(self, uid: str) -> Optional[UserProfile]:
        data = await self.client.get(f"{USERS_PATH}/{uid}")
        if not data:
            return None
        users = decode_records([(uid, data)], UserProfile, "user")
        return users[0] if users else None

    # --- Feedback ---

    async def insert_feedback(self, feedback: FeedbackEntry) -> str:
        key = await self.client.post(FEEDBACK_PATH, feedback.to_document())
        logger.info("Stored feedback %s (rating %s)", key, feedback.rating)
        return key

    async def get_all_feedback(
        self, filters: Optional[FeedbackFilters] = None
    ) -> List[FeedbackEntry]:
        filters = self._filters(filters)
        data = await self.client.get(
            FEEDBACK_PATH, order_by="created_at", limit_to_last=filters.limit
        )
        entries = decode_records(_children(data), FeedbackEntry, "feedback")
        return aggregation.newest_first(aggregation.filter_feedback(entries, filters))

    async def _check_owner(self, path: str, model, source: str, owner_id: Optional[str]) -> None:
        data = await self.client.get(path)
        records = decode_records([(path.rsplit("/", 1)[-1], data)], model, source) if data else []
        if not records or records[0].owner_id != owner_id:
            raise NotFoundError(f"{source.capitalize()} {path} not found")

    async def delete_feedback(self, feedback_id: str, owner_id: Optional[str] = None) -> None:
        path = f"{FEEDBACK_PATH}/{feedback_id}"
        if owner_id is not None:
            # Read-check-delete, not atomic
            await self._check_owner(path, FeedbackEntry, "feedback", owner_id)
        await self.client.delete(path)

    # --- Surveys ---

    async def _read_surveys(self) -> List[SurveyForm]:
        data = await self.client.get(SURVEYS_PATH)
        return decode_records(_children(data), SurveyForm, "survey")

    async def get_all_surveys(self, creator_id: Optional[str] = None) -> List[SurveyForm]:
        surveys = await self._read_surveys()
        if creator_id is not None:
            surveys = [s for s in surveys if s.creator_id == creator_id]
        return sorted(surveys, key=lambda s: s.created_at, reverse=True)

    async def get_survey(self, survey_id: str) -> Optional[SurveyForm]:
        data = await self.client.get(f"{SURVEYS_PATH}/{survey_id}")
        surveys = decode_records([(survey_id, data)], SurveyForm, "survey") if data else []
        return surveys[0] if surveys else None

    async def save_survey(self, survey: SurveyForm) -> None:
        if not survey.id:
            survey.id = uuid.uuid4().hex
        await self.client.put(f"{SURVEYS_PATH}/{survey.id}", survey_to_tree(survey))

    async def delete_survey(self, survey_id: str) -> None:
        await self.client.delete(f"{SURVEYS_PATH}/{survey_id}")

    async def activate_survey(self, survey_id: str) -> None:
        plan = activation_plan(await self._read_surveys(), survey_id)
        # Not atomic: a store that applies part of this patch leaves it applied
        await self.client.patch(
            SURVEYS_PATH, {f"{sid}/isActive": active for sid, active in plan.items()}
        )
        logger.info("Survey %s is now %s", survey_id, "active" if plan[survey_id] else "inactive")

    # --- Survey responses ---

    async def submit_survey_response(
        self,
        answers: Dict[str, Any],
        owner_id: Optional[str] = None,
        survey_id: Optional[str] = None,
    ) -> str:
        response = SurveyResponse(
            answers=answers, submitted_at=utcnow(), owner_id=owner_id, survey_id=survey_id
        )
        return await self.client.post(RESPONSES_PATH, response.to_document())

    async def get_all_survey_responses(self, owner_id: Optional[str] = None) -> List[SurveyResponse]:
        data = await self.client.get(RESPONSES_PATH)
        responses = decode_records(_children(data), SurveyResponse, "survey response")
        if owner_id is not None:
            responses = [r for r in responses if r.owner_id == owner_id]
        return sorted(responses, key=lambda r: r.submitted_at or datetime.min, reverse=True)

    async def delete_survey_response(
        self, response_id: str, owner_id: Optional[str] = None
    ) -> None:
        path = f"{RESPONSES_PATH}/{response_id}"
        if owner_id is not None:
            await self._check_owner(path, SurveyResponse, "survey response", owner_id)
        await self.client.delete(path)

    # --- Menu sections ---

    async def get_all_menu_sections(self, owner_id: Optional[str] = None) -> List[MenuSection]:
        data = await self.client.get(MENUS_PATH)
        menus = decode_records(_children(data), MenuSection, "menu")
        if owner_id is not None:
            menus = [m for m in menus if m.owner_id == owner_id]
        return sorted(menus, key=lambda m: m.created_at, reverse=True)

    async def save_menu_section(self, menu: MenuSection) -> None:
        if not menu.id:
            menu.id = uuid.uuid4().hex
        menu.updated_at = utcnow()
        await self.client.put(f"{MENUS_PATH}/{menu.id}", menu.to_document())

    async def delete_menu_section(self, menu_id: str) -> None:
        await self.client.delete(f"{MENUS_PATH}/{menu_id}")

    async def toggle_menu_active(self, menu_id: str) -> MenuSection:
        data = await self.client.get(f"{MENUS_PATH}/{menu_id}")
        menus = decode_records([(menu_id, data)], MenuSection, "menu") if data else []
        if not menus:
            raise NotFoundError(f"Menu {menu_id} not found")
        menu = menus[0]
        menu.is_active = not menu.is_active
        menu.updated_at = utcnow()
        await self.client.patch(
            f"{MENUS_PATH}/{menu_id}",
            {"isActive": menu.is_active, "updatedAt": menu.updated_at.isoformat()},
        )
        return menu
