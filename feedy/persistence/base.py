import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .. import aggregation
from ..errors import NotFoundError
from ..schemas import (
    DashboardStats,
    FeedbackEntry,
    FeedbackFilters,
    MenuSection,
    SurveyForm,
    SurveyResponse,
    TrendPoint,
    UserProfile,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def decode_records(
    records: Iterable[Tuple[str, Any]], model: Type[ModelT], source: str
) -> List[ModelT]:
    """Turns raw (key, document) pairs into entities.

    A record that does not decode is logged and skipped so one corrupt entry
    never fails the whole read.
    """
    decoded: List[ModelT] = []
    for key, data in records:
        if not isinstance(data, dict):
            logger.warning("Skipping %s record %s: unexpected shape %s", source, key, type(data).__name__)
            continue
        document = dict(data)
        document["id"] = str(key)
        try:
            decoded.append(model.model_validate(document))
        except ValidationError as e:
            logger.warning("Skipping malformed %s record %s: %s", source, key, e)
    return decoded


def activation_plan(surveys: List[SurveyForm], survey_id: str) -> Dict[str, bool]:
    """New `is_active` value for the target survey and each of its siblings.

    Activating an inactive survey deactivates every other survey of the same
    creator; activating the already-active survey switches it off.
    """
    target = next((s for s in surveys if s.id == survey_id), None)
    if target is None:
        raise NotFoundError(f"Survey {survey_id} not found")
    should_activate = not target.is_active
    return {
        s.id: should_activate and s.id == survey_id
        for s in surveys
        if s.creator_id == target.creator_id
    }


class BaseDatabase(ABC):
    """Contract every backend satisfies.

    All methods are coroutines. Connectivity or permission problems raise
    `PersistenceError`; operations addressing a missing record raise
    `NotFoundError`. Owner context is passed explicitly on every call.
    """

    backend_name = "base"

    def __init__(self, default_limit: int = 100):
        self.default_limit = default_limit

    def _filters(self, filters: Optional[FeedbackFilters]) -> FeedbackFilters:
        if filters is None:
            return FeedbackFilters(limit=self.default_limit)
        return filters

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # --- User profiles ---

    @abstractmethod
    async def create_user_profile(self, user: UserProfile) -> None: ...

    @abstractmethod
    async def get_user_profile(self, uid: str) -> Optional[UserProfile]: ...

    async def update_user_profile(self, user: UserProfile) -> None:
        await self.create_user_profile(user)

    # --- Feedback ---

    @abstractmethod
    async def insert_feedback(self, feedback: FeedbackEntry) -> str: ...

    @abstractmethod
    async def get_all_feedback(
        self, filters: Optional[FeedbackFilters] = None
    ) -> List[FeedbackEntry]:
        """Newest first, at most `filters.limit` entries fetched before filtering."""

    @abstractmethod
    async def delete_feedback(self, feedback_id: str, owner_id: Optional[str] = None) -> None:
        """With `owner_id`, raises `NotFoundError` unless the entry exists and belongs to that owner."""

    async def get_feedback_count(self, filters: Optional[FeedbackFilters] = None) -> int:
        return len(await self.get_all_feedback(filters))

    async def get_rating_distribution(
        self, filters: Optional[FeedbackFilters] = None
    ) -> Dict[int, int]:
        return aggregation.rating_distribution(await self.get_all_feedback(filters))

    async def get_trends_data(
        self, filters: Optional[FeedbackFilters] = None
    ) -> List[TrendPoint]:
        return aggregation.trends_by_date(await self.get_all_feedback(filters))

    async def get_average_rating(self, filters: Optional[FeedbackFilters] = None) -> float:
        return aggregation.average_rating(await self.get_all_feedback(filters))

    async def get_dashboard_stats(
        self, filters: Optional[FeedbackFilters] = None
    ) -> DashboardStats:
        entries = await self.get_all_feedback(filters)
        return DashboardStats(
            total=len(entries),
            average_rating=aggregation.average_rating(entries),
            rating_distribution=aggregation.rating_distribution(entries),
            trends=aggregation.trends_by_date(entries),
        )

    # --- Surveys ---

    @abstractmethod
    async def get_all_surveys(self, creator_id: Optional[str] = None) -> List[SurveyForm]: ...

    @abstractmethod
    async def get_survey(self, survey_id: str) -> Optional[SurveyForm]: ...

    @abstractmethod
    async def save_survey(self, survey: SurveyForm) -> None: ...

    @abstractmethod
    async def delete_survey(self, survey_id: str) -> None: ...

    @abstractmethod
    async def activate_survey(self, survey_id: str) -> None: ...

    async def get_active_survey(self, creator_id: Optional[str] = None) -> Optional[SurveyForm]:
        surveys = await self.get_all_surveys(creator_id=creator_id)
        return next((s for s in surveys if s.is_active), None)

    # --- Survey responses ---

    @abstractmethod
    async def submit_survey_response(
        self,
        answers: Dict[str, Any],
        owner_id: Optional[str] = None,
        survey_id: Optional[str] = None,
    ) -> str: ...

    @abstractmethod
    async def get_all_survey_responses(
        self, owner_id: Optional[str] = None
    ) -> List[SurveyResponse]: ...

    @abstractmethod
    async def delete_survey_response(
        self, response_id: str, owner_id: Optional[str] = None
    ) -> None:
        """Same ownership rule as `delete_feedback`."""

    # --- Menu sections ---

    @abstractmethod
    async def get_all_menu_sections(self, owner_id: Optional[str] = None) -> List[MenuSection]: ...

    @abstractmethod
    async def save_menu_section(self, menu: MenuSection) -> None: ...

    @abstractmethod
    async def delete_menu_section(self, menu_id: str) -> None: ...

    @abstractmethod
    async def toggle_menu_active(self, menu_id: str) -> MenuSection: ...

    async def get_active_menu_sections(self, owner_id: Optional[str] = None) -> List[MenuSection]:
        return [m for m in await self.get_all_menu_sections(owner_id=owner_id) if m.is_active]
