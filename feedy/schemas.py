import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def utcnow() -> datetime:
    """Current time as naive UTC, the form every stored timestamp uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_datetime_lenient(value: Any) -> datetime:
    # Menu documents written by older clients carry arbitrary date strings
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if value is None:
        return utcnow()
    try:
        return to_naive_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return utcnow()


def _id_to_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# Stored ids may come back as numbers from older records
RecordId = Annotated[str, BeforeValidator(_id_to_str)]


# --- Feedback ---


class FeedbackEntry(BaseModel):
    """A single feedback submission as stored in the `feedback` collection."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[RecordId] = None
    name: Optional[str] = None
    email: Optional[str] = None
    rating: int
    comments: str
    created_at: datetime
    owner_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("owner_id", "ownerId")
    )
    survey_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("survey_id", "surveyId")
    )

    @field_validator("created_at")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})


class FeedbackCreate(BaseModel):
    """Public submission. Rejects bad input before anything is persisted."""

    name: Optional[str] = None
    email: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comments: str
    owner_id: Optional[str] = None
    survey_id: Optional[str] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not EMAIL_PATTERN.match(v):
            raise ValueError("email address is not valid")
        return v

    @field_validator("comments")
    @classmethod
    def check_comments(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("comments must not be empty")
        return v.strip()

    def to_entry(self) -> FeedbackEntry:
        return FeedbackEntry(
            name=self.name,
            email=self.email,
            rating=self.rating,
            comments=self.comments,
            created_at=utcnow(),
            owner_id=self.owner_id,
            survey_id=self.survey_id,
        )


class FeedbackFilters(BaseModel):
    min_rating: Optional[int] = None
    max_rating: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    owner_id: Optional[str] = None
    limit: int = Field(default=100, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class TrendPoint(BaseModel):
    date: str
    count: int
    avg_rating: float


class DashboardStats(BaseModel):
    total: int
    average_rating: float
    rating_distribution: Dict[int, int]
    trends: List[TrendPoint] = []


# --- Surveys ---


class QuestionType(str, Enum):
    TEXT = "text"
    RATING = "rating"
    SINGLE_CHOICE = "singleChoice"
    MULTIPLE_CHOICE = "multipleChoice"


class Question(BaseModel):
    id: RecordId = ""
    title: str = ""
    type: QuestionType = QuestionType.TEXT
    options: List[str] = Field(default_factory=list)
    required: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("type", mode="before")
    @classmethod
    def unknown_type_is_text(cls, v):
        if isinstance(v, QuestionType):
            return v
        try:
            return QuestionType(v)
        except ValueError:
            return QuestionType.TEXT

    @field_validator("options", mode="before")
    @classmethod
    def options_as_strings(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            v = list(v.values())
        return [str(option) for option in v]


class SurveyForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: RecordId = ""
    title: str = "Untitled Survey"
    questions: List[Question] = Field(default_factory=list)
    is_active: bool = Field(default=False, alias="isActive")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    creator_id: Optional[str] = Field(default=None, alias="creatorId")
    # Carried over from stored documents, no behaviour attached
    tax_rate: Optional[float] = Field(default=None, alias="taxRate")
    service_charge: Optional[float] = Field(default=None, alias="serviceCharge")

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v):
        return v or "Untitled Survey"

    @field_validator("questions", mode="before")
    @classmethod
    def questions_from_list_or_map(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            # Tree-store layout: {question_id: {...}} with a position field
            items = []
            for index, (key, value) in enumerate(v.items()):
                if not isinstance(value, dict):
                    continue
                question = dict(value)
                if not question.get("id"):
                    question["id"] = str(key)
                items.append((question.get("position", index), question))
            items.sort(key=lambda item: item[0])
            return [question for _, question in items]
        return [q for q in v if q is not None]

    @field_validator("created_at")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Survey responses ---

RESPONSE_METADATA_FIELDS = {
    "id",
    "answers",
    "submittedAt",
    "submitted_at",
    "ownerId",
    "owner_id",
    "surveyId",
    "survey_id",
    "userName",
    "userEmail",
}


class SurveyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[RecordId] = None
    answers: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("submittedAt", "submitted_at"),
        serialization_alias="submittedAt",
    )
    owner_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("owner_id", "ownerId")
    )
    survey_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("survey_id", "surveyId")
    )

    @model_validator(mode="before")
    @classmethod
    def answers_at_root(cls, data):
        # Early responses were written with the answers spread over the record itself
        if isinstance(data, dict) and not isinstance(data.get("answers"), dict):
            data = dict(data)
            data["answers"] = {
                str(key): value
                for key, value in data.items()
                if key not in RESPONSE_METADATA_FIELDS
            }
        return data

    @field_validator("answers", mode="before")
    @classmethod
    def string_keys(cls, v):
        if isinstance(v, dict):
            return {str(key): value for key, value in v.items()}
        return v

    @field_validator("submitted_at")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class SurveyResponseCreate(BaseModel):
    answers: Dict[str, Any]
    survey_id: Optional[str] = None

    @field_validator("answers")
    @classmethod
    def not_empty(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("at least one answer is required")
        return v


# --- Menus ---


class MenuDish(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: RecordId = ""
    name: str = ""
    description: str = ""
    price: float = 0.0
    is_available: bool = Field(default=True, alias="isAvailable")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @field_validator("name", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("price", mode="before")
    @classmethod
    def lenient_price(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return float(v)
        try:
            return float(str(v))
        except (TypeError, ValueError):
            return 0.0

    @field_validator("is_available", mode="before")
    @classmethod
    def lenient_bool(cls, v):
        if v is None:
            return True
        if isinstance(v, bool):
            return v
        return str(v).lower() == "true"

    @field_validator("created_at", mode="before")
    @classmethod
    def lenient_datetime(cls, v):
        return _parse_datetime_lenient(v)


class MenuSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: RecordId = ""
    title: str = "Untitled Menu"
    description: str = ""
    dishes: List[MenuDish] = Field(default_factory=list)
    is_active: bool = Field(default=False, alias="isActive")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    owner_id: Optional[str] = Field(default=None, alias="ownerId")

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v):
        return str(v) if v else "Untitled Menu"

    @field_validator("description", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("is_active", mode="before")
    @classmethod
    def truthy_active(cls, v):
        return v is True or v == "true"

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def lenient_datetime(cls, v):
        return _parse_datetime_lenient(v)

    @field_validator("dishes", mode="before")
    @classmethod
    def dishes_from_list_or_map(cls, v):
        if v is None:
            return []
        if isinstance(v, dict):
            raw = []
            for key, value in v.items():
                if isinstance(value, dict):
                    dish = dict(value)
                    if not dish.get("id"):
                        dish["id"] = str(key)
                    raw.append(dish)
        elif isinstance(v, list):
            raw = [d for d in v if isinstance(d, (dict, MenuDish))]
        else:
            logger.warning("Ignoring dishes of unexpected type %s", type(v).__name__)
            return []

        dishes = []
        for dish in raw:
            if isinstance(dish, MenuDish):
                dishes.append(dish)
                continue
            try:
                dishes.append(MenuDish.model_validate(dish))
            except ValidationError as e:
                logger.warning("Skipping invalid dish %s: %s", dish.get("id"), e)
        return dishes

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Users ---


class UserProfile(BaseModel):
    id: Optional[RecordId] = None
    name: str = ""
    email: str = ""
    phone: str = ""
    business_name: str = ""
    password_hash: Optional[str] = None

    @field_validator("name", "email", "phone", "business_name", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class UserProfilePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[RecordId] = None
    name: str
    email: str
    phone: str
    business_name: str


class UserCreate(BaseModel):
    """Sign-up / profile edit payload. The password never leaves this object unhashed."""

    name: str = Field(..., min_length=1)
    email: str
    phone: str = ""
    business_name: str = ""
    password: Optional[str] = Field(default=None, min_length=6)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("email address is not valid")
        return v

    def to_profile(self, user_id: str, existing: Optional[UserProfile] = None) -> UserProfile:
        password_hash = existing.password_hash if existing else None
        if self.password:
            password_hash = generate_password_hash(self.password)
        return UserProfile(
            id=user_id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            business_name=self.business_name,
            password_hash=password_hash,
        )


# --- API responses ---


class FeedbackCreateResponse(BaseModel):
    feedback_id: str
    message: str = "Thank you for your feedback."


class SurveyResponseCreated(BaseModel):
    response_id: str
    message: str = "Survey response saved."


class SurveySaveResponse(BaseModel):
    survey_id: str
    message: str = "Survey saved."


class MenuSaveResponse(BaseModel):
    menu_id: str
    message: str = "Menu saved."


class DeleteResponse(BaseModel):
    id: str
    message: str


class InsightsResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    report: str
    model_used: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    backend: str
