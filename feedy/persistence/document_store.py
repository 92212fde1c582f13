import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import aggregation
from ..database import create_db_and_tables, create_engine_and_sessions
from ..errors import NotFoundError, PersistenceError
from ..models import (
    FeedbackDocument,
    MenuSectionDocument,
    SurveyDocument,
    SurveyResponseDocument,
    UserDocument,
    new_document_id,
    row_to_document,
)
from ..schemas import (
    FeedbackEntry,
    FeedbackFilters,
    MenuSection,
    SurveyForm,
    SurveyResponse,
    UserProfile,
    utcnow,
)
from .base import BaseDatabase, decode_records

logger = logging.getLogger(__name__)


def _decode_row(row, model, source: str):
    if row is None:
        return None
    decoded = decode_records([(row.id, row_to_document(row))], model, source)
    return decoded[0] if decoded else None


class DocumentStoreDatabase(BaseDatabase):
    """Backend over a SQL database through SQLAlchemy's async engine.

    Each collection is one table; nested structures (questions, answers,
    dishes) live in JSON columns. Only owner equality and the fetch limit are
    pushed to the database, every other feedback predicate runs in memory.
    """

    backend_name = "document"

    def __init__(self, database_url: str, echo: bool = False, default_limit: int = 100):
        super().__init__(default_limit=default_limit)
        self.database_url = database_url
        self.echo = echo
        self.engine = None
        self.session_factory = None

    async def init(self) -> None:
        if self.engine is not None:
            return
        engine = None
        try:
            # Bad URLs and missing async drivers fail here, before any connection
            engine, session_factory = create_engine_and_sessions(self.database_url, echo=self.echo)
            await create_db_and_tables(engine)
        except (SQLAlchemyError, ImportError, OSError) as e:
            if engine is not None:
                await engine.dispose()
            raise PersistenceError(f"Document store unavailable: {e}") from e
        self.engine = engine
        self.session_factory = session_factory
        logger.info("Document store ready")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self.session_factory is None:
            await self.init()
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Document store operation failed: %s", e)
            raise PersistenceError(f"Document store operation failed: {e}") from e

    # --- User profiles ---

    async def create_user_profile(self, user: UserProfile) -> None:
        row = UserDocument(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            business_name=user.business_name,
            password_hash=user.password_hash,
        )
        async with self._session() as session:
            async with session.begin():
                await session.merge(row)

    async def get_user_profile(self, uid: str) -> Optional[UserProfile]:
        async with self._session() as session:
            row = await session.get(UserDocument, uid)
        return _decode_row(row, UserProfile, "user")

    # --- Feedback ---

    async def insert_feedback(self, feedback: FeedbackEntry) -> str:
        row = FeedbackDocument(
            id=new_document_id(),
            name=feedback.name,
            email=feedback.email,
            rating=feedback.rating,
            comments=feedback.comments,
            created_at=feedback.created_at,
            owner_id=feedback.owner_id,
            survey_id=feedback.survey_id,
        )
        async with self._session() as session:
            async with session.begin():
                session.add(row)
        logger.info("Stored feedback %s (rating %s)", row.id, row.rating)
        return row.id

    async def get_all_feedback(
        self, filters: Optional[FeedbackFilters] = None
    ) -> List[FeedbackEntry]:
        filters = self._filters(filters)
        stmt = select(FeedbackDocument)
        if filters.owner_id is not None:
            stmt = stmt.where(FeedbackDocument.owner_id == filters.owner_id)
        stmt = stmt.order_by(FeedbackDocument.created_at.desc()).limit(filters.limit)

        async with self._session() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()

        entries = decode_records(
            ((row.id, row_to_document(row)) for row in rows), FeedbackEntry, "feedback"
        )
        return aggregation.newest_first(aggregation.filter_feedback(entries, filters))

    async def delete_feedback(self, feedback_id: str, owner_id: Optional[str] = None) -> None:
        stmt = delete(FeedbackDocument).where(FeedbackDocument.id == feedback_id)
        if owner_id is not None:
            stmt = stmt.where(FeedbackDocument.owner_id == owner_id)
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(stmt)
        if owner_id is not None and result.rowcount == 0:
            raise NotFoundError(f"Feedback {feedback_id} not found")

    # --- Surveys ---

    @staticmethod
    def _survey_row(survey: SurveyForm) -> SurveyDocument:
        return SurveyDocument(
            id=survey.id,
            title=survey.title,
            questions=[q.model_dump(mode="json") for q in survey.questions],
            is_active=survey.is_active,
            created_at=survey.created_at,
            creator_id=survey.creator_id,
            tax_rate=survey.tax_rate,
            service_charge=survey.service_charge,
        )

    async def get_all_surveys(self, creator_id: Optional[str] = None) -> List[SurveyForm]:
        stmt = select(SurveyDocument)
        if creator_id is not None:
            stmt = stmt.where(SurveyDocument.creator_id == creator_id)
        stmt = stmt.order_by(SurveyDocument.created_at.desc())

        async with self._session() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        return decode_records(((row.id, row_to_document(row)) for row in rows), SurveyForm, "survey")

    async def get_survey(self, survey_id: str) -> Optional[SurveyForm]:
        async with self._session() as session:
            row = await session.get(SurveyDocument, survey_id)
        return _decode_row(row, SurveyForm, "survey")

    async def save_survey(self, survey: SurveyForm) -> None:
        if not survey.id:
            survey.id = new_document_id()
        async with self._session() as session:
            async with session.begin():
                await session.merge(self._survey_row(survey))

    async def delete_survey(self, survey_id: str) -> None:
        async with self._session() as session:
            async with session.begin():
                await session.execute(delete(SurveyDocument).where(SurveyDocument.id == survey_id))

    async def activate_survey(self, survey_id: str) -> None:
        # All flag changes commit together or not at all
        async with self._session() as session:
            async with session.begin():
                target = await session.get(SurveyDocument, survey_id)
                if target is None:
                    raise NotFoundError(f"Survey {survey_id} not found")
                should_activate = not target.is_active

                result = await session.execute(
                    select(SurveyDocument).where(SurveyDocument.creator_id == target.creator_id)
                )
                for row in result.scalars().all():
                    row.is_active = should_activate and row.id == survey_id
        logger.info("Survey %s is now %s", survey_id, "active" if should_activate else "inactive")

    # --- Survey responses ---

    async def submit_survey_response(
        self,
        answers: Dict[str, Any],
        owner_id: Optional[str] = None,
        survey_id: Optional[str] = None,
    ) -> str:
        row = SurveyResponseDocument(
            id=new_document_id(),
            answers={str(key): value for key, value in answers.items()},
            submitted_at=utcnow(),
            owner_id=owner_id,
            survey_id=survey_id,
        )
        async with self._session() as session:
            async with session.begin():
                session.add(row)
        return row.id

    async def get_all_survey_responses(self, owner_id: Optional[str] = None) -> List[SurveyResponse]:
        stmt = select(SurveyResponseDocument)
        if owner_id is not None:
            stmt = stmt.where(SurveyResponseDocument.owner_id == owner_id)
        stmt = stmt.order_by(SurveyResponseDocument.submitted_at.desc())

        async with self._session() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        return decode_records(
            ((row.id, row_to_document(row)) for row in rows), SurveyResponse, "survey response"
        )

    async def delete_survey_response(
        self, response_id: str, owner_id: Optional[str] = None
    ) -> None:
        stmt = delete(SurveyResponseDocument).where(SurveyResponseDocument.id == response_id)
        if owner_id is not None:
            stmt = stmt.where(SurveyResponseDocument.owner_id == owner_id)
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(stmt)
        if owner_id is not None and result.rowcount == 0:
            raise NotFoundError(f"Survey response {response_id} not found")

    # --- Menu sections ---

    async def get_all_menu_sections(self, owner_id: Optional[str] = None) -> List[MenuSection]:
        stmt = select(MenuSectionDocument)
        if owner_id is not None:
            stmt = stmt.where(MenuSectionDocument.owner_id == owner_id)
        stmt = stmt.order_by(MenuSectionDocument.created_at.desc())

        async with self._session() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        return decode_records(((row.id, row_to_document(row)) for row in rows), MenuSection, "menu")

    async def save_menu_section(self, menu: MenuSection) -> None:
        if not menu.id:
            menu.id = new_document_id()
        menu.updated_at = utcnow()
        row = MenuSectionDocument(
            id=menu.id,
            title=menu.title,
            description=menu.description,
            dishes=[dish.model_dump(mode="json", by_alias=True) for dish in menu.dishes],
            is_active=menu.is_active,
            created_at=menu.created_at,
            updated_at=menu.updated_at,
            owner_id=menu.owner_id,
        )
        async with self._session() as session:
            async with session.begin():
                await session.merge(row)

    async def delete_menu_section(self, menu_id: str) -> None:
        async with self._session() as session:
            async with session.begin():
                await session.execute(
                    delete(MenuSectionDocument).where(MenuSectionDocument.id == menu_id)
                )

    async def toggle_menu_active(self, menu_id: str) -> MenuSection:
        async with self._session() as session:
            async with session.begin():
                row = await session.get(MenuSectionDocument, menu_id)
                if row is None:
                    raise NotFoundError(f"Menu {menu_id} not found")
                row.is_active = not row.is_active
                row.updated_at = utcnow()
            document = row_to_document(row)
        return MenuSection.model_validate(document)
