import uuid
from typing import Any, Dict

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text

from .database import Base


def new_document_id() -> str:
    return uuid.uuid4().hex


def row_to_document(row) -> Dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


class FeedbackDocument(Base):
    __tablename__ = "feedback"

    id = Column(String(64), primary_key=True, default=new_document_id)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    rating = Column(Integer)
    comments = Column(Text)
    created_at = Column(DateTime, index=True)
    owner_id = Column(String, index=True, nullable=True)
    survey_id = Column(String, nullable=True)


class SurveyDocument(Base):
    __tablename__ = "surveys"

    id = Column(String(64), primary_key=True, default=new_document_id)
    title = Column(String)
    questions = Column(JSON, nullable=True)  # ordered list of question documents
    is_active = Column(Boolean, default=False)
    created_at = Column(DateTime)
    creator_id = Column(String, index=True, nullable=True)
    tax_rate = Column(Float, nullable=True)
    service_charge = Column(Float, nullable=True)


class SurveyResponseDocument(Base):
    __tablename__ = "survey_responses"

    id = Column(String(64), primary_key=True, default=new_document_id)
    answers = Column(JSON)  # question id -> answer value
    submitted_at = Column(DateTime, index=True)
    owner_id = Column(String, index=True, nullable=True)
    survey_id = Column(String, nullable=True)


class MenuSectionDocument(Base):
    __tablename__ = "menu_sections"

    id = Column(String(64), primary_key=True, default=new_document_id)
    title = Column(String)
    description = Column(Text, nullable=True)
    dishes = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
    owner_id = Column(String, index=True, nullable=True)


class UserDocument(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    name = Column(String)
    email = Column(String, index=True)
    phone = Column(String, nullable=True)
    business_name = Column(String, nullable=True)
    # Salted hash only, see UserCreate.to_profile
    password_hash = Column(String, nullable=True)
