"""create_feedy_collections

Revision ID: 5c2e9a7d1b40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c2e9a7d1b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "feedback",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("owner_id", sa.String(), nullable=True),
        sa.Column("survey_id", sa.String(), nullable=True),
    )
    op.create_index("ix_feedback_created_at", "feedback", ["created_at"])
    op.create_index("ix_feedback_owner_id", "feedback", ["owner_id"])

    op.create_table(
        "surveys",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("questions", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("creator_id", sa.String(), nullable=True),
        sa.Column("tax_rate", sa.Float(), nullable=True),
        sa.Column("service_charge", sa.Float(), nullable=True),
    )
    op.create_index("ix_surveys_creator_id", "surveys", ["creator_id"])

    op.create_table(
        "survey_responses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("owner_id", sa.String(), nullable=True),
        sa.Column("survey_id", sa.String(), nullable=True),
    )
    op.create_index("ix_survey_responses_submitted_at", "survey_responses", ["submitted_at"])
    op.create_index("ix_survey_responses_owner_id", "survey_responses", ["owner_id"])

    op.create_table(
        "menu_sections",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("dishes", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("owner_id", sa.String(), nullable=True),
    )
    op.create_index("ix_menu_sections_owner_id", "menu_sections", ["owner_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("business_name", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"])


def downgrade() -> None:
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_menu_sections_owner_id", table_name="menu_sections")
    op.drop_table("menu_sections")
    op.drop_index("ix_survey_responses_owner_id", table_name="survey_responses")
    op.drop_index("ix_survey_responses_submitted_at", table_name="survey_responses")
    op.drop_table("survey_responses")
    op.drop_index("ix_surveys_creator_id", table_name="surveys")
    op.drop_table("surveys")
    op.drop_index("ix_feedback_owner_id", table_name="feedback")
    op.drop_index("ix_feedback_created_at", table_name="feedback")
    op.drop_table("feedback")
