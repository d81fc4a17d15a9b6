"""create canonical experience, bullet and skill tables

Revision ID: b8d2f3e4a5c6
Revises: a7c1e2d3f4b5
Create Date: 2026-10-02 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects.postgresql import ARRAY, UUID

revision: str = "b8d2f3e4a5c6"
down_revision: Union[str, None] = "a7c1e2d3f4b5"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "canonical_experiences",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("normalized_company", sa.Text(), nullable=False),
        sa.Column("display_company", sa.Text(), nullable=False),
        sa.Column("primary_title", sa.Text(), nullable=False, server_default=""),
        sa.Column("title_progression", ARRAY(sa.Text()), server_default="{}"),
        sa.Column("primary_location", sa.Text()),
        sa.Column("locations", ARRAY(sa.Text()), server_default="{}"),
        sa.Column("start_date", sa.Text()),
        sa.Column("end_date", sa.Text()),
        sa.Column("is_current", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("source_experience_ids", ARRAY(UUID(as_uuid=True)), server_default="{}"),
        sa.Column("source_count", sa.Integer(), server_default="0"),
        sa.Column("bullet_count", sa.Integer(), server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    )
    op.create_index("ix_canonical_experiences_user_id", "canonical_experiences", ["user_id"])

    op.create_table(
        "canonical_experience_bullets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "canonical_experience_id",
            UUID(as_uuid=True),
            sa.ForeignKey("canonical_experiences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("representative_bullet_id", UUID(as_uuid=True)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source_bullet_ids", ARRAY(UUID(as_uuid=True)), server_default="{}"),
        sa.Column("source_count", sa.Integer(), server_default="1"),
        sa.Column("avg_similarity", sa.Float(), server_default="1"),
        sa.Column("origin", sa.Text(), server_default="canonical"),
        sa.Column("embedding", Vector(768)),
    )
    op.create_index(
        "ix_canonical_experience_bullets_user_id", "canonical_experience_bullets", ["user_id"]
    )
    op.create_index(
        "ix_canonical_experience_bullets_canonical_experience_id",
        "canonical_experience_bullets",
        ["canonical_experience_id", "position"],
    )

    op.create_table(
        "canonical_skills",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("controlled_key", sa.Text(), nullable=False),
        sa.Column("label", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), server_default="Other"),
        sa.Column("source_skill_ids", ARRAY(UUID(as_uuid=True)), server_default="{}"),
        sa.Column("source_count", sa.Integer(), server_default="1"),
        sa.Column("weight", sa.Integer(), server_default="0"),
    )
    op.create_index("ix_canonical_skills_user_id", "canonical_skills", ["user_id"])


def downgrade() -> None:
    op.drop_table("canonical_skills")
    op.drop_table("canonical_experience_bullets")
    op.drop_table("canonical_experiences")
