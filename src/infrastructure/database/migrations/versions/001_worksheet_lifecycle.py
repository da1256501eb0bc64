# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Create worksheet lifecycle tables.

This migration creates the content store for therapy worksheets:
- worksheets: generated worksheets, lifecycle status, rating and lineage
- worksheet_images: per-image generation status
- worksheet_assignments: therapist to caregiver assignments
- worksheet_completions: completion records (unique per assignment)
- worksheet_reviews: one review per (worksheet, user)
- worksheet_flags: moderation reports (one pending per reporter)
- screening_domain_scores: screening provider domain scores

Revision ID: 001_worksheet_lifecycle
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_worksheet_lifecycle"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create worksheet tables."""

    # =========================================================================
    # worksheets
    # =========================================================================
    op.create_table(
        "worksheets",
        _id_column(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("sub_type", sa.String(50), nullable=True),
        sa.Column("difficulty", sa.String(20), nullable=False),
        sa.Column("color_mode", sa.String(20), nullable=False, server_default="full_color"),
        sa.Column("data_source", sa.String(30), nullable=False, server_default="manual"),
        sa.Column(
            "content",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "target_domains",
            postgresql.ARRAY(sa.String(50)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "condition_tags",
            postgresql.ARRAY(sa.String(50)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("age_range_min", sa.Integer(), nullable=True),
        sa.Column("age_range_max", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="generating"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("contributor_notes", sa.Text(), nullable=True),
        sa.Column("average_rating", sa.Float(), nullable=True),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cloned_from_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("clone_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("parent_version_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("child_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("case_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("screening_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("pdf_url", sa.String(1024), nullable=True),
        sa.Column("preview_url", sa.String(1024), nullable=True),
        sa.Column("generation_error", sa.Text(), nullable=True),
        sa.Column("generation_started_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["cloned_from_id"], ["worksheets.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["parent_version_id"], ["worksheets.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_worksheets_status", "worksheets", ["status"])
    op.create_index("ix_worksheets_created_by_id", "worksheets", ["created_by_id"])
    op.create_index("ix_worksheets_child_id", "worksheets", ["child_id"])
    op.create_index("ix_worksheets_parent_version_id", "worksheets", ["parent_version_id"])
    op.create_index("ix_worksheets_public_status", "worksheets", ["is_public", "status"])

    # =========================================================================
    # worksheet_images
    # =========================================================================
    op.create_table(
        "worksheet_images",
        _id_column(),
        sa.Column("worksheet_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("alt_text", sa.String(500), nullable=False, server_default=""),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("image_url", sa.String(1024), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_worksheet_images_worksheet_id", "worksheet_images", ["worksheet_id"])

    # =========================================================================
    # worksheet_assignments
    # =========================================================================
    op.create_table(
        "worksheet_assignments",
        _id_column(),
        sa.Column("worksheet_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("assigned_by_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("assigned_to_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("child_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("case_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="assigned"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("parent_notes", sa.Text(), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"]),
    )
    op.create_index("ix_worksheet_assignments_worksheet_id", "worksheet_assignments", ["worksheet_id"])
    op.create_index("ix_worksheet_assignments_assigned_by_id", "worksheet_assignments", ["assigned_by_id"])
    op.create_index("ix_worksheet_assignments_assigned_to_id", "worksheet_assignments", ["assigned_to_id"])
    op.create_index("ix_worksheet_assignments_child_id", "worksheet_assignments", ["child_id"])

    # =========================================================================
    # worksheet_completions
    # =========================================================================
    op.create_table(
        "worksheet_completions",
        _id_column(),
        sa.Column("worksheet_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("child_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("assignment_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("recorded_by_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_spent_minutes", sa.Integer(), nullable=True),
        sa.Column("difficulty_rating", sa.SmallInteger(), nullable=True),
        sa.Column("engagement_rating", sa.SmallInteger(), nullable=True),
        sa.Column("help_level", sa.String(30), nullable=True),
        sa.Column("completion_quality", sa.String(20), nullable=True),
        sa.Column("parent_notes", sa.Text(), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"]),
        sa.ForeignKeyConstraint(["assignment_id"], ["worksheet_assignments.id"]),
        sa.UniqueConstraint("assignment_id", name="uq_worksheet_completions_assignment_id"),
        sa.CheckConstraint(
            "difficulty_rating IS NULL OR difficulty_rating BETWEEN 1 AND 5",
            name="ck_completion_difficulty_rating",
        ),
        sa.CheckConstraint(
            "engagement_rating IS NULL OR engagement_rating BETWEEN 1 AND 5",
            name="ck_completion_engagement_rating",
        ),
    )
    op.create_index("ix_worksheet_completions_worksheet_id", "worksheet_completions", ["worksheet_id"])
    op.create_index("ix_worksheet_completions_child_id", "worksheet_completions", ["child_id"])

    # =========================================================================
    # worksheet_reviews
    # =========================================================================
    op.create_table(
        "worksheet_reviews",
        _id_column(),
        sa.Column("worksheet_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("rating", sa.SmallInteger(), nullable=False),
        sa.Column("review_text", sa.Text(), nullable=True),
        sa.Column("helpful_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"]),
        sa.UniqueConstraint("worksheet_id", "user_id", name="uq_review_worksheet_user"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating"),
    )
    op.create_index("ix_worksheet_reviews_worksheet_id", "worksheet_reviews", ["worksheet_id"])

    # =========================================================================
    # worksheet_flags
    # =========================================================================
    op.create_table(
        "worksheet_flags",
        _id_column(),
        sa.Column("worksheet_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("flagged_by_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("reason", sa.String(20), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("resolved_by_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["worksheet_id"], ["worksheets.id"]),
    )
    op.create_index("ix_worksheet_flags_worksheet_id", "worksheet_flags", ["worksheet_id"])
    op.create_index("ix_worksheet_flags_status", "worksheet_flags", ["status"])
    op.create_index(
        "uq_flag_pending_reporter",
        "worksheet_flags",
        ["worksheet_id", "flagged_by_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # =========================================================================
    # screening_domain_scores
    # =========================================================================
    op.create_table(
        "screening_domain_scores",
        _id_column(),
        sa.Column("child_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("assessment_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("domain", sa.String(50), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("is_flagged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("measured_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_screening_scores_child_domain",
        "screening_domain_scores",
        ["child_id", "domain", "measured_at"],
    )


def downgrade() -> None:
    """Drop worksheet tables."""
    op.drop_index("ix_screening_scores_child_domain", table_name="screening_domain_scores")
    op.drop_table("screening_domain_scores")

    op.drop_index("uq_flag_pending_reporter", table_name="worksheet_flags")
    op.drop_index("ix_worksheet_flags_status", table_name="worksheet_flags")
    op.drop_index("ix_worksheet_flags_worksheet_id", table_name="worksheet_flags")
    op.drop_table("worksheet_flags")

    op.drop_index("ix_worksheet_reviews_worksheet_id", table_name="worksheet_reviews")
    op.drop_table("worksheet_reviews")

    op.drop_index("ix_worksheet_completions_child_id", table_name="worksheet_completions")
    op.drop_index("ix_worksheet_completions_worksheet_id", table_name="worksheet_completions")
    op.drop_table("worksheet_completions")

    op.drop_index("ix_worksheet_assignments_child_id", table_name="worksheet_assignments")
    op.drop_index("ix_worksheet_assignments_assigned_to_id", table_name="worksheet_assignments")
    op.drop_index("ix_worksheet_assignments_assigned_by_id", table_name="worksheet_assignments")
    op.drop_index("ix_worksheet_assignments_worksheet_id", table_name="worksheet_assignments")
    op.drop_table("worksheet_assignments")

    op.drop_index("ix_worksheet_images_worksheet_id", table_name="worksheet_images")
    op.drop_table("worksheet_images")

    op.drop_index("ix_worksheets_public_status", table_name="worksheets")
    op.drop_index("ix_worksheets_parent_version_id", table_name="worksheets")
    op.drop_index("ix_worksheets_child_id", table_name="worksheets")
    op.drop_index("ix_worksheets_created_by_id", table_name="worksheets")
    op.drop_index("ix_worksheets_status", table_name="worksheets")
    op.drop_table("worksheets")
