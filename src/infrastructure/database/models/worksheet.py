# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet content store models.

Tables:
- worksheets: generated therapy worksheets with lifecycle status,
  rating aggregate, clone lineage and version lineage
- worksheet_images: per-image generation sub-status
- worksheet_assignments: therapist → caregiver → child tasks
- worksheet_completions: caregiver-submitted completion records
- worksheet_reviews: one rating per (worksheet, user)
- worksheet_flags: moderation reports

Statuses and categorical fields are stored as plain strings; the allowed
values live in src.domains.worksheet.models.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Worksheet(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A generated therapy worksheet."""

    __tablename__ = "worksheets"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    sub_type: Mapped[Optional[str]] = mapped_column(String(50))
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    color_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="full_color")
    data_source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")

    content: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    # "metadata" is reserved by the declarative base
    generation_params: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONB, nullable=False, default=dict
    )

    target_domains: Mapped[list[str]] = mapped_column(
        ARRAY(String(50)), nullable=False, default=list
    )
    condition_tags: Mapped[list[str]] = mapped_column(
        ARRAY(String(50)), nullable=False, default=list
    )
    age_range_min: Mapped[Optional[int]] = mapped_column(Integer)
    age_range_max: Mapped[Optional[int]] = mapped_column(Integer)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="generating", index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    contributor_notes: Mapped[Optional[str]] = mapped_column(Text)

    average_rating: Mapped[Optional[float]] = mapped_column(Float)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    cloned_from_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheets.id", ondelete="SET NULL")
    )
    clone_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    parent_version_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheets.id", ondelete="SET NULL"), index=True
    )

    created_by_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    child_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), index=True)
    case_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    screening_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))

    pdf_url: Mapped[Optional[str]] = mapped_column(String(1024))
    preview_url: Mapped[Optional[str]] = mapped_column(String(1024))
    generation_error: Mapped[Optional[str]] = mapped_column(Text)
    generation_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    images: Mapped[list["WorksheetImage"]] = relationship(
        back_populates="worksheet",
        lazy="selectin",
        order_by="WorksheetImage.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_worksheets_public_status", "is_public", "status"),
    )

    def __repr__(self) -> str:
        return f"<Worksheet {self.id} {self.type} status={self.status}>"


class WorksheetImage(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """An illustration owned by a worksheet, with its own generation status."""

    __tablename__ = "worksheet_images"

    worksheet_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("worksheets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    alt_text: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    error: Mapped[Optional[str]] = mapped_column(Text)

    worksheet: Mapped["Worksheet"] = relationship(back_populates="images")


class WorksheetAssignment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A worksheet assigned by a professional to a caregiver for one child."""

    __tablename__ = "worksheet_assignments"

    worksheet_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheets.id"), nullable=False, index=True
    )
    assigned_by_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    assigned_to_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    child_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    case_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="assigned")
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    parent_notes: Mapped[Optional[str]] = mapped_column(Text)

    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    worksheet: Mapped["Worksheet"] = relationship(lazy="selectin")


class WorksheetCompletion(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A caregiver's record of doing a worksheet with a child."""

    __tablename__ = "worksheet_completions"

    worksheet_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheets.id"), nullable=False, index=True
    )
    child_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    assignment_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheet_assignments.id"), unique=True
    )
    recorded_by_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    time_spent_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    difficulty_rating: Mapped[Optional[int]] = mapped_column(SmallInteger)
    engagement_rating: Mapped[Optional[int]] = mapped_column(SmallInteger)
    help_level: Mapped[Optional[str]] = mapped_column(String(30))
    completion_quality: Mapped[Optional[str]] = mapped_column(String(20))
    parent_notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint(
            "difficulty_rating IS NULL OR difficulty_rating BETWEEN 1 AND 5",
            name="ck_completion_difficulty_rating",
        ),
        CheckConstraint(
            "engagement_rating IS NULL OR engagement_rating BETWEEN 1 AND 5",
            name="ck_completion_engagement_rating",
        ),
    )


class WorksheetReview(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A user's rating of a public worksheet."""

    __tablename__ = "worksheet_reviews"

    worksheet_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheets.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    review_text: Mapped[Optional[str]] = mapped_column(Text)
    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("worksheet_id", "user_id", name="uq_review_worksheet_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating"),
    )


class WorksheetFlag(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A moderation report against a published worksheet."""

    __tablename__ = "worksheet_flags"

    worksheet_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("worksheets.id"), nullable=False, index=True
    )
    flagged_by_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    resolved_by_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index(
            "uq_flag_pending_reporter",
            "worksheet_id",
            "flagged_by_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )
