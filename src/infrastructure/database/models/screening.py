# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Screening domain scores.

Rows are written by the screening/assessment provider. This service only
reads them to derive pre/post scores and weak domains for analytics.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, UUIDPrimaryKeyMixin


class ScreeningDomainScore(Base, UUIDPrimaryKeyMixin):
    """Score (0-100) of one developmental domain in one screening."""

    __tablename__ = "screening_domain_scores"

    child_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    assessment_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    domain: Mapped[str] = mapped_column(String(50), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    is_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    measured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_screening_scores_child_domain", "child_id", "domain", "measured_at"),
    )
