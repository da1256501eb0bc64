# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the worksheet content store."""

from src.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    new_uuid,
)
from src.infrastructure.database.models.screening import ScreeningDomainScore
from src.infrastructure.database.models.worksheet import (
    Worksheet,
    WorksheetAssignment,
    WorksheetCompletion,
    WorksheetFlag,
    WorksheetImage,
    WorksheetReview,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "new_uuid",
    "ScreeningDomainScore",
    "Worksheet",
    "WorksheetAssignment",
    "WorksheetCompletion",
    "WorksheetFlag",
    "WorksheetImage",
    "WorksheetReview",
]
