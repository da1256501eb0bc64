# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet domain.

Services:
- GenerationCoordinator: asynchronous generation with polling
- WorksheetService: library, edits, versions
- AssignmentService: assignment workflow
- CompletionService: completion recording
- CommunityService: publishing, cloning, reviews
- ModerationService: flags and moderator decisions
"""

from src.domains.worksheet.assignment import AssignmentService
from src.domains.worksheet.community import CommunityService
from src.domains.worksheet.completion import CompletionService
from src.domains.worksheet.errors import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    StateConflictError,
    ValidationError,
    WorksheetError,
)
from src.domains.worksheet.generation import GenerationCoordinator
from src.domains.worksheet.lifecycle import advance_assignment, display_status, transition
from src.domains.worksheet.moderation import ModerationService
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.service import WorksheetService

__all__ = [
    "AssignmentService",
    "AuthorizationError",
    "CommunityService",
    "CompletionService",
    "ExternalServiceError",
    "GenerationCoordinator",
    "ModerationService",
    "NotFoundError",
    "StateConflictError",
    "ValidationError",
    "WorksheetError",
    "WorksheetRepository",
    "WorksheetService",
    "advance_assignment",
    "display_status",
    "transition",
]
