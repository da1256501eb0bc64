# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Completion recording service.

Recording a completion against an assignment completes the assignment in
the same transaction. The completion is guarded twice: a conditional
UPDATE on the assignment status, and a unique index on
worksheet_completions.assignment_id. Whoever loses either race gets a
StateConflictError and nothing is written.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.worksheet.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from src.domains.worksheet.models import AssignmentStatus, Caller
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.schemas import (
    CompletionListResponse,
    CompletionResponse,
    RecordCompletionRequest,
    UpdateCompletionRequest,
)
from src.domains.worksheet.service import WorksheetService
from src.infrastructure.database.models import WorksheetCompletion
from src.infrastructure.events import EventTypes, get_event_bus
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

ALREADY_COMPLETED = "Cannot complete an assignment that was already completed"


class CompletionService:
    """Service for recording and correcting worksheet completions.

    Attributes:
        db: Async database session.
        repo: Worksheet repository.
    """

    def __init__(self, db: AsyncSession, repository: Optional[WorksheetRepository] = None) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)
        self.worksheets = WorksheetService(db, self.repo)

    async def record(
        self,
        worksheet_id: str,
        request: RecordCompletionRequest,
        caller: Caller,
    ) -> CompletionResponse:
        """Record that a child completed a worksheet.

        Args:
            worksheet_id: Completed worksheet.
            request: Completion signals and the optional assignment.
            caller: Recording user.

        Returns:
            The recorded completion.

        Raises:
            NotFoundError: If the worksheet or assignment does not exist.
            ValidationError: If the assignment belongs to another worksheet
                or child.
            AuthorizationError: If the caller is not a party to the
                assignment, or cannot read the worksheet.
            StateConflictError: If the assignment was already completed.
        """
        worksheet = await self.repo.get_worksheet(worksheet_id)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")

        completed_at = ensure_utc(request.completed_at) or utc_now()

        if request.assignment_id:
            assignment = await self.repo.get_assignment(request.assignment_id)
            if assignment is None:
                raise NotFoundError(f"Assignment {request.assignment_id} not found")
            if assignment.worksheet_id != worksheet_id:
                raise ValidationError("Assignment does not belong to this worksheet")
            if assignment.child_id != request.child_id:
                raise ValidationError("Assignment is for a different child")
            if caller.id not in (assignment.assigned_to_id, assignment.assigned_by_id):
                raise AuthorizationError("Only the assignment's parties can record its completion")

            completed = await self.repo.complete_assignment(assignment.id, completed_at)
            if not completed:
                await self.db.rollback()
                raise StateConflictError(ALREADY_COMPLETED)
            assignment.status = AssignmentStatus.COMPLETED.value
            assignment.completed_at = completed_at
        elif not await self.worksheets.can_read(worksheet, caller):
            raise AuthorizationError("You do not have access to this worksheet")

        completion = WorksheetCompletion(
            worksheet_id=worksheet_id,
            child_id=request.child_id,
            assignment_id=request.assignment_id,
            recorded_by_id=caller.id,
            completed_at=completed_at,
            time_spent_minutes=request.time_spent_minutes,
            difficulty_rating=request.difficulty_rating,
            engagement_rating=request.engagement_rating,
            help_level=request.help_level.value if request.help_level else None,
            completion_quality=(
                request.completion_quality.value if request.completion_quality else None
            ),
            parent_notes=request.parent_notes,
        )
        try:
            await self.repo.add(completion)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise StateConflictError(ALREADY_COMPLETED) from e

        logger.info(
            "Completion recorded: worksheet=%s, child=%s, assignment=%s",
            worksheet_id,
            request.child_id,
            request.assignment_id,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.COMPLETION_RECORDED,
            {
                "completion_id": completion.id,
                "worksheet_id": worksheet_id,
                "child_id": request.child_id,
                "assignment_id": request.assignment_id,
            },
        )
        return CompletionResponse.model_validate(completion)

    async def update(
        self,
        completion_id: str,
        request: UpdateCompletionRequest,
        caller: Caller,
    ) -> CompletionResponse:
        """Correct ratings or notes. Only the recorder may do this."""
        completion = await self.repo.get_completion(completion_id)
        if completion is None:
            raise NotFoundError(f"Completion {completion_id} not found")
        if completion.recorded_by_id != caller.id:
            raise AuthorizationError("Only the recorder can update this completion")

        for field, value in request.model_dump(exclude_unset=True, mode="json").items():
            setattr(completion, field, value)
        await self.db.commit()

        logger.info("Completion updated: %s", completion_id)
        return CompletionResponse.model_validate(completion)

    async def list_for_worksheet(
        self,
        worksheet_id: str,
        caller: Caller,
        limit: int = 20,
        offset: int = 0,
    ) -> CompletionListResponse:
        """Completions of a worksheet, visible to its owner and moderators."""
        worksheet = await self.repo.get_worksheet(worksheet_id)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")
        if worksheet.created_by_id != caller.id and not caller.is_moderator:
            raise AuthorizationError("Only the owner can list completions of this worksheet")

        items, total = await self.repo.list_completions(
            worksheet_id=worksheet_id, limit=limit, offset=offset
        )
        return CompletionListResponse(
            items=[CompletionResponse.model_validate(c) for c in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def child_history(
        self,
        child_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> CompletionListResponse:
        """A child's completions, newest first."""
        items, total = await self.repo.list_completions(child_id=child_id, limit=limit, offset=offset)
        return CompletionListResponse(
            items=[CompletionResponse.model_validate(c) for c in items],
            total=total,
            limit=limit,
            offset=offset,
        )
