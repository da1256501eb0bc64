# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet assignment service.

A professional assigns a worksheet to a caregiver for a child. The
caregiver moves it forward one step at a time:

    assigned → viewed → in_progress → completed

The first read by the assignee advances ``assigned`` to ``viewed``.
``completed`` is only reached by recording a completion. ``overdue`` is
derived at read time from the due date and never stored.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.worksheet.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from src.domains.worksheet.lifecycle import (
    UNASSIGNABLE_STATUSES,
    advance_assignment,
    display_status,
)
from src.domains.worksheet.models import (
    OVERDUE,
    AssignmentStatus,
    Caller,
    WorksheetStatus,
)
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.schemas import (
    AssignmentListResponse,
    AssignmentResponse,
    CreateAssignmentRequest,
    UpdateAssignmentRequest,
    WorksheetSummary,
)
from src.infrastructure.database.models import WorksheetAssignment
from src.infrastructure.events import EventTypes, get_event_bus
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Timestamp column stamped when an assignment reaches each status
STATUS_TIMESTAMPS = {
    AssignmentStatus.VIEWED: "viewed_at",
    AssignmentStatus.IN_PROGRESS: "started_at",
    AssignmentStatus.COMPLETED: "completed_at",
}


def to_assignment_response(assignment: WorksheetAssignment) -> AssignmentResponse:
    """Build the response, deriving display_status at read time."""
    worksheet = assignment.worksheet
    return AssignmentResponse(
        id=assignment.id,
        worksheet_id=assignment.worksheet_id,
        assigned_by_id=assignment.assigned_by_id,
        assigned_to_id=assignment.assigned_to_id,
        child_id=assignment.child_id,
        case_id=assignment.case_id,
        status=AssignmentStatus(assignment.status),
        display_status=display_status(assignment.status, assignment.due_date),
        due_date=assignment.due_date,
        notes=assignment.notes,
        parent_notes=assignment.parent_notes,
        viewed_at=assignment.viewed_at,
        started_at=assignment.started_at,
        completed_at=assignment.completed_at,
        created_at=assignment.created_at,
        worksheet=WorksheetSummary.model_validate(worksheet) if worksheet is not None else None,
    )


class AssignmentService:
    """Service for the assignment workflow.

    Attributes:
        db: Async database session.
        repo: Worksheet repository.
    """

    def __init__(self, db: AsyncSession, repository: Optional[WorksheetRepository] = None) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)

    async def _get_assignment(self, assignment_id: str) -> WorksheetAssignment:
        assignment = await self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        return assignment

    async def assign(
        self,
        worksheet_id: str,
        request: CreateAssignmentRequest,
        caller: Caller,
    ) -> AssignmentResponse:
        """Assign a worksheet to a caregiver.

        Args:
            worksheet_id: Worksheet to assign.
            request: Assignee, child and optional due date and notes.
            caller: Assigning professional.

        Returns:
            The new assignment in ``assigned``.

        Raises:
            AuthorizationError: If the caller may not assign, or may not use
                this worksheet.
            NotFoundError: If the worksheet does not exist.
            StateConflictError: If the worksheet is archived, generating,
                failed or flagged.
            ValidationError: If the caller assigns to themselves.
        """
        if not caller.can_assign:
            raise AuthorizationError("Only therapists, educators and admins can assign worksheets")

        worksheet = await self.repo.get_worksheet(worksheet_id)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")

        is_community = worksheet.is_public and worksheet.status == WorksheetStatus.PUBLISHED.value
        if worksheet.created_by_id != caller.id and not is_community and not caller.is_moderator:
            raise AuthorizationError("You do not have access to this worksheet")

        if WorksheetStatus(worksheet.status) in UNASSIGNABLE_STATUSES:
            raise StateConflictError(
                f"Cannot assign a worksheet in status '{worksheet.status}'"
            )

        if request.assigned_to_id == caller.id:
            raise ValidationError("You cannot assign a worksheet to yourself")

        assignment = WorksheetAssignment(
            worksheet_id=worksheet.id,
            worksheet=worksheet,
            assigned_by_id=caller.id,
            assigned_to_id=request.assigned_to_id,
            child_id=request.child_id,
            case_id=request.case_id,
            status=AssignmentStatus.ASSIGNED.value,
            due_date=ensure_utc(request.due_date),
            notes=request.notes,
        )
        await self.repo.add(assignment)
        await self.db.commit()

        logger.info(
            "Worksheet %s assigned to %s by %s: %s",
            worksheet_id,
            request.assigned_to_id,
            caller.id,
            assignment.id,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.ASSIGNED,
            {
                "assignment_id": assignment.id,
                "worksheet_id": worksheet_id,
                "assigned_to_id": request.assigned_to_id,
                "child_id": request.child_id,
            },
        )
        return to_assignment_response(assignment)

    async def _list(
        self,
        filters: dict[str, Any],
        status: str | None,
        limit: int,
        offset: int,
    ) -> AssignmentListResponse:
        if status and status.lower() == OVERDUE:
            filters["overdue_at"] = utc_now()
        elif status:
            try:
                filters["status"] = AssignmentStatus(status).value
            except ValueError as e:
                raise ValidationError(f"Unknown assignment status '{status}'") from e

        items, total = await self.repo.list_assignments(limit=limit, offset=offset, **filters)
        return AssignmentListResponse(
            items=[to_assignment_response(a) for a in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def list_sent(
        self,
        caller: Caller,
        *,
        status: str | None = None,
        child_id: str | None = None,
        case_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> AssignmentListResponse:
        """Assignments the caller created. ``status`` also accepts "overdue"."""
        return await self._list(
            {"assigned_by_id": caller.id, "child_id": child_id, "case_id": case_id},
            status,
            limit,
            offset,
        )

    async def list_received(
        self,
        caller: Caller,
        *,
        status: str | None = None,
        child_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> AssignmentListResponse:
        """Assignments the caller received. ``status`` also accepts "overdue"."""
        return await self._list(
            {"assigned_to_id": caller.id, "child_id": child_id},
            status,
            limit,
            offset,
        )

    async def get(self, assignment_id: str, caller: Caller) -> AssignmentResponse:
        """Read an assignment.

        The assignee's first read moves it from ``assigned`` to ``viewed``.
        The move is a conditional update, so concurrent first reads
        advance it exactly once.

        Raises:
            NotFoundError: If the assignment does not exist.
            AuthorizationError: If the caller is not a party or a moderator.
        """
        assignment = await self._get_assignment(assignment_id)
        if caller.id not in (assignment.assigned_by_id, assignment.assigned_to_id) and not caller.is_moderator:
            raise AuthorizationError("You do not have access to this assignment")

        if (
            caller.id == assignment.assigned_to_id
            and assignment.status == AssignmentStatus.ASSIGNED.value
        ):
            viewed_at = utc_now()
            advanced = await self.repo.advance_assignment_status(
                assignment.id,
                AssignmentStatus.ASSIGNED,
                AssignmentStatus.VIEWED,
                {"viewed_at": viewed_at},
            )
            if advanced:
                assignment.status = AssignmentStatus.VIEWED.value
                assignment.viewed_at = viewed_at
                await self.db.commit()
                logger.info("Assignment viewed: %s", assignment_id)
            else:
                await self.db.commit()
                await self.db.refresh(assignment)

        return to_assignment_response(assignment)

    async def update(
        self,
        assignment_id: str,
        request: UpdateAssignmentRequest,
        caller: Caller,
    ) -> AssignmentResponse:
        """Move an assignment one step forward and/or update parent notes.

        Raises:
            NotFoundError: If the assignment does not exist.
            AuthorizationError: If the caller is not the assignee.
            StateConflictError: On a backwards, skipping or completing move,
                or if another request moved it first.
        """
        assignment = await self._get_assignment(assignment_id)
        if caller.id != assignment.assigned_to_id:
            raise AuthorizationError("Only the assignee can update this assignment")

        if request.status is not None:
            current = AssignmentStatus(assignment.status)
            target, changed = advance_assignment(current, request.status)
            if changed:
                values = {STATUS_TIMESTAMPS[target]: utc_now()}
                advanced = await self.repo.advance_assignment_status(
                    assignment.id, current, target, values
                )
                if not advanced:
                    raise StateConflictError("Assignment was updated by another request")
                assignment.status = target.value
                for column, value in values.items():
                    setattr(assignment, column, value)
                logger.info(
                    "Assignment %s moved from %s to %s",
                    assignment_id,
                    current.value,
                    target.value,
                )

        if request.parent_notes is not None:
            assignment.parent_notes = request.parent_notes

        await self.db.commit()
        return to_assignment_response(assignment)
