# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Assignment endpoints.

- POST /{worksheet_id}/assign - Assign to a caregiver (therapist, educator, admin)
- GET /assignments/sent - Assignments the caller made
- GET /assignments/received - Assignments the caller received
- GET /assignments/{assignment_id} - Detail; the assignee's first read marks it viewed
- PATCH /assignments/{assignment_id} - Assignee progress update
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.dependencies import AssignerCaller, AssignmentServiceDep, AuthenticatedCaller
from src.domains.worksheet.schemas import (
    AssignmentListResponse,
    AssignmentResponse,
    CreateAssignmentRequest,
    UpdateAssignmentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{worksheet_id}/assign",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign worksheet",
)
async def assign_worksheet(
    worksheet_id: str,
    body: CreateAssignmentRequest,
    caller: AssignerCaller,
    service: AssignmentServiceDep,
) -> AssignmentResponse:
    return await service.assign(worksheet_id, body, caller)


@router.get(
    "/assignments/sent",
    response_model=AssignmentListResponse,
    summary="Sent assignments",
    description="Filter by status (including the derived 'overdue'), child or case.",
)
async def list_sent(
    caller: AuthenticatedCaller,
    service: AssignmentServiceDep,
    assignment_status: Annotated[str | None, Query(alias="status")] = None,
    child_id: str | None = None,
    case_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AssignmentListResponse:
    return await service.list_sent(
        caller,
        status=assignment_status,
        child_id=child_id,
        case_id=case_id,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/assignments/received",
    response_model=AssignmentListResponse,
    summary="Received assignments",
)
async def list_received(
    caller: AuthenticatedCaller,
    service: AssignmentServiceDep,
    assignment_status: Annotated[str | None, Query(alias="status")] = None,
    child_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AssignmentListResponse:
    return await service.list_received(
        caller,
        status=assignment_status,
        child_id=child_id,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/assignments/{assignment_id}",
    response_model=AssignmentResponse,
    summary="Get assignment",
)
async def get_assignment(
    assignment_id: str,
    caller: AuthenticatedCaller,
    service: AssignmentServiceDep,
) -> AssignmentResponse:
    return await service.get(assignment_id, caller)


@router.patch(
    "/assignments/{assignment_id}",
    response_model=AssignmentResponse,
    summary="Update assignment progress",
)
async def update_assignment(
    assignment_id: str,
    body: UpdateAssignmentRequest,
    caller: AuthenticatedCaller,
    service: AssignmentServiceDep,
) -> AssignmentResponse:
    return await service.update(assignment_id, body, caller)
