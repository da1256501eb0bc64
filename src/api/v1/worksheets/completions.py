# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Completion endpoints.

- POST /{worksheet_id}/completions - Record a completion
- GET /{worksheet_id}/completions - Completions of a worksheet (owner or moderator)
- PATCH /completions/{completion_id} - Amend a completion (recorder only)
- GET /children/{child_id}/completions - A child's completion history
- GET /children/{child_id}/completion-stats - Aggregate completion signals
- GET /children/{child_id}/journey - Worksheets per domain with version chains
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.dependencies import AnalyticsServiceDep, AuthenticatedCaller, CompletionServiceDep
from src.domains.analytics.schemas import ChildJourney, CompletionStats
from src.domains.worksheet.schemas import (
    CompletionListResponse,
    CompletionResponse,
    RecordCompletionRequest,
    UpdateCompletionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{worksheet_id}/completions",
    response_model=CompletionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record completion",
)
async def record_completion(
    worksheet_id: str,
    body: RecordCompletionRequest,
    caller: AuthenticatedCaller,
    service: CompletionServiceDep,
) -> CompletionResponse:
    return await service.record(worksheet_id, body, caller)


@router.get(
    "/{worksheet_id}/completions",
    response_model=CompletionListResponse,
    summary="Worksheet completions",
)
async def list_completions(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: CompletionServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> CompletionListResponse:
    return await service.list_for_worksheet(worksheet_id, caller, limit=limit, offset=offset)


@router.patch(
    "/completions/{completion_id}",
    response_model=CompletionResponse,
    summary="Amend completion",
)
async def update_completion(
    completion_id: str,
    body: UpdateCompletionRequest,
    caller: AuthenticatedCaller,
    service: CompletionServiceDep,
) -> CompletionResponse:
    return await service.update(completion_id, body, caller)


@router.get(
    "/children/{child_id}/completions",
    response_model=CompletionListResponse,
    summary="Child completion history",
)
async def child_history(
    child_id: str,
    caller: AuthenticatedCaller,
    service: CompletionServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> CompletionListResponse:
    return await service.child_history(child_id, limit=limit, offset=offset)


@router.get(
    "/children/{child_id}/completion-stats",
    response_model=CompletionStats,
    summary="Child completion statistics",
)
async def child_completion_stats(
    child_id: str,
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
) -> CompletionStats:
    return await analytics.completion_stats(child_id)


@router.get(
    "/children/{child_id}/journey",
    response_model=ChildJourney,
    summary="Child journey",
)
async def child_journey(
    child_id: str,
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
) -> ChildJourney:
    return await analytics.child_journey(child_id)
