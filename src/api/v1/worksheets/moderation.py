# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Moderation endpoints.

- POST /{worksheet_id}/flag - Report a community worksheet (any user)
- GET /moderation/queue - Flags awaiting review
- PATCH /moderation/flags/{flag_id} - Resolve a flag
- POST /moderation/worksheets/{worksheet_id}/restore - Return to the community
- POST /moderation/worksheets/{worksheet_id}/retire - Archive for good
- GET /moderation/stats - Flag counts

All /moderation routes require the moderator or admin role.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.dependencies import AuthenticatedCaller, ModerationServiceDep, ModeratorCaller
from src.domains.worksheet.schemas import (
    FlagListResponse,
    FlagRequest,
    FlagResponse,
    ModerationStats,
    ResolveFlagRequest,
    WorksheetResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{worksheet_id}/flag",
    response_model=FlagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Flag a worksheet",
)
async def flag_worksheet(
    worksheet_id: str,
    body: FlagRequest,
    caller: AuthenticatedCaller,
    service: ModerationServiceDep,
) -> FlagResponse:
    return await service.flag(worksheet_id, body, caller)


@router.get(
    "/moderation/queue",
    response_model=FlagListResponse,
    summary="Moderation queue",
    description="Flags oldest first. Defaults to pending flags.",
)
async def moderation_queue(
    caller: ModeratorCaller,
    service: ModerationServiceDep,
    flag_status: Annotated[str | None, Query(alias="status")] = "pending",
    reason: str | None = None,
    worksheet_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> FlagListResponse:
    return await service.queue(
        caller,
        status=flag_status,
        reason=reason,
        worksheet_id=worksheet_id,
        limit=limit,
        offset=offset,
    )


@router.patch(
    "/moderation/flags/{flag_id}",
    response_model=FlagResponse,
    summary="Resolve flag",
)
async def resolve_flag(
    flag_id: str,
    body: ResolveFlagRequest,
    caller: ModeratorCaller,
    service: ModerationServiceDep,
) -> FlagResponse:
    return await service.resolve(flag_id, body, caller)


@router.post(
    "/moderation/worksheets/{worksheet_id}/restore",
    response_model=WorksheetResponse,
    summary="Restore flagged worksheet",
)
async def restore_worksheet(
    worksheet_id: str,
    caller: ModeratorCaller,
    service: ModerationServiceDep,
) -> WorksheetResponse:
    return await service.restore(worksheet_id, caller)


@router.post(
    "/moderation/worksheets/{worksheet_id}/retire",
    response_model=WorksheetResponse,
    summary="Retire flagged worksheet",
)
async def retire_worksheet(
    worksheet_id: str,
    caller: ModeratorCaller,
    service: ModerationServiceDep,
) -> WorksheetResponse:
    return await service.retire(worksheet_id, caller)


@router.get("/moderation/stats", response_model=ModerationStats, summary="Moderation stats")
async def moderation_stats(
    caller: ModeratorCaller,
    service: ModerationServiceDep,
) -> ModerationStats:
    return await service.stats(caller)
