# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet library and editing endpoints.

- GET /library - The caller's own worksheets
- GET /{worksheet_id} - Worksheet detail
- PATCH /{worksheet_id} - Edit title, content or tags
- DELETE /{worksheet_id} - Archive
- POST /{worksheet_id}/regenerate-section - Replace one content section
- POST /{worksheet_id}/regenerate-image - Regenerate one image
- POST /{worksheet_id}/link-case - Attach to a case
- POST /{worksheet_id}/create-version - Derive a new version
- GET /{worksheet_id}/versions - Version tree

This router declares the catch-all ``/{worksheet_id}`` path and is
included after every router with static paths.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.dependencies import AuthenticatedCaller, WorksheetServiceDep
from src.domains.worksheet.schemas import (
    LinkCaseRequest,
    RegenerateImageRequest,
    RegenerateSectionRequest,
    UpdateWorksheetRequest,
    VersionEntry,
    WorksheetImageResponse,
    WorksheetListResponse,
    WorksheetResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/library",
    response_model=WorksheetListResponse,
    summary="My worksheets",
    description="List worksheets created by the caller, newest first.",
)
async def library(
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
    type: str | None = None,
    worksheet_status: Annotated[str | None, Query(alias="status")] = None,
    difficulty: str | None = None,
    sub_type: str | None = None,
    child_id: str | None = None,
    domain: str | None = None,
    search: Annotated[str | None, Query(max_length=200)] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> WorksheetListResponse:
    return await service.library(
        caller,
        type=type,
        status=worksheet_status,
        difficulty=difficulty,
        sub_type=sub_type,
        child_id=child_id,
        domain=domain,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.get("/{worksheet_id}", response_model=WorksheetResponse, summary="Get worksheet")
async def get_worksheet(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetResponse:
    return await service.get(worksheet_id, caller)


@router.patch("/{worksheet_id}", response_model=WorksheetResponse, summary="Edit worksheet")
async def update_worksheet(
    worksheet_id: str,
    body: UpdateWorksheetRequest,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetResponse:
    return await service.update(worksheet_id, body, caller)


@router.delete(
    "/{worksheet_id}",
    response_model=WorksheetResponse,
    summary="Archive worksheet",
    description="Archive the worksheet. Archived worksheets are read-only and hidden.",
)
async def archive_worksheet(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetResponse:
    return await service.archive(worksheet_id, caller)


@router.post(
    "/{worksheet_id}/regenerate-section",
    response_model=WorksheetResponse,
    summary="Regenerate a section",
)
async def regenerate_section(
    worksheet_id: str,
    body: RegenerateSectionRequest,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetResponse:
    return await service.regenerate_section(worksheet_id, body, caller)


@router.post(
    "/{worksheet_id}/regenerate-image",
    response_model=WorksheetImageResponse,
    summary="Regenerate an image",
    description="A failed regeneration is recorded on the image and returned, not raised.",
)
async def regenerate_image(
    worksheet_id: str,
    body: RegenerateImageRequest,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetImageResponse:
    return await service.regenerate_image(worksheet_id, body, caller)


@router.post(
    "/{worksheet_id}/link-case",
    response_model=WorksheetResponse,
    summary="Link to a case",
)
async def link_case(
    worksheet_id: str,
    body: LinkCaseRequest,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetResponse:
    return await service.link_case(worksheet_id, body, caller)


@router.post(
    "/{worksheet_id}/create-version",
    response_model=WorksheetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new version",
)
async def create_version(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> WorksheetResponse:
    return await service.create_version(worksheet_id, caller)


@router.get(
    "/{worksheet_id}/versions",
    response_model=list[VersionEntry],
    summary="Version tree",
)
async def list_versions(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: WorksheetServiceDep,
) -> list[VersionEntry]:
    return await service.versions(worksheet_id, caller)
