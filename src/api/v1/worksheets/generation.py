# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet generation endpoints.

- POST /generate - Accept a generation request (202), work runs in the background
- GET /{worksheet_id}/status - Poll generation progress

Example:
    POST /api/v1/worksheets/generate
    GET /api/v1/worksheets/{id}/status
"""

import logging

from fastapi import APIRouter, Request, status

from src.api.dependencies import AuthenticatedCaller, GenerationCoordinatorDep
from src.api.middleware.rate_limit import RATE_LIMIT_GENERATION, limiter
from src.domains.worksheet.schemas import (
    GenerateWorksheetRequest,
    GenerationAcceptedResponse,
    GenerationStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerationAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate a worksheet",
    description="Validate the request, create the worksheet and queue generation.",
)
@limiter.limit(RATE_LIMIT_GENERATION)
async def generate_worksheet(
    request: Request,
    body: GenerateWorksheetRequest,
    caller: AuthenticatedCaller,
    coordinator: GenerationCoordinatorDep,
) -> GenerationAcceptedResponse:
    logger.info(
        "Generation requested by %s: type=%s, source=%s",
        caller.id,
        body.type.value,
        body.data_source.value,
    )
    return await coordinator.request_generation(body, caller)


@router.get(
    "/{worksheet_id}/status",
    response_model=GenerationStatusResponse,
    summary="Generation status",
)
async def generation_status(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    coordinator: GenerationCoordinatorDep,
) -> GenerationStatusResponse:
    return await coordinator.get_status(worksheet_id, caller)
