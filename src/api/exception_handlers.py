# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mapping of worksheet errors to HTTP responses.

Services raise WorksheetError subclasses with a stable ``kind``; one
handler turns them into ``{"error": kind, "detail": message}``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domains.worksheet.errors import ExternalServiceError, WorksheetError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "state_conflict": status.HTTP_409_CONFLICT,
    "authorization": status.HTTP_403_FORBIDDEN,
    "external_service": status.HTTP_502_BAD_GATEWAY,
}


async def worksheet_error_handler(request: Request, exc: WorksheetError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(exc, ExternalServiceError):
        logger.error(
            "External service %s failed on %s %s: %s",
            exc.service,
            request.method,
            request.url.path,
            exc.message,
        )
    elif status_code >= 500:
        logger.error("Unhandled worksheet error on %s: %s", request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorksheetError, worksheet_error_handler)
