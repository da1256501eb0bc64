# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    worksheets: Worksheet generation, library, assignments, completions,
        community, moderation and outcome analytics.
"""

from fastapi import APIRouter

from src.api.v1.worksheets import router as worksheets_router

router = APIRouter(prefix="/api/v1")

router.include_router(worksheets_router)

__all__ = ["router"]
