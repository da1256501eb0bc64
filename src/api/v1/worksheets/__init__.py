# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet API endpoints.

This package provides the routes under /worksheets:
- generation: Generation requests and status polling
- community: Publishing, browsing, cloning, reviews, contributors
- assignments: Assignment workflow
- completions: Completion recording and child history
- moderation: Flags and moderator decisions
- analytics: Outcome analytics and recommendations
- library: The caller's worksheets, edits and versions

Routers with static first segments are included before ``library``,
whose ``/{worksheet_id}`` path would otherwise capture them.
"""

from fastapi import APIRouter

from src.api.v1.worksheets.analytics import router as analytics_router
from src.api.v1.worksheets.assignments import router as assignments_router
from src.api.v1.worksheets.community import router as community_router
from src.api.v1.worksheets.completions import router as completions_router
from src.api.v1.worksheets.generation import router as generation_router
from src.api.v1.worksheets.library import router as library_router
from src.api.v1.worksheets.moderation import router as moderation_router

router = APIRouter(prefix="/worksheets")

router.include_router(generation_router, tags=["Worksheet Generation"])
router.include_router(community_router, tags=["Community"])
router.include_router(assignments_router, tags=["Assignments"])
router.include_router(completions_router, tags=["Completions"])
router.include_router(moderation_router, tags=["Moderation"])
router.include_router(analytics_router, tags=["Outcome Analytics"])
router.include_router(library_router, tags=["Worksheets"])

__all__ = ["router"]
