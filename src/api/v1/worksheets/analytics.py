# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Outcome analytics and recommendation endpoints.

- GET /analytics/child/{child_id} - Completion stats and progress timeline
- GET /analytics/worksheet/{worksheet_id}/effectiveness - Pre/post screening comparison
- GET /analytics/top-effective - Worksheets ranked by effectiveness
- GET /recommendations/{child_id} - Community worksheets for a child
- GET /difficulty/suggest/{child_id} - Next difficulty tier

Access to a given child's data is enforced by the identity service that
issues tokens; these endpoints only require an authenticated caller.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from src.api.dependencies import AnalyticsServiceDep, AuthenticatedCaller
from src.domains.analytics.schemas import (
    ChildAnalytics,
    DifficultySuggestion,
    EffectivenessRanking,
    EffectivenessScore,
    RecommendationList,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/analytics/child/{child_id}",
    response_model=ChildAnalytics,
    summary="Child outcome analytics",
)
async def child_analytics(
    child_id: str,
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
) -> ChildAnalytics:
    return await analytics.child_analytics(child_id)


@router.get(
    "/analytics/worksheet/{worksheet_id}/effectiveness",
    response_model=EffectivenessScore,
    summary="Worksheet effectiveness",
)
async def worksheet_effectiveness(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
) -> EffectivenessScore:
    return await analytics.effectiveness(worksheet_id)


@router.get(
    "/analytics/top-effective",
    response_model=EffectivenessRanking,
    summary="Most effective worksheets",
)
async def top_effective(
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
    min_sample_size: Annotated[int | None, Query(ge=1)] = None,
) -> EffectivenessRanking:
    return await analytics.most_effective(limit=limit, min_sample_size=min_sample_size)


@router.get(
    "/recommendations/{child_id}",
    response_model=RecommendationList,
    summary="Recommend worksheets",
)
async def recommendations(
    child_id: str,
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
    age_months: Annotated[int | None, Query(ge=0)] = None,
    conditions: Annotated[list[str] | None, Query()] = None,
) -> RecommendationList:
    return await analytics.recommendations(
        child_id,
        limit=limit,
        age_months=age_months,
        conditions=conditions or [],
    )


@router.get(
    "/difficulty/suggest/{child_id}",
    response_model=DifficultySuggestion,
    summary="Suggest difficulty",
)
async def suggest_difficulty(
    child_id: str,
    caller: AuthenticatedCaller,
    analytics: AnalyticsServiceDep,
    domain: str | None = None,
) -> DifficultySuggestion:
    return await analytics.suggest_difficulty(child_id, domain=domain)
