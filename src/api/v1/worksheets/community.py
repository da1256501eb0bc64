# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Community library endpoints.

- POST /{worksheet_id}/publish, /{worksheet_id}/unpublish - Owner sharing controls
- GET /community - Browse public worksheets
- POST /{worksheet_id}/clone - Copy into the caller's library
- POST /{worksheet_id}/reviews, GET /{worksheet_id}/reviews - Reviews
- PUT /reviews/{review_id}, DELETE /reviews/{review_id} - Edit or remove own review
- POST /reviews/{review_id}/helpful - Helpful vote
- GET /contributors/{user_id} - Contributor profile
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from src.api.dependencies import AuthenticatedCaller, CommunityServiceDep
from src.domains.worksheet.schemas import (
    ContributorProfile,
    PublishRequest,
    RatingSummary,
    ReviewListResponse,
    ReviewRequest,
    ReviewResponse,
    WorksheetListResponse,
    WorksheetResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{worksheet_id}/publish",
    response_model=WorksheetResponse,
    summary="Publish to the community",
)
async def publish_worksheet(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
    body: PublishRequest | None = None,
) -> WorksheetResponse:
    return await service.publish(worksheet_id, body or PublishRequest(), caller)


@router.post(
    "/{worksheet_id}/unpublish",
    response_model=WorksheetResponse,
    summary="Withdraw from the community",
)
async def unpublish_worksheet(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> WorksheetResponse:
    return await service.unpublish(worksheet_id, caller)


@router.get(
    "/community",
    response_model=WorksheetListResponse,
    summary="Browse community worksheets",
    description="Sort by newest, rating, popular or most_reviewed.",
)
async def browse_community(
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
    type: str | None = None,
    difficulty: str | None = None,
    sub_type: str | None = None,
    domain: str | None = None,
    condition: str | None = None,
    age_months: Annotated[int | None, Query(ge=0)] = None,
    search: Annotated[str | None, Query(max_length=200)] = None,
    sort: str = "newest",
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> WorksheetListResponse:
    return await service.browse(
        type=type,
        difficulty=difficulty,
        sub_type=sub_type,
        domain=domain,
        condition=condition,
        age_months=age_months,
        search=search,
        sort=sort,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/{worksheet_id}/clone",
    response_model=WorksheetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Clone a community worksheet",
)
async def clone_worksheet(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> WorksheetResponse:
    return await service.clone(worksheet_id, caller)


@router.post(
    "/{worksheet_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review a worksheet",
)
async def create_review(
    worksheet_id: str,
    body: ReviewRequest,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> ReviewResponse:
    return await service.create_review(worksheet_id, body, caller)


@router.get(
    "/{worksheet_id}/reviews",
    response_model=ReviewListResponse,
    summary="List reviews",
)
async def list_reviews(
    worksheet_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
    sort: str = "newest",
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ReviewListResponse:
    return await service.list_reviews(worksheet_id, sort=sort, limit=limit, offset=offset)


@router.put("/reviews/{review_id}", response_model=ReviewResponse, summary="Edit review")
async def update_review(
    review_id: str,
    body: ReviewRequest,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> ReviewResponse:
    return await service.update_review(review_id, body, caller)


@router.delete(
    "/reviews/{review_id}",
    response_model=RatingSummary,
    summary="Delete review",
    description="Returns the worksheet's recomputed rating aggregate.",
)
async def delete_review(
    review_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> RatingSummary:
    return await service.delete_review(review_id, caller)


@router.post(
    "/reviews/{review_id}/helpful",
    response_model=ReviewResponse,
    summary="Mark review helpful",
)
async def mark_review_helpful(
    review_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> ReviewResponse:
    return await service.mark_helpful(review_id, caller)


@router.get(
    "/contributors/{user_id}",
    response_model=ContributorProfile,
    summary="Contributor profile",
)
async def contributor_profile(
    user_id: str,
    caller: AuthenticatedCaller,
    service: CommunityServiceDep,
) -> ContributorProfile:
    return await service.contributor_profile(user_id)
