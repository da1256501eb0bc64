# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Community sharing, cloning and reviews.

This module provides the CommunityService class for:
- Publishing and unpublishing worksheets
- Browsing the community library
- Cloning community worksheets into a private draft
- Reviews, rating aggregates and helpful votes
- Contributor profiles

Every review write locks the worksheet row and recomputes the rating
aggregate with one UPDATE in the same transaction, so concurrent reviews
cannot leave average_rating and review_count out of step.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.worksheet.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from src.domains.worksheet.lifecycle import transition
from src.domains.worksheet.models import Caller, LifecycleAction, WorksheetStatus
from src.domains.worksheet.repository import COMMUNITY_SORTS, REVIEW_SORTS, WorksheetRepository
from src.domains.worksheet.schemas import (
    ContributorProfile,
    PublishRequest,
    RatingSummary,
    ReviewListResponse,
    ReviewRequest,
    ReviewResponse,
    WorksheetListResponse,
    WorksheetResponse,
    WorksheetSummary,
)
from src.domains.worksheet.service import copy_worksheet
from src.infrastructure.database.models import Worksheet, WorksheetReview
from src.infrastructure.events import EventTypes, get_event_bus
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def is_community_visible(worksheet: Worksheet) -> bool:
    return worksheet.is_public and worksheet.status == WorksheetStatus.PUBLISHED.value


class CommunityService:
    """Service for the community library.

    Attributes:
        db: Async database session.
        repo: Worksheet repository.
    """

    def __init__(self, db: AsyncSession, repository: Optional[WorksheetRepository] = None) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)

    async def _get_worksheet(self, worksheet_id: str, for_update: bool = False) -> Worksheet:
        worksheet = await self.repo.get_worksheet(worksheet_id, for_update=for_update)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")
        return worksheet

    async def _get_review(self, review_id: str) -> WorksheetReview:
        review = await self.repo.get_review(review_id)
        if review is None:
            raise NotFoundError(f"Review {review_id} not found")
        return review

    # =========================================================================
    # Publication
    # =========================================================================

    async def publish(
        self,
        worksheet_id: str,
        request: PublishRequest,
        caller: Caller,
    ) -> WorksheetResponse:
        """Share a draft with the community. Publishing twice is a no-op.

        Raises:
            NotFoundError: If the worksheet does not exist.
            AuthorizationError: If the caller is not the owner.
            StateConflictError: If the worksheet is not a draft.
        """
        worksheet = await self._get_worksheet(worksheet_id, for_update=True)
        if worksheet.created_by_id != caller.id:
            raise AuthorizationError("Only the owner can publish this worksheet")

        new_status, changed = transition(worksheet.status, LifecycleAction.PUBLISH)
        if changed:
            worksheet.status = new_status.value
            worksheet.is_public = True
            worksheet.published_at = utc_now()
            worksheet.contributor_notes = request.contributor_notes
        await self.db.commit()

        if changed:
            logger.info("Worksheet published: %s", worksheet_id)
            await get_event_bus().publish(
                EventTypes.Worksheet.PUBLISHED,
                {"worksheet_id": worksheet_id, "user_id": caller.id},
            )
        return WorksheetResponse.model_validate(worksheet)

    async def unpublish(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        """Withdraw a worksheet from the community. Reviews and ratings are kept."""
        worksheet = await self._get_worksheet(worksheet_id, for_update=True)
        if worksheet.created_by_id != caller.id:
            raise AuthorizationError("Only the owner can unpublish this worksheet")

        new_status, changed = transition(worksheet.status, LifecycleAction.UNPUBLISH)
        if changed:
            worksheet.status = new_status.value
            worksheet.is_public = False
            worksheet.published_at = None
        await self.db.commit()

        if changed:
            logger.info("Worksheet unpublished: %s", worksheet_id)
            await get_event_bus().publish(
                EventTypes.Worksheet.UNPUBLISHED,
                {"worksheet_id": worksheet_id, "user_id": caller.id},
            )
        return WorksheetResponse.model_validate(worksheet)

    async def browse(
        self,
        *,
        type: str | None = None,
        difficulty: str | None = None,
        sub_type: str | None = None,
        domain: str | None = None,
        condition: str | None = None,
        age_months: int | None = None,
        search: str | None = None,
        sort: str = "newest",
        limit: int = 20,
        offset: int = 0,
    ) -> WorksheetListResponse:
        """Browse public, published worksheets."""
        if sort not in COMMUNITY_SORTS:
            raise ValidationError(
                f"Unknown sort '{sort}', expected one of {', '.join(COMMUNITY_SORTS)}"
            )

        items, total = await self.repo.browse_public(
            type=type,
            difficulty=difficulty,
            sub_type=sub_type,
            domain=domain.upper() if domain else None,
            condition=condition,
            age_months=age_months,
            search=search,
            sort=sort,
            limit=limit,
            offset=offset,
        )
        return WorksheetListResponse(
            items=[WorksheetSummary.model_validate(w) for w in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def clone(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        """Copy a community worksheet into the caller's library as a private draft.

        The source's clone_count is bumped atomically in the same
        transaction as the insert. The source itself is never modified
        otherwise.

        Raises:
            NotFoundError: If the worksheet does not exist.
            StateConflictError: If the worksheet is not public and published.
        """
        source = await self._get_worksheet(worksheet_id)
        if not is_community_visible(source):
            raise StateConflictError("Only public, published worksheets can be cloned")

        clone_count = await self.repo.increment_clone_count(source.id)
        copy = copy_worksheet(source, caller.id, cloned_from_id=source.id)
        await self.repo.add(copy)
        await self.db.commit()

        logger.info(
            "Worksheet %s cloned by %s: %s (clone_count=%d)",
            worksheet_id,
            caller.id,
            copy.id,
            clone_count,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.CLONED,
            {"worksheet_id": copy.id, "cloned_from_id": worksheet_id, "user_id": caller.id},
        )
        return WorksheetResponse.model_validate(copy)

    # =========================================================================
    # Reviews
    # =========================================================================

    async def create_review(
        self,
        worksheet_id: str,
        request: ReviewRequest,
        caller: Caller,
    ) -> ReviewResponse:
        """Review a community worksheet. One review per user.

        Raises:
            NotFoundError: If the worksheet does not exist.
            StateConflictError: If the worksheet is not public, or the caller
                already reviewed it.
            AuthorizationError: If the caller owns the worksheet.
        """
        worksheet = await self._get_worksheet(worksheet_id, for_update=True)
        if not is_community_visible(worksheet):
            raise StateConflictError("Only public, published worksheets can be reviewed")
        if worksheet.created_by_id == caller.id:
            raise AuthorizationError("You cannot review your own worksheet")
        if await self.repo.get_user_review(worksheet_id, caller.id) is not None:
            raise StateConflictError("You have already reviewed this worksheet")

        review = WorksheetReview(
            worksheet_id=worksheet_id,
            user_id=caller.id,
            rating=request.rating,
            review_text=request.review_text,
            helpful_count=0,
        )
        try:
            await self.repo.add(review)
        except IntegrityError as e:
            await self.db.rollback()
            raise StateConflictError("You have already reviewed this worksheet") from e

        average, count = await self.repo.recompute_rating(worksheet_id)
        await self.db.commit()

        logger.info(
            "Review created for worksheet %s: rating=%d, average=%s, count=%d",
            worksheet_id,
            request.rating,
            average,
            count,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.REVIEWED,
            {"worksheet_id": worksheet_id, "review_id": review.id, "rating": request.rating},
        )
        return ReviewResponse.model_validate(review)

    async def update_review(
        self,
        review_id: str,
        request: ReviewRequest,
        caller: Caller,
    ) -> ReviewResponse:
        review = await self._get_review(review_id)
        if review.user_id != caller.id:
            raise AuthorizationError("You can only edit your own review")

        await self._get_worksheet(review.worksheet_id, for_update=True)
        review.rating = request.rating
        review.review_text = request.review_text
        await self.db.flush()

        await self.repo.recompute_rating(review.worksheet_id)
        await self.db.commit()

        logger.info("Review updated: %s", review_id)
        return ReviewResponse.model_validate(review)

    async def delete_review(self, review_id: str, caller: Caller) -> RatingSummary:
        """Delete the caller's review and return the recomputed aggregate."""
        review = await self._get_review(review_id)
        if review.user_id != caller.id:
            raise AuthorizationError("You can only delete your own review")

        worksheet_id = review.worksheet_id
        await self._get_worksheet(worksheet_id, for_update=True)
        await self.repo.delete_review(review_id)
        average, count = await self.repo.recompute_rating(worksheet_id)
        await self.db.commit()

        logger.info("Review deleted: %s", review_id)
        return RatingSummary(worksheet_id=worksheet_id, average_rating=average, review_count=count)

    async def list_reviews(
        self,
        worksheet_id: str,
        sort: str = "newest",
        limit: int = 20,
        offset: int = 0,
    ) -> ReviewListResponse:
        if sort not in REVIEW_SORTS:
            raise ValidationError(
                f"Unknown sort '{sort}', expected one of {', '.join(REVIEW_SORTS)}"
            )
        await self._get_worksheet(worksheet_id)

        items, total = await self.repo.list_reviews(worksheet_id, sort=sort, limit=limit, offset=offset)
        return ReviewListResponse(
            items=[ReviewResponse.model_validate(r) for r in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def mark_helpful(self, review_id: str, caller: Caller) -> ReviewResponse:
        """Count a helpful vote. Ratings are not affected."""
        review = await self._get_review(review_id)
        if review.user_id == caller.id:
            raise AuthorizationError("You cannot mark your own review as helpful")

        helpful_count = await self.repo.increment_helpful(review_id)
        await self.db.commit()
        return ReviewResponse.model_validate(review).model_copy(
            update={"helpful_count": helpful_count}
        )

    # =========================================================================
    # Contributors
    # =========================================================================

    async def contributor_profile(self, user_id: str) -> ContributorProfile:
        totals = await self.repo.contributor_totals(user_id)
        return ContributorProfile(user_id=user_id, **totals)
