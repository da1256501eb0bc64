# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data access for worksheets and their dependent records.

All queries of the worksheet services go through WorksheetRepository so
the services can be unit-tested against a mocked repository.

Shared aggregates (average_rating, review_count, clone_count,
helpful_count) are only changed here, through single-statement SQL
updates. Guarded state changes (assignment completion, flag resolution,
first view of an assignment) are conditional UPDATEs whose rowcount tells
the caller whether it won.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.worksheet.models import (
    AssignmentStatus,
    FlagStatus,
    WorksheetStatus,
)
from src.infrastructure.database.models import (
    ScreeningDomainScore,
    Worksheet,
    WorksheetAssignment,
    WorksheetCompletion,
    WorksheetFlag,
    WorksheetImage,
    WorksheetReview,
)

logger = logging.getLogger(__name__)

# Guard against malformed lineage when walking up a version tree
MAX_VERSION_DEPTH = 50

COMMUNITY_SORTS = {
    "newest": (Worksheet.published_at.desc().nulls_last(), Worksheet.id),
    "highest_rated": (Worksheet.average_rating.desc().nulls_last(), Worksheet.review_count.desc(), Worksheet.id),
    "most_cloned": (Worksheet.clone_count.desc(), Worksheet.id),
    "title": (Worksheet.title.asc(), Worksheet.id),
}

REVIEW_SORTS = {
    "newest": (WorksheetReview.created_at.desc(),),
    "oldest": (WorksheetReview.created_at.asc(),),
    "highest": (WorksheetReview.rating.desc(), WorksheetReview.created_at.desc()),
    "lowest": (WorksheetReview.rating.asc(), WorksheetReview.created_at.desc()),
    "most_helpful": (WorksheetReview.helpful_count.desc(), WorksheetReview.created_at.desc()),
}


class WorksheetRepository:
    """Repository over the worksheet tables.

    Attributes:
        db: Async database session. The caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def add(self, entity: Any) -> Any:
        """Stage a new row and flush it so generated ids are available."""
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def _paged(self, query: Select, limit: int, offset: int) -> tuple[list[Any], int]:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all()), total

    # =========================================================================
    # Worksheets
    # =========================================================================

    async def get_worksheet(self, worksheet_id: str, for_update: bool = False) -> Worksheet | None:
        """Load a worksheet, optionally locking its row for the transaction."""
        query = select(Worksheet).where(Worksheet.id == worksheet_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_library(
        self,
        owner_id: str,
        *,
        type: str | None = None,
        status: str | None = None,
        difficulty: str | None = None,
        sub_type: str | None = None,
        child_id: str | None = None,
        domain: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Worksheet], int]:
        """List a user's own worksheets. Archived ones are hidden unless asked for."""
        conditions = [Worksheet.created_by_id == owner_id]
        if status:
            conditions.append(Worksheet.status == status)
        else:
            conditions.append(Worksheet.status != WorksheetStatus.ARCHIVED.value)
        if type:
            conditions.append(Worksheet.type == type)
        if difficulty:
            conditions.append(Worksheet.difficulty == difficulty)
        if sub_type:
            conditions.append(Worksheet.sub_type == sub_type)
        if child_id:
            conditions.append(Worksheet.child_id == child_id)
        if domain:
            conditions.append(Worksheet.target_domains.contains([domain]))
        if search:
            conditions.append(Worksheet.title.ilike(f"%{search}%"))

        query = (
            select(Worksheet)
            .where(*conditions)
            .order_by(Worksheet.created_at.desc(), Worksheet.id)
        )
        return await self._paged(query, limit, offset)

    async def browse_public(
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
    ) -> tuple[list[Worksheet], int]:
        """List community worksheets (public and published only)."""
        conditions = [
            Worksheet.is_public.is_(True),
            Worksheet.status == WorksheetStatus.PUBLISHED.value,
        ]
        if type:
            conditions.append(Worksheet.type == type)
        if difficulty:
            conditions.append(Worksheet.difficulty == difficulty)
        if sub_type:
            conditions.append(Worksheet.sub_type == sub_type)
        if domain:
            conditions.append(Worksheet.target_domains.contains([domain]))
        if condition:
            conditions.append(Worksheet.condition_tags.contains([condition]))
        if age_months is not None:
            conditions.append(
                or_(Worksheet.age_range_min.is_(None), Worksheet.age_range_min <= age_months)
            )
            conditions.append(
                or_(Worksheet.age_range_max.is_(None), Worksheet.age_range_max >= age_months)
            )
        if search:
            conditions.append(Worksheet.title.ilike(f"%{search}%"))

        order = COMMUNITY_SORTS.get(sort, COMMUNITY_SORTS["newest"])
        query = select(Worksheet).where(*conditions).order_by(*order)
        return await self._paged(query, limit, offset)

    async def increment_clone_count(self, worksheet_id: str) -> int:
        """Atomically bump the source's clone counter.

        Returns:
            The new clone_count.
        """
        result = await self.db.execute(
            update(Worksheet)
            .where(Worksheet.id == worksheet_id)
            .values(clone_count=Worksheet.clone_count + 1)
            .returning(Worksheet.clone_count)
        )
        return result.scalar_one()

    async def fail_stale_generations(self, started_before: datetime, error: str) -> list[str]:
        """Move every worksheet generating since before the cutoff to failed.

        Returns:
            IDs of the worksheets that were failed.
        """
        result = await self.db.execute(
            update(Worksheet)
            .where(
                Worksheet.status == WorksheetStatus.GENERATING.value,
                Worksheet.generation_started_at < started_before,
            )
            .values(status=WorksheetStatus.FAILED.value, generation_error=error)
            .returning(Worksheet.id)
        )
        return list(result.scalars().all())

    async def find_root_version_id(self, worksheet_id: str) -> str:
        """Walk parent_version_id links up to the version-1 root."""
        current_id = worksheet_id
        for _ in range(MAX_VERSION_DEPTH):
            parent_id = (
                await self.db.execute(
                    select(Worksheet.parent_version_id).where(Worksheet.id == current_id)
                )
            ).scalar_one_or_none()
            if parent_id is None:
                return current_id
            current_id = parent_id

        logger.warning("Version chain deeper than %d for worksheet %s", MAX_VERSION_DEPTH, worksheet_id)
        return current_id

    async def list_version_tree(self, root_id: str) -> list[Worksheet]:
        """Return every worksheet descending from root_id, ordered by version."""
        tree = (
            select(Worksheet.id)
            .where(Worksheet.id == root_id)
            .cte(name="version_tree", recursive=True)
        )
        tree = tree.union_all(
            select(Worksheet.id).where(Worksheet.parent_version_id == tree.c.id)
        )
        result = await self.db.execute(
            select(Worksheet)
            .where(Worksheet.id.in_(select(tree.c.id)))
            .order_by(Worksheet.version, Worksheet.created_at)
        )
        return list(result.scalars().all())

    async def get_image(self, worksheet_id: str, image_id: str) -> WorksheetImage | None:
        result = await self.db.execute(
            select(WorksheetImage).where(
                WorksheetImage.id == image_id,
                WorksheetImage.worksheet_id == worksheet_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_public_candidates(
        self,
        exclude_ids: Sequence[str],
        limit: int,
    ) -> list[Worksheet]:
        """Public published worksheets not in exclude_ids, best rated first."""
        query = select(Worksheet).where(
            Worksheet.is_public.is_(True),
            Worksheet.status == WorksheetStatus.PUBLISHED.value,
        )
        if exclude_ids:
            query = query.where(Worksheet.id.not_in(list(exclude_ids)))
        query = query.order_by(
            Worksheet.average_rating.desc().nulls_last(),
            Worksheet.clone_count.desc(),
            Worksheet.id,
        ).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_worksheets(self, worksheet_ids: Sequence[str]) -> list[Worksheet]:
        if not worksheet_ids:
            return []
        result = await self.db.execute(
            select(Worksheet).where(Worksheet.id.in_(list(worksheet_ids)))
        )
        return list(result.scalars().all())

    async def contributor_totals(self, user_id: str) -> dict[str, Any]:
        """Aggregate a user's public contributions."""
        result = await self.db.execute(
            select(
                func.count(Worksheet.id),
                func.coalesce(func.sum(Worksheet.clone_count), 0),
                func.coalesce(func.sum(Worksheet.review_count), 0),
                func.avg(Worksheet.average_rating),
            ).where(
                Worksheet.created_by_id == user_id,
                Worksheet.is_public.is_(True),
                Worksheet.status == WorksheetStatus.PUBLISHED.value,
            )
        )
        published, clones, reviews, rating = result.one()
        return {
            "published_count": published,
            "total_clones": int(clones),
            "total_reviews": int(reviews),
            "average_rating": round(float(rating), 2) if rating is not None else None,
        }

    # =========================================================================
    # Assignments
    # =========================================================================

    async def get_assignment(self, assignment_id: str) -> WorksheetAssignment | None:
        result = await self.db.execute(
            select(WorksheetAssignment).where(WorksheetAssignment.id == assignment_id)
        )
        return result.scalar_one_or_none()

    async def list_assignments(
        self,
        *,
        assigned_by_id: str | None = None,
        assigned_to_id: str | None = None,
        status: str | None = None,
        child_id: str | None = None,
        case_id: str | None = None,
        overdue_at: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WorksheetAssignment], int]:
        """List assignments sent by or received by a user.

        overdue_at selects open assignments whose due date is before it.
        """
        conditions = []
        if assigned_by_id:
            conditions.append(WorksheetAssignment.assigned_by_id == assigned_by_id)
        if assigned_to_id:
            conditions.append(WorksheetAssignment.assigned_to_id == assigned_to_id)
        if status:
            conditions.append(WorksheetAssignment.status == status)
        if child_id:
            conditions.append(WorksheetAssignment.child_id == child_id)
        if case_id:
            conditions.append(WorksheetAssignment.case_id == case_id)
        if overdue_at is not None:
            conditions.append(WorksheetAssignment.due_date < overdue_at)
            conditions.append(WorksheetAssignment.status != AssignmentStatus.COMPLETED.value)

        query = (
            select(WorksheetAssignment)
            .where(*conditions)
            .order_by(WorksheetAssignment.created_at.desc(), WorksheetAssignment.id)
        )
        return await self._paged(query, limit, offset)

    async def is_assignment_party(self, worksheet_id: str, user_id: str) -> bool:
        """Whether the user sent or received an assignment of the worksheet."""
        result = await self.db.execute(
            select(WorksheetAssignment.id)
            .where(
                WorksheetAssignment.worksheet_id == worksheet_id,
                or_(
                    WorksheetAssignment.assigned_to_id == user_id,
                    WorksheetAssignment.assigned_by_id == user_id,
                ),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def advance_assignment_status(
        self,
        assignment_id: str,
        expected: AssignmentStatus,
        target: AssignmentStatus,
        values: dict[str, Any],
    ) -> bool:
        """Move an assignment from expected to target if nobody moved it first.

        Returns:
            True if this call performed the update.
        """
        result = await self.db.execute(
            update(WorksheetAssignment)
            .where(
                WorksheetAssignment.id == assignment_id,
                WorksheetAssignment.status == expected.value,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def complete_assignment(self, assignment_id: str, completed_at: datetime) -> bool:
        """Mark an assignment completed unless it already is.

        Returns:
            True if this call completed the assignment.
        """
        result = await self.db.execute(
            update(WorksheetAssignment)
            .where(
                WorksheetAssignment.id == assignment_id,
                WorksheetAssignment.status != AssignmentStatus.COMPLETED.value,
            )
            .values(status=AssignmentStatus.COMPLETED.value, completed_at=completed_at)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    # =========================================================================
    # Completions
    # =========================================================================

    async def get_completion(self, completion_id: str) -> WorksheetCompletion | None:
        result = await self.db.execute(
            select(WorksheetCompletion).where(WorksheetCompletion.id == completion_id)
        )
        return result.scalar_one_or_none()

    async def list_completions(
        self,
        *,
        worksheet_id: str | None = None,
        child_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WorksheetCompletion], int]:
        conditions = []
        if worksheet_id:
            conditions.append(WorksheetCompletion.worksheet_id == worksheet_id)
        if child_id:
            conditions.append(WorksheetCompletion.child_id == child_id)
        query = (
            select(WorksheetCompletion)
            .where(*conditions)
            .order_by(WorksheetCompletion.completed_at.desc(), WorksheetCompletion.id)
        )
        return await self._paged(query, limit, offset)

    async def child_completions_with_worksheets(
        self,
        child_id: str,
        *,
        domain: str | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[tuple[WorksheetCompletion, Worksheet]]:
        """Completions of a child joined with their worksheets."""
        query = (
            select(WorksheetCompletion, Worksheet)
            .join(Worksheet, Worksheet.id == WorksheetCompletion.worksheet_id)
            .where(WorksheetCompletion.child_id == child_id)
        )
        if domain:
            query = query.where(Worksheet.target_domains.contains([domain]))
        if newest_first:
            query = query.order_by(WorksheetCompletion.completed_at.desc(), WorksheetCompletion.id)
        else:
            query = query.order_by(WorksheetCompletion.completed_at.asc(), WorksheetCompletion.id)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def completed_worksheet_ids(self, child_id: str) -> set[str]:
        result = await self.db.execute(
            select(WorksheetCompletion.worksheet_id)
            .where(WorksheetCompletion.child_id == child_id)
            .distinct()
        )
        return set(result.scalars().all())

    async def worksheet_completions(self, worksheet_id: str) -> list[WorksheetCompletion]:
        """All completions of one worksheet, oldest first."""
        result = await self.db.execute(
            select(WorksheetCompletion)
            .where(WorksheetCompletion.worksheet_id == worksheet_id)
            .order_by(WorksheetCompletion.completed_at.asc(), WorksheetCompletion.id)
        )
        return list(result.scalars().all())

    async def worksheets_completed_by_at_least(self, min_children: int) -> list[str]:
        """Worksheets completed by at least min_children distinct children."""
        result = await self.db.execute(
            select(WorksheetCompletion.worksheet_id)
            .group_by(WorksheetCompletion.worksheet_id)
            .having(func.count(func.distinct(WorksheetCompletion.child_id)) >= min_children)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Reviews
    # =========================================================================

    async def get_review(self, review_id: str) -> WorksheetReview | None:
        result = await self.db.execute(
            select(WorksheetReview).where(WorksheetReview.id == review_id)
        )
        return result.scalar_one_or_none()

    async def get_user_review(self, worksheet_id: str, user_id: str) -> WorksheetReview | None:
        result = await self.db.execute(
            select(WorksheetReview).where(
                WorksheetReview.worksheet_id == worksheet_id,
                WorksheetReview.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def delete_review(self, review_id: str) -> None:
        await self.db.execute(delete(WorksheetReview).where(WorksheetReview.id == review_id))

    async def list_reviews(
        self,
        worksheet_id: str,
        sort: str = "newest",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WorksheetReview], int]:
        order = REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"])
        query = (
            select(WorksheetReview)
            .where(WorksheetReview.worksheet_id == worksheet_id)
            .order_by(*order, WorksheetReview.id)
        )
        return await self._paged(query, limit, offset)

    async def increment_helpful(self, review_id: str) -> int:
        """Atomically bump a review's helpful counter. Returns the new count."""
        result = await self.db.execute(
            update(WorksheetReview)
            .where(WorksheetReview.id == review_id)
            .values(helpful_count=WorksheetReview.helpful_count + 1)
            .returning(WorksheetReview.helpful_count)
        )
        return result.scalar_one()

    async def recompute_rating(self, worksheet_id: str) -> tuple[float | None, int]:
        """Recompute average_rating and review_count from the reviews table.

        A single UPDATE with scalar subqueries, run after the worksheet row
        has been locked by the caller.

        Returns:
            Tuple of (average_rating, review_count).
        """
        average = (
            select(func.round(func.avg(WorksheetReview.rating), 2))
            .where(WorksheetReview.worksheet_id == worksheet_id)
            .scalar_subquery()
        )
        count = (
            select(func.count(WorksheetReview.id))
            .where(WorksheetReview.worksheet_id == worksheet_id)
            .scalar_subquery()
        )
        result = await self.db.execute(
            update(Worksheet)
            .where(Worksheet.id == worksheet_id)
            .values(average_rating=average, review_count=count)
            .returning(Worksheet.average_rating, Worksheet.review_count)
            .execution_options(synchronize_session="fetch")
        )
        rating, total = result.one()
        return (float(rating) if rating is not None else None), total

    # =========================================================================
    # Flags
    # =========================================================================

    async def get_flag(self, flag_id: str) -> WorksheetFlag | None:
        result = await self.db.execute(select(WorksheetFlag).where(WorksheetFlag.id == flag_id))
        return result.scalar_one_or_none()

    async def get_pending_flag(self, worksheet_id: str, reporter_id: str) -> WorksheetFlag | None:
        result = await self.db.execute(
            select(WorksheetFlag).where(
                WorksheetFlag.worksheet_id == worksheet_id,
                WorksheetFlag.flagged_by_id == reporter_id,
                WorksheetFlag.status == FlagStatus.PENDING.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_flags(
        self,
        *,
        status: str | None = None,
        reason: str | None = None,
        worksheet_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WorksheetFlag], int]:
        conditions = []
        if status:
            conditions.append(WorksheetFlag.status == status)
        if reason:
            conditions.append(WorksheetFlag.reason == reason)
        if worksheet_id:
            conditions.append(WorksheetFlag.worksheet_id == worksheet_id)
        query = (
            select(WorksheetFlag)
            .where(*conditions)
            .order_by(WorksheetFlag.created_at.asc(), WorksheetFlag.id)
        )
        return await self._paged(query, limit, offset)

    async def resolve_flag(
        self,
        flag_id: str,
        status: FlagStatus,
        resolution: str | None,
        resolved_by_id: str,
        resolved_at: datetime,
    ) -> bool:
        """Resolve a flag if it is still pending.

        Returns:
            True if this call resolved the flag.
        """
        result = await self.db.execute(
            update(WorksheetFlag)
            .where(
                WorksheetFlag.id == flag_id,
                WorksheetFlag.status == FlagStatus.PENDING.value,
            )
            .values(
                status=status.value,
                resolution=resolution,
                resolved_by_id=resolved_by_id,
                resolved_at=resolved_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def flag_counts(self) -> dict[str, int]:
        """Count flags by status."""
        result = await self.db.execute(
            select(WorksheetFlag.status, func.count(WorksheetFlag.id)).group_by(WorksheetFlag.status)
        )
        return {status: count for status, count in result.all()}

    async def count_flagged_worksheets(self) -> int:
        result = await self.db.execute(
            select(func.count(Worksheet.id)).where(
                Worksheet.status == WorksheetStatus.FLAGGED.value
            )
        )
        return result.scalar_one()

    # =========================================================================
    # Screening scores
    # =========================================================================

    async def screening_scores(
        self,
        child_ids: Sequence[str],
        domains: Sequence[str] | None = None,
    ) -> list[ScreeningDomainScore]:
        """Screening domain scores for the given children, oldest first."""
        if not child_ids:
            return []
        query = select(ScreeningDomainScore).where(
            ScreeningDomainScore.child_id.in_(list(child_ids))
        )
        if domains:
            query = query.where(ScreeningDomainScore.domain.in_(list(domains)))
        result = await self.db.execute(
            query.order_by(ScreeningDomainScore.measured_at.asc(), ScreeningDomainScore.id)
        )
        return list(result.scalars().all())
