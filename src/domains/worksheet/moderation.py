# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Moderation of community worksheets.

Users report public worksheets with flags. Submitting a flag never changes
the worksheet; only a moderator resolving a flag as ``actioned`` moves the
worksheet to FLAGGED and hides it. A flagged worksheet is then restored to
PUBLISHED or retired to ARCHIVED.

Flags are independent: resolving one leaves the other pending flags on
the same worksheet untouched.
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
from src.domains.worksheet.lifecycle import can_transition, transition
from src.domains.worksheet.models import (
    Caller,
    FlagReason,
    FlagStatus,
    LifecycleAction,
    WorksheetStatus,
)
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.schemas import (
    FlagListResponse,
    FlagRequest,
    FlagResponse,
    ModerationStats,
    ResolveFlagRequest,
    WorksheetResponse,
)
from src.infrastructure.database.models import Worksheet, WorksheetFlag
from src.infrastructure.events import EventTypes, get_event_bus
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class ModerationService:
    """Service for flags and moderator decisions.

    Attributes:
        db: Async database session.
        repo: Worksheet repository.
    """

    def __init__(self, db: AsyncSession, repository: Optional[WorksheetRepository] = None) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)

    @staticmethod
    def _require_moderator(caller: Caller) -> None:
        if not caller.is_moderator:
            raise AuthorizationError("Moderator or admin role required")

    async def _get_worksheet(self, worksheet_id: str, for_update: bool = False) -> Worksheet:
        worksheet = await self.repo.get_worksheet(worksheet_id, for_update=for_update)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")
        return worksheet

    async def flag(
        self,
        worksheet_id: str,
        request: FlagRequest,
        caller: Caller,
    ) -> FlagResponse:
        """Report a community worksheet.

        Raises:
            NotFoundError: If the worksheet does not exist.
            StateConflictError: If the worksheet is not public and published,
                or the caller already has a pending flag on it.
            AuthorizationError: If the caller owns the worksheet.
        """
        worksheet = await self._get_worksheet(worksheet_id)
        if not worksheet.is_public or worksheet.status != WorksheetStatus.PUBLISHED.value:
            raise StateConflictError("Only public, published worksheets can be flagged")
        if worksheet.created_by_id == caller.id:
            raise AuthorizationError("You cannot flag your own worksheet")
        if await self.repo.get_pending_flag(worksheet_id, caller.id) is not None:
            raise StateConflictError("You already have a pending flag on this worksheet")

        flag = WorksheetFlag(
            worksheet_id=worksheet_id,
            flagged_by_id=caller.id,
            reason=request.reason.value,
            details=request.details,
            status=FlagStatus.PENDING.value,
        )
        try:
            await self.repo.add(flag)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise StateConflictError("You already have a pending flag on this worksheet") from e

        logger.info(
            "Worksheet %s flagged by %s: reason=%s",
            worksheet_id,
            caller.id,
            request.reason.value,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.FLAGGED,
            {"worksheet_id": worksheet_id, "flag_id": flag.id, "reason": request.reason.value},
        )
        return FlagResponse.model_validate(flag)

    async def queue(
        self,
        caller: Caller,
        *,
        status: str | None = FlagStatus.PENDING.value,
        reason: str | None = None,
        worksheet_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> FlagListResponse:
        """List flags for review, oldest first."""
        self._require_moderator(caller)
        try:
            status = FlagStatus(status).value if status else None
            reason = FlagReason(reason).value if reason else None
        except ValueError as e:
            raise ValidationError(str(e)) from e

        items, total = await self.repo.list_flags(
            status=status,
            reason=reason,
            worksheet_id=worksheet_id,
            limit=limit,
            offset=offset,
        )
        return FlagListResponse(
            items=[FlagResponse.model_validate(f) for f in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def resolve(
        self,
        flag_id: str,
        request: ResolveFlagRequest,
        caller: Caller,
    ) -> FlagResponse:
        """Resolve a pending flag.

        ``actioned`` moves the worksheet to FLAGGED and hides it;
        ``reviewed`` and ``dismissed`` leave the worksheet as it is.

        Raises:
            AuthorizationError: If the caller is not a moderator or admin.
            NotFoundError: If the flag does not exist.
            StateConflictError: If the flag was already resolved.
        """
        self._require_moderator(caller)

        flag = await self.repo.get_flag(flag_id)
        if flag is None:
            raise NotFoundError(f"Flag {flag_id} not found")

        resolved_at = utc_now()
        resolved = await self.repo.resolve_flag(
            flag_id, request.status, request.resolution, caller.id, resolved_at
        )
        if not resolved:
            await self.db.rollback()
            raise StateConflictError("Flag has already been resolved")

        flag.status = request.status.value
        flag.resolution = request.resolution
        flag.resolved_by_id = caller.id
        flag.resolved_at = resolved_at

        if request.status == FlagStatus.ACTIONED:
            worksheet = await self._get_worksheet(flag.worksheet_id, for_update=True)
            if can_transition(worksheet.status, LifecycleAction.FLAG):
                new_status, _ = transition(worksheet.status, LifecycleAction.FLAG)
                worksheet.status = new_status.value
                worksheet.is_public = False
                logger.warning("Worksheet %s flagged by moderation", worksheet.id)
            else:
                logger.info(
                    "Actioned flag %s leaves worksheet %s in status %s",
                    flag_id,
                    worksheet.id,
                    worksheet.status,
                )

        await self.db.commit()

        logger.info("Flag %s resolved as %s by %s", flag_id, request.status.value, caller.id)
        await get_event_bus().publish(
            EventTypes.Worksheet.FLAG_RESOLVED,
            {
                "flag_id": flag_id,
                "worksheet_id": flag.worksheet_id,
                "status": request.status.value,
            },
        )
        return FlagResponse.model_validate(flag)

    async def restore(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        """Return a flagged worksheet to the community."""
        self._require_moderator(caller)
        worksheet = await self._get_worksheet(worksheet_id, for_update=True)

        new_status, _ = transition(worksheet.status, LifecycleAction.RESTORE)
        worksheet.status = new_status.value
        worksheet.is_public = True
        if worksheet.published_at is None:
            worksheet.published_at = utc_now()
        await self.db.commit()

        logger.info("Worksheet restored by %s: %s", caller.id, worksheet_id)
        await get_event_bus().publish(
            EventTypes.Worksheet.RESTORED,
            {"worksheet_id": worksheet_id, "moderator_id": caller.id},
        )
        return WorksheetResponse.model_validate(worksheet)

    async def retire(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        """Archive a flagged worksheet for good."""
        self._require_moderator(caller)
        worksheet = await self._get_worksheet(worksheet_id, for_update=True)

        new_status, _ = transition(worksheet.status, LifecycleAction.RETIRE)
        worksheet.status = new_status.value
        worksheet.is_public = False
        await self.db.commit()

        logger.info("Worksheet retired by %s: %s", caller.id, worksheet_id)
        await get_event_bus().publish(
            EventTypes.Worksheet.RETIRED,
            {"worksheet_id": worksheet_id, "moderator_id": caller.id},
        )
        return WorksheetResponse.model_validate(worksheet)

    async def stats(self, caller: Caller) -> ModerationStats:
        self._require_moderator(caller)
        counts = await self.repo.flag_counts()
        flagged = await self.repo.count_flagged_worksheets()
        return ModerationStats(
            pending=counts.get(FlagStatus.PENDING.value, 0),
            reviewed=counts.get(FlagStatus.REVIEWED.value, 0),
            dismissed=counts.get(FlagStatus.DISMISSED.value, 0),
            actioned=counts.get(FlagStatus.ACTIONED.value, 0),
            flagged_worksheets=flagged,
        )
