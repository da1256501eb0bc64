# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get the authenticated caller
- Get service instances

Example:
    @router.get("/library")
    async def library(
        caller: AuthenticatedCaller,
        service: WorksheetServiceDep,
    ):
        ...
"""

import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import get_settings
from src.domains.analytics import AnalyticsService
from src.domains.worksheet import (
    AssignmentService,
    CommunityService,
    CompletionService,
    GenerationCoordinator,
    ModerationService,
    WorksheetService,
)
from src.domains.worksheet.models import Caller, UserType
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session.

    Yields:
        AsyncSession committed on success, rolled back on error.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_caller(user: CurrentUser = Depends(require_auth)) -> Caller:
    """Resolve the authenticated user into a Caller with a known role.

    Raises:
        HTTPException: If the token carries no recognised role.
    """
    try:
        user_type = UserType(user.user_type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown user type: {user.user_type}",
        )
    return Caller(id=user.id, user_type=user_type)


class RequireRole:
    """Dependency for requiring specific roles.

    Example:
        @router.get("/moderation/queue")
        async def queue(
            caller: Caller = Depends(RequireRole(UserType.MODERATOR, UserType.ADMIN)),
        ):
            ...
    """

    def __init__(self, *roles: UserType) -> None:
        self.roles = roles

    def __call__(self, caller: Caller = Depends(require_caller)) -> Caller:
        if caller.user_type not in self.roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in self.roles)}",
            )
        return caller


# =========================================================================
# Service Dependencies
# =========================================================================


def get_generation_coordinator(db: AsyncSession = Depends(get_db)) -> GenerationCoordinator:
    return GenerationCoordinator(db)


def get_worksheet_service(db: AsyncSession = Depends(get_db)) -> WorksheetService:
    return WorksheetService(db)


def get_assignment_service(db: AsyncSession = Depends(get_db)) -> AssignmentService:
    return AssignmentService(db)


def get_completion_service(db: AsyncSession = Depends(get_db)) -> CompletionService:
    return CompletionService(db)


def get_community_service(db: AsyncSession = Depends(get_db)) -> CommunityService:
    return CommunityService(db)


def get_moderation_service(db: AsyncSession = Depends(get_db)) -> ModerationService:
    return ModerationService(db)


def get_analytics_service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)


# =========================================================================
# Type Aliases for Cleaner Endpoint Signatures
# =========================================================================

DB = Annotated[AsyncSession, Depends(get_db)]
AuthenticatedCaller = Annotated[Caller, Depends(require_caller)]
AssignerCaller = Annotated[
    Caller, Depends(RequireRole(UserType.THERAPIST, UserType.EDUCATOR, UserType.ADMIN))
]
ModeratorCaller = Annotated[Caller, Depends(RequireRole(UserType.MODERATOR, UserType.ADMIN))]

GenerationCoordinatorDep = Annotated[GenerationCoordinator, Depends(get_generation_coordinator)]
WorksheetServiceDep = Annotated[WorksheetService, Depends(get_worksheet_service)]
AssignmentServiceDep = Annotated[AssignmentService, Depends(get_assignment_service)]
CompletionServiceDep = Annotated[CompletionService, Depends(get_completion_service)]
CommunityServiceDep = Annotated[CommunityService, Depends(get_community_service)]
ModerationServiceDep = Annotated[ModerationService, Depends(get_moderation_service)]
AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]
