# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet library service.

This module provides the WorksheetService class for:
- Reading a worksheet and listing the caller's library
- Editing, archiving and linking worksheets to cases
- Regenerating one content section or one image
- Creating new versions and listing the version tree
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.worksheet.errors import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    StateConflictError,
)
from src.domains.worksheet.lifecycle import READ_ONLY_STATUSES, transition
from src.domains.worksheet.models import (
    Caller,
    ImageStatus,
    LifecycleAction,
    WorksheetStatus,
)
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.schemas import (
    LinkCaseRequest,
    RegenerateImageRequest,
    RegenerateSectionRequest,
    UpdateWorksheetRequest,
    VersionEntry,
    WorksheetImageResponse,
    WorksheetListResponse,
    WorksheetResponse,
    WorksheetSummary,
)
from src.infrastructure.database.models import Worksheet, WorksheetImage
from src.infrastructure.events import EventTypes, get_event_bus
from src.services.worksheet_ai import (
    ContentGenerationError,
    WorksheetAIError,
    WorksheetContentGenerator,
    WorksheetImageGenerator,
)
from src.services.worksheet_ai.prompts import build_image_prompt

logger = logging.getLogger(__name__)

# Content keys whose list items carry an "id" and can be regenerated one by one
SECTION_KEYS = ("sections", "steps", "pages", "levels", "goals", "days", "timeBlocks")

# A flagged worksheet's content may not re-enter circulation as a new version
UNVERSIONABLE_STATUSES = frozenset(
    {
        WorksheetStatus.GENERATING.value,
        WorksheetStatus.FAILED.value,
        WorksheetStatus.FLAGGED.value,
    }
)


def copy_worksheet(source: Worksheet, owner_id: str, **overrides: Any) -> Worksheet:
    """Build a private draft copy of a worksheet with deep-copied content and images.

    Community signals (ratings, clones, publication) are not carried over.
    """
    fields: dict[str, Any] = {
        "title": source.title,
        "type": source.type,
        "sub_type": source.sub_type,
        "difficulty": source.difficulty,
        "color_mode": source.color_mode,
        "data_source": source.data_source,
        "content": copy.deepcopy(source.content or {}),
        "generation_params": copy.deepcopy(source.generation_params or {}),
        "target_domains": list(source.target_domains or []),
        "condition_tags": list(source.condition_tags or []),
        "age_range_min": source.age_range_min,
        "age_range_max": source.age_range_max,
        "status": WorksheetStatus.DRAFT.value,
        "is_public": False,
        "review_count": 0,
        "clone_count": 0,
        "version": 1,
        "created_by_id": owner_id,
        "child_id": source.child_id,
        "case_id": source.case_id,
        "screening_id": source.screening_id,
        "pdf_url": source.pdf_url,
        "preview_url": source.preview_url,
        "images": [
            WorksheetImage(
                prompt=image.prompt,
                alt_text=image.alt_text,
                position=image.position,
                image_url=image.image_url,
                status=image.status,
                error=image.error,
            )
            for image in source.images
        ],
    }
    fields.update(overrides)
    return Worksheet(**fields)


def find_section(content: dict[str, Any], section_id: str) -> tuple[str, int] | None:
    """Locate a section by id. Returns (content key, index) or None."""
    for key in SECTION_KEYS:
        items = content.get(key)
        if not isinstance(items, list):
            continue
        for index, item in enumerate(items):
            if isinstance(item, dict) and str(item.get("id")) == section_id:
                return key, index
    return None


class WorksheetService:
    """Service for reading and editing worksheets.

    Attributes:
        db: Async database session.
        repo: Worksheet repository.
    """

    def __init__(
        self,
        db: AsyncSession,
        repository: Optional[WorksheetRepository] = None,
        content_generator: Optional[WorksheetContentGenerator] = None,
        image_generator: Optional[WorksheetImageGenerator] = None,
    ) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)
        self._content_generator = content_generator
        self._image_generator = image_generator

    @property
    def content_generator(self) -> WorksheetContentGenerator:
        if self._content_generator is None:
            self._content_generator = WorksheetContentGenerator()
        return self._content_generator

    @property
    def image_generator(self) -> WorksheetImageGenerator:
        if self._image_generator is None:
            self._image_generator = WorksheetImageGenerator()
        return self._image_generator

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_worksheet(self, worksheet_id: str, for_update: bool = False) -> Worksheet:
        worksheet = await self.repo.get_worksheet(worksheet_id, for_update=for_update)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")
        return worksheet

    async def _get_owned(self, worksheet_id: str, caller: Caller, action: str) -> Worksheet:
        worksheet = await self._get_worksheet(worksheet_id, for_update=True)
        if worksheet.created_by_id != caller.id:
            raise AuthorizationError(f"Only the owner can {action} this worksheet")
        return worksheet

    @staticmethod
    def _require_editable(worksheet: Worksheet) -> None:
        if WorksheetStatus(worksheet.status) in READ_ONLY_STATUSES:
            raise StateConflictError(
                f"Worksheet in status '{worksheet.status}' cannot be edited"
            )

    async def can_read(self, worksheet: Worksheet, caller: Caller) -> bool:
        """Owner, moderators, assignment parties, or anyone for community worksheets."""
        if worksheet.created_by_id == caller.id or caller.is_moderator:
            return True
        if worksheet.is_public and worksheet.status == WorksheetStatus.PUBLISHED.value:
            return True
        return await self.repo.is_assignment_party(worksheet.id, caller.id)

    async def get_readable(self, worksheet_id: str, caller: Caller) -> Worksheet:
        """Load a worksheet the caller may read.

        Raises:
            NotFoundError: If the worksheet does not exist.
            AuthorizationError: If the caller may not read it.
        """
        worksheet = await self._get_worksheet(worksheet_id)
        if not await self.can_read(worksheet, caller):
            raise AuthorizationError("You do not have access to this worksheet")
        return worksheet

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        worksheet = await self.get_readable(worksheet_id, caller)
        return WorksheetResponse.model_validate(worksheet)

    async def library(
        self,
        caller: Caller,
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
    ) -> WorksheetListResponse:
        """List the caller's own worksheets. Archived ones only when filtered for."""
        items, total = await self.repo.list_library(
            caller.id,
            type=type,
            status=status,
            difficulty=difficulty,
            sub_type=sub_type,
            child_id=child_id,
            domain=domain.upper() if domain else None,
            search=search,
            limit=limit,
            offset=offset,
        )
        return WorksheetListResponse(
            items=[WorksheetSummary.model_validate(w) for w in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    # =========================================================================
    # Edits
    # =========================================================================

    async def update(
        self,
        worksheet_id: str,
        request: UpdateWorksheetRequest,
        caller: Caller,
    ) -> WorksheetResponse:
        """Edit title, content or condition tags.

        Raises:
            NotFoundError: If the worksheet does not exist.
            AuthorizationError: If the caller is not the owner.
            StateConflictError: If the worksheet is archived, generating or failed.
        """
        worksheet = await self._get_owned(worksheet_id, caller, "edit")
        self._require_editable(worksheet)

        if request.title is not None:
            worksheet.title = request.title
        if request.content is not None:
            worksheet.content = request.content
        if request.condition_tags is not None:
            worksheet.condition_tags = request.condition_tags

        await self.db.commit()
        logger.info("Worksheet updated: %s", worksheet_id)
        return WorksheetResponse.model_validate(worksheet)

    async def archive(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        """Soft-delete a worksheet. Archiving an archived worksheet is a no-op."""
        worksheet = await self._get_owned(worksheet_id, caller, "archive")

        new_status, changed = transition(worksheet.status, LifecycleAction.ARCHIVE)
        if changed:
            worksheet.status = new_status.value
            worksheet.is_public = False
        await self.db.commit()

        if changed:
            logger.info("Worksheet archived: %s", worksheet_id)
            await get_event_bus().publish(
                EventTypes.Worksheet.ARCHIVED,
                {"worksheet_id": worksheet_id, "user_id": caller.id},
            )
        return WorksheetResponse.model_validate(worksheet)

    async def link_case(
        self,
        worksheet_id: str,
        request: LinkCaseRequest,
        caller: Caller,
    ) -> WorksheetResponse:
        worksheet = await self._get_owned(worksheet_id, caller, "link")
        worksheet.case_id = request.case_id
        await self.db.commit()

        logger.info("Worksheet %s linked to case %s", worksheet_id, request.case_id)
        return WorksheetResponse.model_validate(worksheet)

    async def regenerate_section(
        self,
        worksheet_id: str,
        request: RegenerateSectionRequest,
        caller: Caller,
    ) -> WorksheetResponse:
        """Replace one content section with a freshly generated one.

        Raises:
            NotFoundError: If the worksheet or the section does not exist.
            ExternalServiceError: If the content collaborator fails.
        """
        worksheet = await self._get_owned(worksheet_id, caller, "edit")
        self._require_editable(worksheet)

        content = copy.deepcopy(worksheet.content or {})
        location = find_section(content, request.section_id)
        if location is None:
            raise NotFoundError(f"Section {request.section_id} not found")

        try:
            section = await self.content_generator.regenerate_section(
                content, request.section_id, request.instructions
            )
        except ContentGenerationError as e:
            raise ExternalServiceError(e.message, service=e.service, original_error=e) from e

        key, index = location
        content[key][index] = section
        worksheet.content = content
        await self.db.commit()

        logger.info("Section %s regenerated for worksheet %s", request.section_id, worksheet_id)
        return WorksheetResponse.model_validate(worksheet)

    async def regenerate_image(
        self,
        worksheet_id: str,
        request: RegenerateImageRequest,
        caller: Caller,
    ) -> WorksheetImageResponse:
        """Regenerate a single image.

        Only the image's sub-status changes; a failure is recorded on the
        image and returned, the worksheet status is untouched.
        """
        worksheet = await self._get_owned(worksheet_id, caller, "edit")
        self._require_editable(worksheet)

        image = await self.repo.get_image(worksheet_id, request.image_id)
        if image is None:
            raise NotFoundError(f"Image {request.image_id} not found")

        if request.prompt:
            child = (worksheet.generation_params or {}).get("child") or {}
            image.prompt = build_image_prompt(
                request.prompt,
                worksheet.color_mode,
                age_months=child.get("age_months"),
                interests=(worksheet.generation_params or {}).get("interests"),
                setting=(worksheet.generation_params or {}).get("setting"),
            )
        image.status = ImageStatus.GENERATING.value
        image.error = None
        await self.db.commit()

        try:
            image.image_url = await self.image_generator.generate(image.prompt, worksheet_id)
            image.status = ImageStatus.COMPLETED.value
        except WorksheetAIError as e:
            logger.warning("Image regeneration failed for worksheet %s: %s", worksheet_id, str(e))
            image.status = ImageStatus.FAILED.value
            image.error = e.message[:1000]
        await self.db.commit()

        return WorksheetImageResponse.model_validate(image)

    # =========================================================================
    # Versions
    # =========================================================================

    async def create_version(self, worksheet_id: str, caller: Caller) -> WorksheetResponse:
        """Create the next version of a worksheet as a new draft.

        The new version number is one more than the highest in the tree,
        so branching from an old version never reuses a number.
        """
        source = await self._get_owned(worksheet_id, caller, "version")
        if source.status in UNVERSIONABLE_STATUSES:
            raise StateConflictError(
                f"Cannot version a worksheet in status '{source.status}'"
            )

        root_id = await self.repo.find_root_version_id(source.id)
        # Versions of one tree are numbered under the root's row lock
        await self.repo.get_worksheet(root_id, for_update=True)
        tree = await self.repo.list_version_tree(root_id)
        next_version = max((node.version for node in tree), default=source.version) + 1

        new_version = copy_worksheet(
            source,
            caller.id,
            version=next_version,
            parent_version_id=source.id,
            cloned_from_id=source.cloned_from_id,
        )
        await self.repo.add(new_version)
        await self.db.commit()

        logger.info(
            "Version %d created from worksheet %s: %s",
            next_version,
            worksheet_id,
            new_version.id,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.VERSION_CREATED,
            {"worksheet_id": new_version.id, "parent_version_id": source.id, "version": next_version},
        )
        return WorksheetResponse.model_validate(new_version)

    async def versions(self, worksheet_id: str, caller: Caller) -> list[VersionEntry]:
        """List the whole version tree the worksheet belongs to, ordered by version."""
        worksheet = await self.get_readable(worksheet_id, caller)
        root_id = await self.repo.find_root_version_id(worksheet.id)
        tree = await self.repo.list_version_tree(root_id)
        return [VersionEntry.model_validate(node) for node in tree]
