# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Asynchronous worksheet generation.

A generation request creates the worksheet in GENERATING, commits, queues
a background job and returns immediately. The job produces the content
(with bounded retries), the illustrations and the PDF, then moves the
worksheet to DRAFT. If content generation gives up, the worksheet moves
to FAILED with a generation_error. A periodic sweep fails worksheets
stuck in GENERATING past the configured timeout.

Image and PDF failures never fail the worksheet: images carry their own
sub-status and a failed PDF simply leaves pdf_url empty.

Example:
    coordinator = GenerationCoordinator(db)
    accepted = await coordinator.request_generation(request, caller)
    ...
    status = await coordinator.get_status(accepted.id, caller)
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import GenerationSettings, get_settings
from src.domains.worksheet.errors import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from src.domains.worksheet.lifecycle import transition
from src.domains.worksheet.models import (
    Caller,
    DataSource,
    ImageStatus,
    LifecycleAction,
    WorksheetStatus,
    WorksheetType,
)
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.schemas import (
    GenerateWorksheetRequest,
    GenerationAcceptedResponse,
    GenerationStatusResponse,
    ImageProgress,
)
from src.infrastructure.database.models import Worksheet, WorksheetImage
from src.infrastructure.events import EventTypes, get_event_bus
from src.services.worksheet_ai import (
    ContentGenerationError,
    PdfRenderError,
    WorksheetAIError,
    WorksheetContentGenerator,
    WorksheetImageGenerator,
    WorksheetPdfRenderer,
)
from src.services.worksheet_ai.prompts import build_image_prompt
from src.utils.datetime import seconds_ago, utc_now

logger = logging.getLogger(__name__)

# Request field that must carry the input for each data source
SOURCE_INPUT_FIELDS: dict[DataSource, str] = {
    DataSource.MANUAL: "manual_input",
    DataSource.SCREENING: "screening_input",
    DataSource.UPLOADED_REPORT: "uploaded_report_input",
    DataSource.IEP_GOALS: "iep_goals_input",
    DataSource.SESSION_NOTES: "session_notes_input",
}

STRUCTURED_PLAN_MAX_BLOCKS = 6
STRUCTURED_PLAN_MAX_DAYS = 5

TIMEOUT_ERROR = "Generation timed out"


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _dicts(value: Any) -> list[dict[str, Any]]:
    return [item for item in _list(value) if isinstance(item, dict)]


def extract_image_prompts(
    worksheet_type: WorksheetType | str,
    content: dict[str, Any],
    max_images: int,
) -> list[tuple[str, str]]:
    """Collect illustration descriptions from generated content.

    Args:
        worksheet_type: Type of the worksheet the content belongs to.
        content: Generated content document.
        max_images: Upper bound on the number of prompts returned.

    Returns:
        List of (description, alt text) pairs in document order.
    """
    worksheet_type = WorksheetType(worksheet_type)
    prompts: list[tuple[str, str]] = []

    def collect(item: Any, alt_key: str) -> None:
        if not isinstance(item, dict):
            return
        description = item.get("imagePrompt")
        if description and isinstance(description, str):
            prompts.append((description, str(item.get(alt_key) or description)[:500]))

    if worksheet_type == WorksheetType.ACTIVITY:
        for section in _dicts(content.get("sections")):
            for activity in _list(section.get("activities")):
                collect(activity, "name")

    elif worksheet_type == WorksheetType.VISUAL_SUPPORT:
        items = content.get("steps") or content.get("pages") or content.get("levels")
        for item in _list(items):
            collect(item, "text")

    elif worksheet_type == WorksheetType.STRUCTURED_PLAN:
        blocks = _dicts(content.get("timeBlocks"))
        if blocks:
            for block in blocks[:STRUCTURED_PLAN_MAX_BLOCKS]:
                collect(block.get("activity"), "name")
        else:
            for day in _dicts(content.get("days"))[:STRUCTURED_PLAN_MAX_DAYS]:
                activities = _list(day.get("activities"))
                if activities:
                    collect(activities[0], "name")

    return prompts[:max_images]


def _send_generation_job(worksheet_id: str) -> None:
    # Imported here so the domain layer does not pull in the broker at import time
    from src.infrastructure.background.tasks.generation import generate_worksheet

    generate_worksheet.send(worksheet_id)


class GenerationCoordinator:
    """Drives worksheet generation from request to ready or failed.

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
        pdf_renderer: Optional[WorksheetPdfRenderer] = None,
        settings: Optional[GenerationSettings] = None,
        dispatch: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)
        self._content_generator = content_generator
        self._image_generator = image_generator
        self._pdf_renderer = pdf_renderer
        self.settings = settings or get_settings().generation
        self._dispatch = dispatch or _send_generation_job

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

    @property
    def pdf_renderer(self) -> WorksheetPdfRenderer:
        if self._pdf_renderer is None:
            self._pdf_renderer = WorksheetPdfRenderer()
        return self._pdf_renderer

    # =========================================================================
    # Request
    # =========================================================================

    async def request_generation(
        self,
        request: GenerateWorksheetRequest,
        caller: Caller,
    ) -> GenerationAcceptedResponse:
        """Create a worksheet in GENERATING and queue the generation job.

        Args:
            request: Generation parameters and the data-source input.
            caller: Requesting user, who becomes the owner.

        Returns:
            The new worksheet id and a polling hint.

        Raises:
            ValidationError: If the data-source input does not match the
                declared data source.
            ExternalServiceError: If the job could not be queued.
        """
        source_input = self._validate_source_input(request)

        child: dict[str, Any] = {}
        child_id = request.child_id
        case_id = request.case_id
        screening_id = None

        if request.manual_input is not None:
            child = {
                "name": request.manual_input.child_name,
                "age_months": request.manual_input.child_age_months,
                "developmental_notes": request.manual_input.developmental_notes,
                "concerns": request.manual_input.concerns,
            }
        if request.screening_input is not None:
            child_id = child_id or request.screening_input.child_id
            screening_id = request.screening_input.assessment_id
        if request.iep_goals_input is not None:
            case_id = case_id or request.iep_goals_input.case_id
        if request.session_notes_input is not None:
            case_id = case_id or request.session_notes_input.case_id

        worksheet = Worksheet(
            title=request.title or f"New {request.type.value.replace('_', ' ')} worksheet",
            type=request.type.value,
            sub_type=request.sub_type,
            difficulty=request.difficulty.value,
            color_mode=request.color_mode.value,
            data_source=request.data_source.value,
            content={},
            generation_params={
                "data_source": request.data_source.value,
                "source_input": source_input,
                "child": child,
                "interests": request.interests,
                "duration": request.duration,
                "setting": request.setting,
                "special_instructions": request.special_instructions,
                "condition_tags": request.condition_tags,
                "requested_title": request.title,
            },
            target_domains=request.target_domains,
            condition_tags=request.condition_tags,
            age_range_min=request.age_range_min,
            age_range_max=request.age_range_max,
            status=WorksheetStatus.GENERATING.value,
            is_public=False,
            review_count=0,
            clone_count=0,
            version=1,
            created_by_id=caller.id,
            child_id=child_id,
            case_id=case_id,
            screening_id=screening_id,
            generation_started_at=utc_now(),
            images=[],
        )
        await self.repo.add(worksheet)
        await self.db.commit()

        try:
            self._dispatch(worksheet.id)
        except Exception as e:
            logger.error("Failed to queue generation for worksheet %s: %s", worksheet.id, str(e))
            await self._fail(worksheet.id, "Could not queue generation job")
            raise ExternalServiceError(
                "Could not queue worksheet generation",
                service="task_queue",
                original_error=e,
            ) from e

        logger.info(
            "Generation requested: worksheet=%s, type=%s, source=%s, user=%s",
            worksheet.id,
            worksheet.type,
            worksheet.data_source,
            caller.id,
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.GENERATION_REQUESTED,
            {"worksheet_id": worksheet.id, "user_id": caller.id},
        )

        return GenerationAcceptedResponse(
            id=worksheet.id,
            status=WorksheetStatus.GENERATING,
            poll_after_seconds=self.settings.poll_interval_seconds,
        )

    def _validate_source_input(self, request: GenerateWorksheetRequest) -> dict[str, Any]:
        expected_field = SOURCE_INPUT_FIELDS[request.data_source]
        source_input = getattr(request, expected_field)
        if source_input is None:
            raise ValidationError(
                f"Data source '{request.data_source.value}' requires '{expected_field}'"
            )

        extra = [
            field
            for field in SOURCE_INPUT_FIELDS.values()
            if field != expected_field and getattr(request, field) is not None
        ]
        if extra:
            raise ValidationError(
                f"Data source '{request.data_source.value}' does not accept {', '.join(extra)}"
            )

        return source_input.model_dump(mode="json")

    # =========================================================================
    # Background run
    # =========================================================================

    async def run_generation(self, worksheet_id: str) -> None:
        """Generate content, images and PDF for a GENERATING worksheet.

        Safe to call for a worksheet that is no longer generating (for
        example after the timeout sweep failed it); the call is a no-op.
        """
        worksheet = await self.repo.get_worksheet(worksheet_id)
        if worksheet is None:
            logger.warning("Generation job for unknown worksheet %s", worksheet_id)
            return
        if worksheet.status != WorksheetStatus.GENERATING.value:
            logger.info(
                "Skipping generation for worksheet %s in status %s",
                worksheet_id,
                worksheet.status,
            )
            return

        try:
            content = await self._generate_content(worksheet)
        except ContentGenerationError as e:
            await self._fail(worksheet_id, e.message)
            return

        try:
            await self._finish(worksheet, content)
        except Exception as e:
            logger.exception("Unexpected error while finishing worksheet %s", worksheet_id)
            await self.db.rollback()
            await self._fail(worksheet_id, f"Unexpected generation error: {e}")

    async def _finish(self, worksheet: Worksheet, content: dict[str, Any]) -> None:
        worksheet_id = worksheet.id
        worksheet.content = content
        if content.get("title") and not (worksheet.generation_params or {}).get("requested_title"):
            worksheet.title = str(content["title"])[:255]
        await self.db.commit()

        await self._generate_images(worksheet)
        await self._render_pdf(worksheet)

        locked = await self.repo.get_worksheet(worksheet_id, for_update=True)
        if locked is None or locked.status != WorksheetStatus.GENERATING.value:
            logger.warning(
                "Worksheet %s left generating before completion, keeping status %s",
                worksheet_id,
                locked.status if locked else None,
            )
            await self.db.commit()
            return

        new_status, _ = transition(locked.status, LifecycleAction.GENERATION_SUCCEEDED)
        locked.status = new_status.value
        locked.generation_error = None
        await self.db.commit()

        failed_images = sum(1 for image in locked.images if image.status == ImageStatus.FAILED.value)
        logger.info(
            "Worksheet ready: id=%s, images=%d, failed_images=%d, pdf=%s",
            worksheet_id,
            len(locked.images),
            failed_images,
            bool(locked.pdf_url),
        )
        await get_event_bus().publish(
            EventTypes.Worksheet.READY,
            {
                "worksheet_id": worksheet_id,
                "user_id": locked.created_by_id,
                "degraded": failed_images > 0,
            },
        )

    async def _generate_content(self, worksheet: Worksheet) -> dict[str, Any]:
        max_attempts = max(1, self.settings.max_attempts)
        last_error = ""

        for attempt in range(1, max_attempts + 1):
            try:
                return await asyncio.wait_for(
                    self.content_generator.generate(
                        worksheet_type=worksheet.type,
                        sub_type=worksheet.sub_type,
                        target_domains=list(worksheet.target_domains),
                        difficulty=worksheet.difficulty,
                        params=worksheet.generation_params or {},
                    ),
                    timeout=self.settings.attempt_timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = "Content generation attempt timed out"
            except ContentGenerationError as e:
                last_error = e.message

            logger.warning(
                "Content generation attempt %d/%d failed for worksheet %s: %s",
                attempt,
                max_attempts,
                worksheet.id,
                last_error,
            )
            if attempt < max_attempts:
                await asyncio.sleep(self.settings.retry_backoff_seconds * attempt)

        raise ContentGenerationError(
            f"Content generation failed after {max_attempts} attempts: {last_error}"
        )

    async def _generate_images(self, worksheet: Worksheet) -> None:
        max_images = (
            self.settings.max_images_activity
            if worksheet.type == WorksheetType.ACTIVITY.value
            else self.settings.max_images_default
        )
        prompts = extract_image_prompts(worksheet.type, worksheet.content, max_images)
        if not prompts:
            return

        params = worksheet.generation_params or {}
        child = params.get("child") or {}
        images = []
        for position, (description, alt_text) in enumerate(prompts):
            image = WorksheetImage(
                prompt=build_image_prompt(
                    description,
                    worksheet.color_mode,
                    age_months=child.get("age_months"),
                    interests=params.get("interests"),
                    setting=params.get("setting"),
                ),
                alt_text=alt_text,
                position=position,
                status=ImageStatus.PENDING.value,
            )
            worksheet.images.append(image)
            images.append(image)
        await self.db.commit()

        for image in images:
            await self._generate_image(worksheet.id, image)

    async def _generate_image(self, worksheet_id: str, image: WorksheetImage) -> None:
        image.status = ImageStatus.GENERATING.value
        image.error = None
        await self.db.commit()

        try:
            url = await asyncio.wait_for(
                self.image_generator.generate(image.prompt, worksheet_id),
                timeout=self.settings.image_timeout_seconds,
            )
        except asyncio.TimeoutError:
            image.status = ImageStatus.FAILED.value
            image.error = "Image generation timed out"
        except WorksheetAIError as e:
            image.status = ImageStatus.FAILED.value
            image.error = e.message[:1000]
        except Exception as e:
            logger.exception(
                "Unexpected error generating image %d for worksheet %s",
                image.position,
                worksheet_id,
            )
            image.status = ImageStatus.FAILED.value
            image.error = f"Unexpected image error: {e}"[:1000]
        else:
            image.status = ImageStatus.COMPLETED.value
            image.image_url = url

        if image.status == ImageStatus.FAILED.value:
            logger.warning(
                "Image %d failed for worksheet %s: %s",
                image.position,
                worksheet_id,
                image.error,
            )
        await self.db.commit()

    async def _render_pdf(self, worksheet: Worksheet) -> None:
        document = {
            "worksheetId": worksheet.id,
            "title": worksheet.title,
            "type": worksheet.type,
            "subType": worksheet.sub_type,
            "colorMode": worksheet.color_mode,
            "content": worksheet.content,
            "images": {
                str(image.position): image.image_url
                for image in worksheet.images
                if image.status == ImageStatus.COMPLETED.value
            },
        }
        try:
            rendered = await self.pdf_renderer.render(document)
        except PdfRenderError as e:
            logger.warning("PDF rendering failed for worksheet %s: %s", worksheet.id, str(e))
            return

        worksheet.pdf_url = rendered.pdf_url
        worksheet.preview_url = rendered.preview_url
        await self.db.commit()

    async def _fail(self, worksheet_id: str, error: str) -> None:
        worksheet = await self.repo.get_worksheet(worksheet_id, for_update=True)
        if worksheet is None or worksheet.status != WorksheetStatus.GENERATING.value:
            await self.db.commit()
            return

        new_status, _ = transition(worksheet.status, LifecycleAction.GENERATION_FAILED)
        worksheet.status = new_status.value
        worksheet.generation_error = error[:2000]
        await self.db.commit()

        logger.error("Generation failed for worksheet %s: %s", worksheet_id, error)
        await get_event_bus().publish(
            EventTypes.Worksheet.GENERATION_FAILED,
            {"worksheet_id": worksheet_id, "user_id": worksheet.created_by_id, "error": error},
        )

    # =========================================================================
    # Status and sweep
    # =========================================================================

    async def get_status(self, worksheet_id: str, caller: Caller) -> GenerationStatusResponse:
        """Read generation progress. Never modifies anything.

        Raises:
            NotFoundError: If the worksheet does not exist.
            AuthorizationError: If the caller is not the owner or a moderator.
        """
        worksheet = await self.repo.get_worksheet(worksheet_id)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")
        if worksheet.created_by_id != caller.id and not caller.is_moderator:
            raise AuthorizationError("Only the owner can follow worksheet generation")

        counts = Counter(image.status for image in worksheet.images)
        progress = ImageProgress(
            total=len(worksheet.images),
            pending=counts[ImageStatus.PENDING.value],
            generating=counts[ImageStatus.GENERATING.value],
            completed=counts[ImageStatus.COMPLETED.value],
            failed=counts[ImageStatus.FAILED.value],
        )
        status = WorksheetStatus(worksheet.status)
        is_generating = status == WorksheetStatus.GENERATING

        return GenerationStatusResponse(
            id=worksheet.id,
            status=status,
            pdf_url=worksheet.pdf_url,
            preview_url=worksheet.preview_url,
            error=worksheet.generation_error,
            images=progress,
            degraded=(
                status not in (WorksheetStatus.GENERATING, WorksheetStatus.FAILED)
                and progress.failed > 0
            ),
            poll_after_seconds=self.settings.poll_interval_seconds if is_generating else None,
        )

    async def expire_stale_generations(self) -> list[str]:
        """Fail every worksheet generating for longer than the timeout.

        Returns:
            IDs of the worksheets moved to FAILED.
        """
        cutoff = seconds_ago(self.settings.timeout_seconds)
        expired = await self.repo.fail_stale_generations(cutoff, TIMEOUT_ERROR)
        await self.db.commit()

        if expired:
            logger.warning("Expired %d stale generations", len(expired))
        bus = get_event_bus()
        for worksheet_id in expired:
            await bus.publish(
                EventTypes.Worksheet.GENERATION_FAILED,
                {"worksheet_id": worksheet_id, "error": TIMEOUT_ERROR},
            )
        return expired
