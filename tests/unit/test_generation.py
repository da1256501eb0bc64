# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the worksheet generation coordinator."""

import binascii
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.config.settings import GenerationSettings
from src.domains.worksheet.errors import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from src.domains.worksheet.generation import (
    TIMEOUT_ERROR,
    GenerationCoordinator,
    extract_image_prompts,
)
from src.domains.worksheet.models import WorksheetStatus
from src.domains.worksheet.schemas import GenerateWorksheetRequest
from src.infrastructure.events import EventTypes
from src.services.worksheet_ai import (
    ContentGenerationError,
    ImageGenerationError,
    PdfRenderError,
)
from src.services.worksheet_ai.pdf import RenderedPdf

GENERATED_CONTENT = {
    "title": "Stack It Up",
    "sections": [
        {
            "id": "s1",
            "title": "Warm up",
            "activities": [
                {"name": "Cup stacking", "imagePrompt": "A child stacking paper cups"},
                {"name": "Pouring", "imagePrompt": "A child pouring water between cups"},
                {"name": "Clapping"},
            ],
        }
    ],
}


@pytest.fixture
def generation_settings() -> GenerationSettings:
    return GenerationSettings(
        max_attempts=2,
        attempt_timeout_seconds=5,
        retry_backoff_seconds=0,
        timeout_seconds=900,
        poll_interval_seconds=3,
        max_images_activity=5,
        max_images_default=8,
        image_timeout_seconds=5,
    )


@pytest.fixture
def content_generator() -> MagicMock:
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=GENERATED_CONTENT)
    return generator


@pytest.fixture
def image_generator() -> MagicMock:
    generator = MagicMock()
    generator.generate = AsyncMock(return_value="https://media.example.com/img.png")
    return generator


@pytest.fixture
def pdf_renderer() -> MagicMock:
    renderer = MagicMock()
    renderer.render = AsyncMock(
        return_value=RenderedPdf(
            pdf_url="https://media.example.com/w.pdf",
            preview_url="https://media.example.com/w.png",
        )
    )
    return renderer


@pytest.fixture
def dispatch() -> MagicMock:
    return MagicMock()


@pytest.fixture
def coordinator(
    mock_db,
    mock_repo,
    content_generator,
    image_generator,
    pdf_renderer,
    generation_settings,
    dispatch,
) -> GenerationCoordinator:
    return GenerationCoordinator(
        db=mock_db,
        repository=mock_repo,
        content_generator=content_generator,
        image_generator=image_generator,
        pdf_renderer=pdf_renderer,
        settings=generation_settings,
        dispatch=dispatch,
    )


def manual_request(**overrides) -> GenerateWorksheetRequest:
    fields = {
        "data_source": "manual",
        "type": "activity",
        "target_domains": ["fine_motor", "FINE_MOTOR", "language"],
        "manual_input": {"child_age_months": 48, "child_name": "Sam"},
    }
    fields.update(overrides)
    return GenerateWorksheetRequest(**fields)


class TestExtractImagePrompts:
    """Tests for collecting illustration prompts from content."""

    def test_activity_prompts_in_document_order(self) -> None:
        prompts = extract_image_prompts("activity", GENERATED_CONTENT, 5)

        assert prompts == [
            ("A child stacking paper cups", "Cup stacking"),
            ("A child pouring water between cups", "Pouring"),
        ]

    def test_visual_support_uses_steps(self) -> None:
        content = {
            "steps": [
                {"text": "Wash hands", "imagePrompt": "Hands under a tap"},
                {"text": "Dry hands", "imagePrompt": "Hands with a towel"},
            ]
        }

        prompts = extract_image_prompts("VISUAL_SUPPORT", content, 8)

        assert [alt for _, alt in prompts] == ["Wash hands", "Dry hands"]

    def test_structured_plan_falls_back_to_first_activity_per_day(self) -> None:
        content = {
            "days": [
                {"activities": [{"name": "Bubbles", "imagePrompt": "Blowing bubbles"}, {"name": "x", "imagePrompt": "y"}]},
                {"activities": []},
                {"activities": [{"name": "Drawing", "imagePrompt": "Crayons on paper"}]},
            ]
        }

        prompts = extract_image_prompts("structured_plan", content, 8)

        assert prompts == [("Blowing bubbles", "Bubbles"), ("Crayons on paper", "Drawing")]

    def test_respects_max_images(self) -> None:
        assert len(extract_image_prompts("activity", GENERATED_CONTENT, 1)) == 1

    def test_progress_tracker_has_no_images(self) -> None:
        assert extract_image_prompts("progress_tracker", {"goals": []}, 8) == []

    @pytest.mark.parametrize(
        "worksheet_type,content",
        [
            ("activity", {"sections": [{"activities": ["Draw a cat"]}, "Warm up"]}),
            ("activity", {"sections": {"activities": []}}),
            ("visual_support", {"steps": ["Wash hands", {"text": "Dry", "imagePrompt": 3}]}),
            ("structured_plan", {"timeBlocks": [{"activity": "Snack"}]}),
            ("structured_plan", {"days": ["Monday", {"activities": "Bubbles"}]}),
        ],
    )
    def test_malformed_content_yields_no_prompts(self, worksheet_type, content) -> None:
        assert extract_image_prompts(worksheet_type, content, 8) == []


class TestRequestGeneration:
    """Tests for accepting a generation request."""

    @pytest.mark.asyncio
    async def test_creates_generating_worksheet_and_queues_job(
        self, coordinator, mock_repo, mock_db, dispatch, therapist, published_events
    ) -> None:
        accepted = await coordinator.request_generation(manual_request(), therapist)

        worksheet = mock_repo.add.call_args.args[0]
        assert worksheet.status == "generating"
        assert worksheet.created_by_id == therapist.id
        assert worksheet.target_domains == ["FINE_MOTOR", "LANGUAGE"]
        assert worksheet.generation_params["child"]["age_months"] == 48
        assert worksheet.generation_params["source_input"]["child_name"] == "Sam"
        mock_db.commit.assert_awaited()
        dispatch.assert_called_once_with(worksheet.id)

        assert accepted.id == worksheet.id
        assert accepted.status == WorksheetStatus.GENERATING
        assert accepted.poll_after_seconds == 3
        assert [e.event_type for e in published_events] == [
            EventTypes.Worksheet.GENERATION_REQUESTED
        ]

    def test_inverted_age_range_is_rejected(self) -> None:
        from pydantic import ValidationError as PydanticValidationError

        with pytest.raises(PydanticValidationError, match="age_range_min"):
            manual_request(age_range_min=60, age_range_max=24)

        assert manual_request(age_range_min=24, age_range_max=24).age_range_max == 24

    @pytest.mark.asyncio
    async def test_missing_source_input_is_rejected(self, coordinator, mock_repo, therapist) -> None:
        request = manual_request(data_source="screening", manual_input=None)

        with pytest.raises(ValidationError, match="screening_input"):
            await coordinator.request_generation(request, therapist)

        mock_repo.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mismatched_source_input_is_rejected(self, coordinator, therapist) -> None:
        request = manual_request(
            screening_input={"assessment_id": "a1", "child_id": "c1"},
        )

        with pytest.raises(ValidationError, match="does not accept screening_input"):
            await coordinator.request_generation(request, therapist)

    @pytest.mark.asyncio
    async def test_screening_input_links_child_and_assessment(
        self, coordinator, mock_repo, therapist
    ) -> None:
        request = manual_request(
            data_source="screening",
            manual_input=None,
            screening_input={"assessment_id": "assessment-1", "child_id": "child-1"},
        )

        await coordinator.request_generation(request, therapist)

        worksheet = mock_repo.add.call_args.args[0]
        assert worksheet.child_id == "child-1"
        assert worksheet.screening_id == "assessment-1"

    @pytest.mark.asyncio
    async def test_queue_failure_fails_worksheet(
        self, coordinator, mock_repo, dispatch, therapist
    ) -> None:
        dispatch.side_effect = RuntimeError("broker down")
        mock_repo.get_worksheet = AsyncMock(
            side_effect=lambda *args, **kwargs: mock_repo.add.call_args.args[0]
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await coordinator.request_generation(manual_request(), therapist)

        assert exc_info.value.service == "task_queue"
        worksheet = mock_repo.add.call_args.args[0]
        assert worksheet.status == "failed"
        assert worksheet.generation_error == "Could not queue generation job"


class TestRunGeneration:
    """Tests for the background generation run."""

    @pytest.mark.asyncio
    async def test_success_moves_to_draft(
        self,
        coordinator,
        mock_repo,
        make_worksheet,
        image_generator,
        pdf_renderer,
        published_events,
    ) -> None:
        worksheet = make_worksheet(status="generating", content={}, title="New activity worksheet")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)

        await coordinator.run_generation(worksheet.id)

        assert worksheet.status == "draft"
        assert worksheet.title == "Stack It Up"
        assert worksheet.content == GENERATED_CONTENT
        assert [i.status for i in worksheet.images] == ["completed", "completed"]
        assert image_generator.generate.await_count == 2
        assert worksheet.pdf_url == "https://media.example.com/w.pdf"
        assert worksheet.preview_url == "https://media.example.com/w.png"

        document = pdf_renderer.render.call_args.args[0]
        assert document["images"] == {
            "0": "https://media.example.com/img.png",
            "1": "https://media.example.com/img.png",
        }

        ready = published_events[-1]
        assert ready.event_type == EventTypes.Worksheet.READY
        assert ready.payload["degraded"] is False

    @pytest.mark.asyncio
    async def test_requested_title_is_kept(self, coordinator, mock_repo, make_worksheet) -> None:
        worksheet = make_worksheet(
            status="generating",
            title="Morning routine",
            generation_params={"requested_title": "Morning routine"},
        )
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)

        await coordinator.run_generation(worksheet.id)

        assert worksheet.title == "Morning routine"

    @pytest.mark.asyncio
    async def test_image_failure_degrades_but_does_not_fail(
        self, coordinator, mock_repo, make_worksheet, image_generator, published_events
    ) -> None:
        worksheet = make_worksheet(status="generating")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        image_generator.generate.side_effect = [
            "https://media.example.com/1.png",
            ImageGenerationError("quota exceeded"),
        ]

        await coordinator.run_generation(worksheet.id)

        assert worksheet.status == "draft"
        assert [i.status for i in worksheet.images] == ["completed", "failed"]
        assert worksheet.images[1].error == "quota exceeded"
        assert published_events[-1].payload["degraded"] is True

    @pytest.mark.asyncio
    async def test_unexpected_image_error_fails_only_that_image(
        self, coordinator, mock_repo, make_worksheet, image_generator
    ) -> None:
        worksheet = make_worksheet(status="generating")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        image_generator.generate.side_effect = [
            binascii.Error("Incorrect padding"),
            "https://media.example.com/2.png",
        ]

        await coordinator.run_generation(worksheet.id)

        assert worksheet.status == "draft"
        assert [i.status for i in worksheet.images] == ["failed", "completed"]
        assert "Incorrect padding" in worksheet.images[0].error

    @pytest.mark.asyncio
    async def test_malformed_activities_still_reach_draft(
        self, coordinator, mock_repo, make_worksheet, content_generator, image_generator
    ) -> None:
        worksheet = make_worksheet(status="generating", content={})
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        content_generator.generate.return_value = {
            "title": "T",
            "sections": [{"activities": ["Draw a cat"]}],
        }

        await coordinator.run_generation(worksheet.id)

        assert worksheet.status == "draft"
        image_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_after_content_fails_worksheet(
        self, coordinator, mock_repo, mock_db, make_worksheet, pdf_renderer, published_events
    ) -> None:
        worksheet = make_worksheet(status="generating")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        pdf_renderer.render.side_effect = RuntimeError("renderer payload too large")

        await coordinator.run_generation(worksheet.id)

        mock_db.rollback.assert_awaited_once()
        assert worksheet.status == "failed"
        assert "renderer payload too large" in worksheet.generation_error
        assert published_events[-1].event_type == EventTypes.Worksheet.GENERATION_FAILED

    @pytest.mark.asyncio
    async def test_pdf_failure_leaves_pdf_empty(
        self, coordinator, mock_repo, make_worksheet, pdf_renderer
    ) -> None:
        worksheet = make_worksheet(status="generating")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        pdf_renderer.render.side_effect = PdfRenderError("renderer down", status_code=503)

        await coordinator.run_generation(worksheet.id)

        assert worksheet.status == "draft"
        assert worksheet.pdf_url is None

    @pytest.mark.asyncio
    async def test_content_failure_after_retries_fails_worksheet(
        self,
        coordinator,
        mock_repo,
        make_worksheet,
        content_generator,
        image_generator,
        published_events,
    ) -> None:
        worksheet = make_worksheet(status="generating", content={})
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        content_generator.generate.side_effect = ContentGenerationError("invalid JSON")

        await coordinator.run_generation(worksheet.id)

        assert content_generator.generate.await_count == 2
        image_generator.generate.assert_not_awaited()
        assert worksheet.status == "failed"
        assert "after 2 attempts" in worksheet.generation_error
        assert published_events[-1].event_type == EventTypes.Worksheet.GENERATION_FAILED

    @pytest.mark.asyncio
    async def test_retry_recovers_from_single_failure(
        self, coordinator, mock_repo, make_worksheet, content_generator
    ) -> None:
        worksheet = make_worksheet(status="generating")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        content_generator.generate.side_effect = [
            ContentGenerationError("rate limited"),
            GENERATED_CONTENT,
        ]

        await coordinator.run_generation(worksheet.id)

        assert worksheet.status == "draft"

    @pytest.mark.asyncio
    async def test_no_op_when_no_longer_generating(
        self, coordinator, mock_repo, make_worksheet, content_generator
    ) -> None:
        worksheet = make_worksheet(status="failed")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)

        await coordinator.run_generation(worksheet.id)

        content_generator.generate.assert_not_awaited()
        assert worksheet.status == "failed"

    @pytest.mark.asyncio
    async def test_sweep_during_run_keeps_failed_status(
        self, coordinator, mock_repo, make_worksheet
    ) -> None:
        worksheet = make_worksheet(status="generating")
        swept = make_worksheet(id=worksheet.id, status="failed")
        mock_repo.get_worksheet = AsyncMock(side_effect=[worksheet, swept])

        await coordinator.run_generation(worksheet.id)

        assert swept.status == "failed"


class TestStatusAndSweep:
    """Tests for status polling and the stale generation sweep."""

    @pytest.mark.asyncio
    async def test_status_reports_degraded_ready_worksheet(
        self, coordinator, mock_repo, make_worksheet, make_image, therapist
    ) -> None:
        worksheet = make_worksheet(
            created_by_id=therapist.id,
            status="draft",
            pdf_url="https://media.example.com/w.pdf",
            images=[make_image(position=0), make_image(position=1, status="failed")],
        )
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)

        status = await coordinator.get_status(worksheet.id, therapist)

        assert status.status == WorksheetStatus.DRAFT
        assert status.images.total == 2
        assert status.images.failed == 1
        assert status.degraded is True
        assert status.poll_after_seconds is None

    @pytest.mark.asyncio
    async def test_status_while_generating_suggests_poll(
        self, coordinator, mock_repo, make_worksheet, moderator
    ) -> None:
        worksheet = make_worksheet(status="generating")
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)

        status = await coordinator.get_status(worksheet.id, moderator)

        assert status.poll_after_seconds == 3
        assert status.degraded is False

    @pytest.mark.asyncio
    async def test_status_hidden_from_other_users(
        self, coordinator, mock_repo, make_worksheet, parent
    ) -> None:
        mock_repo.get_worksheet = AsyncMock(return_value=make_worksheet())

        with pytest.raises(AuthorizationError):
            await coordinator.get_status("w1", parent)

    @pytest.mark.asyncio
    async def test_status_of_missing_worksheet(self, coordinator, therapist) -> None:
        with pytest.raises(NotFoundError):
            await coordinator.get_status("missing", therapist)

    @pytest.mark.asyncio
    async def test_expire_stale_generations(
        self, coordinator, mock_repo, mock_db, published_events
    ) -> None:
        mock_repo.fail_stale_generations = AsyncMock(return_value=["w1", "w2"])

        expired = await coordinator.expire_stale_generations()

        assert expired == ["w1", "w2"]
        cutoff, error = mock_repo.fail_stale_generations.call_args.args
        assert isinstance(cutoff, datetime)
        assert error == TIMEOUT_ERROR
        mock_db.commit.assert_awaited()
        assert [e.payload["worksheet_id"] for e in published_events] == ["w1", "w2"]
