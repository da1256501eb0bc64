# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the worksheet AI collaborators."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.config.settings import ImageGenerationSettings
from src.core.intelligence.llm import LLMError
from src.services.worksheet_ai import (
    ContentGenerationError,
    ImageGenerationError,
    MediaStorageClient,
    PdfRenderError,
    WorksheetContentGenerator,
    WorksheetImageGenerator,
)
from src.services.worksheet_ai.prompts import (
    build_content_prompt,
    build_image_prompt,
    build_section_prompt,
    format_age,
)


@pytest.fixture
def llm() -> MagicMock:
    client = MagicMock()
    client.complete_json = AsyncMock(return_value={"title": "Dinosaur Dig", "sections": []})
    return client


class TestPrompts:
    @pytest.mark.parametrize(
        ("age_months", "expected"),
        [
            (None, "Not specified"),
            (8, "8 months"),
            (12, "1 year"),
            (25, "2 years 1 month"),
            (0, "0 months"),
        ],
    )
    def test_format_age(self, age_months, expected) -> None:
        assert format_age(age_months) == expected

    def test_content_prompt_includes_child_and_source(self) -> None:
        prompt = build_content_prompt(
            "activity",
            "sensory_play",
            ["FINE_MOTOR", "SENSORY"],
            "foundational",
            {
                "child": {"age_months": 40},
                "interests": ["dinosaurs"],
                "condition_tags": ["autism"],
                "data_source": "manual",
                "source_input": {"concerns": ["pencil grip"]},
            },
        )

        assert "sensory_play worksheet (activity)" in prompt
        assert "3 years 4 months" in prompt
        assert "FINE_MOTOR, SENSORY" in prompt
        assert "dinosaurs" in prompt
        assert "MANUAL CONTEXT" in prompt
        assert "pencil grip" in prompt

    def test_section_prompt_default_guidance(self) -> None:
        prompt = build_section_prompt({"sections": [{"id": "s1"}]}, "s1", None)

        assert 'id "s1"' in prompt
        assert "same therapeutic goals" in prompt

    def test_image_prompt_color_mode(self) -> None:
        prompt = build_image_prompt("A child stacking blocks.", "line_art", age_months=30)

        assert "A child stacking blocks." in prompt
        assert "toddlers" in prompt
        assert "Black line art" in prompt


class TestContentGenerator:
    @pytest.mark.asyncio
    async def test_generate(self, llm) -> None:
        generator = WorksheetContentGenerator(llm_client=llm)

        content = await generator.generate(
            worksheet_type="activity",
            sub_type=None,
            target_domains=["FINE_MOTOR"],
            difficulty="developing",
            params={},
        )

        assert content["title"] == "Dinosaur Dig"

    @pytest.mark.asyncio
    async def test_missing_title(self, llm) -> None:
        llm.complete_json.return_value = {"sections": []}

        with pytest.raises(ContentGenerationError, match="no title"):
            await WorksheetContentGenerator(llm_client=llm).generate(
                worksheet_type="activity",
                sub_type=None,
                target_domains=["FINE_MOTOR"],
                difficulty="developing",
                params={},
            )

    @pytest.mark.asyncio
    async def test_llm_error_is_wrapped(self, llm) -> None:
        llm.complete_json.side_effect = LLMError("rate limited", model="gpt-4o", error_code="429")

        with pytest.raises(ContentGenerationError) as exc_info:
            await WorksheetContentGenerator(llm_client=llm).generate(
                worksheet_type="activity",
                sub_type=None,
                target_domains=["FINE_MOTOR"],
                difficulty="developing",
                params={},
            )

        assert exc_info.value.service == "content_generation"
        assert exc_info.value.details["error_code"] == "429"

    @pytest.mark.asyncio
    async def test_regenerated_section_keeps_id(self, llm) -> None:
        llm.complete_json.return_value = {"id": "other", "title": "New"}

        section = await WorksheetContentGenerator(llm_client=llm).regenerate_section(
            {"sections": [{"id": "s1"}]}, "s1"
        )

        assert section == {"id": "s1", "title": "New"}


class TestImageGenerator:
    @pytest.mark.asyncio
    async def test_requires_api_key(self) -> None:
        generator = WorksheetImageGenerator(
            settings=ImageGenerationSettings(api_key=None),
            storage=MagicMock(),
        )

        with pytest.raises(ImageGenerationError, match="not configured"):
            await generator.generate("A cat", "w1")

    @pytest.mark.asyncio
    async def test_stores_generated_image(self) -> None:
        storage = MagicMock()
        storage.build_filename.return_value = "worksheet_w1.png"
        storage.upload = AsyncMock(return_value="https://media.example.com/worksheet_w1.png")
        generator = WorksheetImageGenerator(
            settings=ImageGenerationSettings(api_key="key"),
            storage=storage,
        )
        generator._generate_image_gemini = AsyncMock(return_value=b"png-bytes")

        url = await generator.generate("A cat", "w1")

        assert url == "https://media.example.com/worksheet_w1.png"
        storage.upload.assert_awaited_once_with(b"png-bytes", "worksheet_w1.png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data,expected",
        [("aGVsbG8=", b"hello"), ("aGVsbG8", None), ("not base64!", None)],
    )
    async def test_decodes_inline_image_data(self, data, expected) -> None:
        response = MagicMock(status=200)
        response.json = AsyncMock(
            return_value={
                "candidates": [
                    {"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": data}}]}}
                ]
            }
        )
        post_context = MagicMock()
        post_context.__aenter__ = AsyncMock(return_value=response)
        post_context.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.post.return_value = post_context
        session_context = MagicMock()
        session_context.__aenter__ = AsyncMock(return_value=session)
        session_context.__aexit__ = AsyncMock(return_value=False)
        generator = WorksheetImageGenerator(
            settings=ImageGenerationSettings(api_key="key"),
            storage=MagicMock(),
        )

        with patch(
            "src.services.worksheet_ai.images.aiohttp.ClientSession",
            return_value=session_context,
        ):
            if expected is None:
                with pytest.raises(ImageGenerationError, match="Invalid image data"):
                    await generator._generate_image_gemini("A cat")
            else:
                assert await generator._generate_image_gemini("A cat") == expected


class TestHelpers:
    def test_filename_is_content_addressed(self) -> None:
        first = MediaStorageClient.build_filename("worksheet_w1", b"a")
        second = MediaStorageClient.build_filename("worksheet_w1", b"b")

        assert first.startswith("worksheet_w1_")
        assert first.endswith(".png")
        assert first[-12:] != second[-12:]

    def test_error_details_in_string(self) -> None:
        error = PdfRenderError("PDF rendering failed", status_code=503, details={"body": "down"})

        assert error.status_code == 503
        assert error.service == "pdf_renderer"
        assert "down" in str(error)
