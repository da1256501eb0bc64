# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet content generation through the LLM client.

Example:
    generator = WorksheetContentGenerator()
    content = await generator.generate(
        worksheet_type="activity",
        sub_type="sensory_play",
        target_domains=["FINE_MOTOR"],
        difficulty="foundational",
        params={"interests": ["dinosaurs"]},
    )
"""

import logging
from typing import Any, Optional

from src.core.intelligence.llm import LLMClient, LLMError
from src.services.worksheet_ai.exceptions import ContentGenerationError
from src.services.worksheet_ai.prompts import (
    SYSTEM_PROMPT,
    build_content_prompt,
    build_section_prompt,
)

logger = logging.getLogger(__name__)


class WorksheetContentGenerator:
    """Produces worksheet content documents with an LLM.

    Attributes:
        llm: LLM client used for completions.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self._llm = llm_client

    @property
    def llm(self) -> LLMClient:
        # Built lazily so importing the coordinator never needs provider config
        if self._llm is None:
            self._llm = LLMClient()
        return self._llm

    async def generate(
        self,
        worksheet_type: str,
        sub_type: str | None,
        target_domains: list[str],
        difficulty: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Generate a full worksheet content document.

        Returns:
            Content document. Always contains a non-empty "title".

        Raises:
            ContentGenerationError: If the LLM fails or returns unusable output.
        """
        prompt = build_content_prompt(worksheet_type, sub_type, target_domains, difficulty, params)

        try:
            content = await self.llm.complete_json(
                prompt=prompt,
                system_prompt=SYSTEM_PROMPT,
                temperature=0.7,
            )
        except LLMError as e:
            raise ContentGenerationError(
                f"Content generation failed: {e.message}",
                details={"model": e.model, "error_code": e.error_code},
            ) from e

        if not content.get("title"):
            raise ContentGenerationError("Generated content has no title")

        logger.info(
            "Generated %s worksheet content: title=%s",
            worksheet_type,
            content.get("title"),
        )
        return content

    async def regenerate_section(
        self,
        content: dict[str, Any],
        section_id: str,
        instructions: str | None = None,
    ) -> dict[str, Any]:
        """Generate a replacement for one section of existing content.

        Returns:
            The new section; its id is forced to section_id.

        Raises:
            ContentGenerationError: If the LLM fails.
        """
        try:
            section = await self.llm.complete_json(
                prompt=build_section_prompt(content, section_id, instructions),
                system_prompt=SYSTEM_PROMPT,
                max_tokens=2048,
            )
        except LLMError as e:
            raise ContentGenerationError(f"Section regeneration failed: {e.message}") from e

        section["id"] = section_id
        return section
