# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet illustration generation using the Gemini image API.

Images are generated through Gemini's generateContent endpoint with image
output enabled, then uploaded to media storage.
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional

import aiohttp

from src.core.config.settings import ImageGenerationSettings, get_settings
from src.services.worksheet_ai.exceptions import ImageGenerationError
from src.services.worksheet_ai.storage import MediaStorageClient

logger = logging.getLogger(__name__)


class WorksheetImageGenerator:
    """Generates and stores one illustration per call."""

    def __init__(
        self,
        settings: Optional[ImageGenerationSettings] = None,
        storage: Optional[MediaStorageClient] = None,
    ):
        self._settings = settings or get_settings().image_generation
        self._storage = storage

    @property
    def storage(self) -> MediaStorageClient:
        if self._storage is None:
            self._storage = MediaStorageClient()
        return self._storage

    async def generate(self, prompt: str, worksheet_id: str) -> str:
        """Generate an image for the prompt and return its stored URL.

        Raises:
            ImageGenerationError: If the API fails or returns no image.
            MediaUploadError: If storing the image fails.
        """
        image_data = await self._generate_image_gemini(prompt)
        filename = self.storage.build_filename(f"worksheet_{worksheet_id}", image_data)
        return await self.storage.upload(image_data, filename)

    async def _generate_image_gemini(self, prompt: str) -> bytes:
        if not self._settings.api_key:
            raise ImageGenerationError("Image generation API key not configured")

        url = f"{self._settings.api_url.rstrip('/')}/{self._settings.model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        timeout = aiohttp.ClientTimeout(total=self._settings.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    url,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "x-goog-api-key": self._settings.api_key.get_secret_value(),
                    },
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(
                            "Gemini API error: status=%d, response=%s",
                            response.status,
                            error_text[:500],
                        )
                        raise ImageGenerationError(
                            f"Gemini API error: {response.status}",
                            details={"status": response.status},
                        )
                    response_data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ImageGenerationError(f"Image API request failed: {e}") from e

        candidates = response_data.get("candidates", [])
        if not candidates:
            raise ImageGenerationError("No candidates in image API response")

        parts = candidates[0].get("content", {}).get("parts", [])
        for part in parts:
            inline_data = part.get("inlineData")
            if inline_data and inline_data.get("mimeType", "").startswith("image/"):
                try:
                    return base64.b64decode(inline_data.get("data", ""), validate=True)
                except (binascii.Error, ValueError) as e:
                    raise ImageGenerationError(f"Invalid image data in API response: {e}") from e

        raise ImageGenerationError("No image data found in image API response")
