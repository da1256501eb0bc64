# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Client for the PDF rendering service.

The renderer lays out the worksheet, stores the PDF and a preview image,
and answers with both URLs.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from src.core.config.settings import PdfRendererSettings, get_settings
from src.services.worksheet_ai.exceptions import PdfRenderError

logger = logging.getLogger(__name__)


@dataclass
class RenderedPdf:
    """URLs of a rendered worksheet."""

    pdf_url: str
    preview_url: str | None = None


class WorksheetPdfRenderer:
    """Async HTTP client for the PDF rendering service."""

    def __init__(self, settings: Optional[PdfRendererSettings] = None):
        self._settings = settings or get_settings().pdf_renderer
        self.api_url = self._settings.url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=self._settings.timeout)

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key.get_secret_value()}"
        return headers

    async def render(self, document: dict[str, Any]) -> RenderedPdf:
        """Render a worksheet document.

        Args:
            document: Worksheet id, title, type, color mode, content and
                image URLs keyed by position.

        Returns:
            RenderedPdf with the stored URLs.

        Raises:
            PdfRenderError: If the renderer fails or is unreachable.
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    f"{self.api_url}/render/worksheet",
                    json=document,
                    headers=self._get_headers(),
                ) as response:
                    if response.status not in (200, 201):
                        body = await response.text()
                        raise PdfRenderError(
                            "PDF rendering failed",
                            status_code=response.status,
                            details={"body": body[:500]},
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PdfRenderError(f"Failed to reach PDF renderer: {e}") from e

        pdf_url = data.get("pdfUrl") or data.get("pdf_url")
        if not pdf_url:
            raise PdfRenderError("Renderer returned no PDF URL")

        return RenderedPdf(
            pdf_url=pdf_url,
            preview_url=data.get("previewUrl") or data.get("preview_url"),
        )
