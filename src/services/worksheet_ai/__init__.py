# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""External collaborators used by worksheet generation.

- WorksheetContentGenerator: LLM content documents (LiteLLM)
- WorksheetImageGenerator: illustrations (Gemini image API) stored via
  MediaStorageClient
- WorksheetPdfRenderer: PDF rendering service
"""

from src.services.worksheet_ai.content import WorksheetContentGenerator
from src.services.worksheet_ai.exceptions import (
    ContentGenerationError,
    ImageGenerationError,
    MediaUploadError,
    PdfRenderError,
    WorksheetAIError,
)
from src.services.worksheet_ai.images import WorksheetImageGenerator
from src.services.worksheet_ai.pdf import RenderedPdf, WorksheetPdfRenderer
from src.services.worksheet_ai.storage import MediaStorageClient

__all__ = [
    "ContentGenerationError",
    "ImageGenerationError",
    "MediaStorageClient",
    "MediaUploadError",
    "PdfRenderError",
    "RenderedPdf",
    "WorksheetAIError",
    "WorksheetContentGenerator",
    "WorksheetImageGenerator",
    "WorksheetPdfRenderer",
]
