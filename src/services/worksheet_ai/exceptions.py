# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the worksheet AI collaborators.

This module defines the exception hierarchy for external calls:
- WorksheetAIError: Base exception for collaborator failures
- ContentGenerationError: LLM content generation failed
- ImageGenerationError: Illustration generation failed
- MediaUploadError: Storing a generated image failed
- PdfRenderError: PDF rendering service failed
"""


class WorksheetAIError(Exception):
    """Base exception for all collaborator errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    service = "worksheet_ai"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ContentGenerationError(WorksheetAIError):
    """Content generation failed or returned unusable output."""

    service = "content_generation"


class ImageGenerationError(WorksheetAIError):
    """Image generation failed or returned no image."""

    service = "image_generation"


class MediaUploadError(WorksheetAIError):
    """Uploading a generated image to media storage failed."""

    service = "media_storage"


class PdfRenderError(WorksheetAIError):
    """The PDF rendering service failed.

    Attributes:
        status_code: HTTP status code from the renderer, if any.
    """

    service = "pdf_renderer"

    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        self.status_code = status_code
        super().__init__(message, details)
