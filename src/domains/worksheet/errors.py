# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the worksheet services.

Every error carries a stable ``kind`` string. The API layer maps kinds to
HTTP status codes in one exception handler, so services never import
FastAPI.
"""


class WorksheetError(Exception):
    """Base exception for worksheet service errors.

    Attributes:
        message: Human-readable error description.
        kind: Stable machine-readable error category.
    """

    kind: str = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WorksheetError):
    """Raised for malformed input or a payload that does not match its data source."""

    kind = "validation"


class NotFoundError(WorksheetError):
    """Raised when a worksheet, assignment, completion, review or flag does not exist."""

    kind = "not_found"


class StateConflictError(WorksheetError):
    """Raised when an operation is illegal in the entity's current state."""

    kind = "state_conflict"


class AuthorizationError(WorksheetError):
    """Raised when the caller's role or ownership does not permit the action."""

    kind = "authorization"


class ExternalServiceError(WorksheetError):
    """Raised when a content, image or PDF collaborator fails.

    Attributes:
        service: Name of the failing collaborator.
        original_error: The underlying exception, if any.
    """

    kind = "external_service"

    def __init__(
        self,
        message: str,
        service: str = "unknown",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.original_error = original_error
