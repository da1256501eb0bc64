# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the worksheet API.

Services are replaced through dependency overrides so the routing,
authentication and error mapping run without a database.
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api import dependencies
from src.api.app import create_app
from src.core.config import get_settings
from src.domains.auth.jwt import JWTManager
from src.domains.worksheet.errors import (
    ExternalServiceError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from src.domains.worksheet.schemas import (
    FlagListResponse,
    GenerationAcceptedResponse,
    WorksheetListResponse,
)


@pytest.fixture
def worksheet_service() -> MagicMock:
    service = MagicMock()
    service.library = AsyncMock(
        return_value=WorksheetListResponse(items=[], total=0, limit=20, offset=0)
    )
    service.get = AsyncMock()
    return service


@pytest.fixture
def coordinator() -> MagicMock:
    coordinator = MagicMock()
    coordinator.request_generation = AsyncMock()
    return coordinator


@pytest.fixture
def assignment_service() -> MagicMock:
    service = MagicMock()
    service.assign = AsyncMock()
    return service


@pytest.fixture
def moderation_service() -> MagicMock:
    service = MagicMock()
    service.queue = AsyncMock(
        return_value=FlagListResponse(items=[], total=0, limit=20, offset=0)
    )
    return service


@pytest.fixture
def app(worksheet_service, coordinator, assignment_service, moderation_service) -> FastAPI:
    """Create the application with services overridden."""
    app = create_app()
    app.dependency_overrides[dependencies.get_worksheet_service] = lambda: worksheet_service
    app.dependency_overrides[dependencies.get_generation_coordinator] = lambda: coordinator
    app.dependency_overrides[dependencies.get_assignment_service] = lambda: assignment_service
    app.dependency_overrides[dependencies.get_moderation_service] = lambda: moderation_service
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def auth_headers(user_type: str, user_id: str | None = None) -> dict[str, str]:
    token = JWTManager(get_settings().jwt).create_access_token(
        user_id=user_id or str(uuid4()), user_type=user_type
    )
    return {"Authorization": f"Bearer {token}"}


class TestRouting:
    def test_library_is_not_captured_by_worksheet_id(self, client, worksheet_service) -> None:
        response = client.get(
            "/api/v1/worksheets/library?domain=fine_motor",
            headers=auth_headers("therapist"),
        )

        assert response.status_code == 200
        assert response.json()["total"] == 0
        worksheet_service.library.assert_awaited_once()
        worksheet_service.get.assert_not_awaited()
        assert worksheet_service.library.call_args.kwargs["domain"] == "fine_motor"

    def test_routes_registered(self, app) -> None:
        routes = {route.path for route in app.routes}

        assert "/api/v1/worksheets/generate" in routes
        assert "/api/v1/worksheets/{worksheet_id}/status" in routes
        assert "/api/v1/worksheets/community" in routes
        assert "/api/v1/worksheets/assignments/received" in routes
        assert "/api/v1/worksheets/moderation/queue" in routes
        assert "/api/v1/worksheets/recommendations/{child_id}" in routes


class TestAuthentication:
    def test_missing_token(self, client) -> None:
        response = client.get("/api/v1/worksheets/library")

        assert response.status_code == 401

    def test_parent_cannot_assign(self, client, assignment_service) -> None:
        response = client.post(
            "/api/v1/worksheets/w1/assign",
            json={"assigned_to_id": str(uuid4()), "child_id": str(uuid4())},
            headers=auth_headers("parent"),
        )

        assert response.status_code == 403
        assignment_service.assign.assert_not_awaited()

    def test_therapist_cannot_open_moderation_queue(self, client, moderation_service) -> None:
        response = client.get(
            "/api/v1/worksheets/moderation/queue",
            headers=auth_headers("therapist"),
        )

        assert response.status_code == 403
        moderation_service.queue.assert_not_awaited()

    def test_moderator_opens_queue(self, client, moderation_service) -> None:
        response = client.get(
            "/api/v1/worksheets/moderation/queue",
            headers=auth_headers("moderator"),
        )

        assert response.status_code == 200
        assert response.json()["items"] == []


class TestErrorMapping:
    """Service errors become ``{"error", "detail"}`` bodies."""

    @pytest.mark.parametrize(
        ("error", "status_code", "kind"),
        [
            (NotFoundError("Worksheet w1 not found"), 404, "not_found"),
            (StateConflictError("Worksheet is archived"), 409, "state_conflict"),
            (ValidationError("Unknown sort"), 422, "validation"),
            (ExternalServiceError("Renderer down", service="pdf_renderer"), 502, "external_service"),
        ],
    )
    def test_error_status(self, client, worksheet_service, error, status_code, kind) -> None:
        worksheet_service.get.side_effect = error

        response = client.get("/api/v1/worksheets/w1", headers=auth_headers("therapist"))

        assert response.status_code == status_code
        assert response.json() == {"error": kind, "detail": error.message}


class TestGeneration:
    def test_generate_is_accepted(self, client, coordinator) -> None:
        worksheet_id = str(uuid4())
        coordinator.request_generation.return_value = GenerationAcceptedResponse(
            id=worksheet_id, status="generating", poll_after_seconds=3
        )

        response = client.post(
            "/api/v1/worksheets/generate",
            json={
                "data_source": "manual",
                "type": "activity",
                "target_domains": ["fine_motor"],
                "manual_input": {"child_age_months": 36, "concerns": ["pencil grip"]},
            },
            headers=auth_headers("therapist"),
        )

        assert response.status_code == 202
        assert response.json() == {
            "id": worksheet_id,
            "status": "generating",
            "poll_after_seconds": 3,
        }
        body = coordinator.request_generation.call_args.args[0]
        assert body.target_domains == ["FINE_MOTOR"]

    def test_generate_requires_target_domain(self, client, coordinator) -> None:
        response = client.post(
            "/api/v1/worksheets/generate",
            json={"data_source": "manual", "type": "activity", "target_domains": []},
            headers=auth_headers("therapist"),
        )

        assert response.status_code == 422
        coordinator.request_generation.assert_not_awaited()
