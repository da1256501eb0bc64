# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (services against a mocked repository)
- Integration tests (FastAPI app with overridden service dependencies)
"""

import os

# Must be set before any src module reads settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

from collections.abc import Callable, Generator  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402

from src.domains.worksheet.models import Caller, UserType  # noqa: E402
from src.domains.worksheet.repository import WorksheetRepository  # noqa: E402
from src.infrastructure.database.models import (  # noqa: E402
    Worksheet,
    WorksheetAssignment,
    WorksheetCompletion,
    WorksheetFlag,
    WorksheetImage,
    WorksheetReview,
)
from src.infrastructure.events import EventData, get_event_bus, reset_event_bus  # noqa: E402

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Event Bus
# =============================================================================


@pytest.fixture(autouse=True)
def clean_event_bus() -> Generator[None, None, None]:
    """Give every test a fresh event bus."""
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def published_events() -> list[EventData]:
    """Collect every event published during the test."""
    events: list[EventData] = []

    async def collect(event: EventData) -> None:
        events.append(event)

    get_event_bus().subscribe("*", collect)
    return events


# =============================================================================
# Database and Repository
# =============================================================================


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.delete = AsyncMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    return db


async def _stage(entity: Any) -> Any:
    """Mimic a flush: fill in the ids and timestamps the database would."""
    if getattr(entity, "id", None) is None:
        entity.id = str(uuid4())
    if getattr(entity, "created_at", None) is None:
        entity.created_at = FIXED_NOW
    if getattr(entity, "updated_at", None) is None:
        entity.updated_at = FIXED_NOW
    return entity


@pytest.fixture
def mock_repo() -> MagicMock:
    """Create a repository mock whose coroutine methods are AsyncMocks."""
    repo = MagicMock(spec=WorksheetRepository)
    repo.add = AsyncMock(side_effect=_stage)
    repo.get_worksheet = AsyncMock(return_value=None)
    repo.is_assignment_party = AsyncMock(return_value=False)
    return repo


# =============================================================================
# Callers
# =============================================================================


@pytest.fixture
def therapist() -> Caller:
    return Caller(id=str(uuid4()), user_type=UserType.THERAPIST)


@pytest.fixture
def parent() -> Caller:
    return Caller(id=str(uuid4()), user_type=UserType.PARENT)


@pytest.fixture
def moderator() -> Caller:
    return Caller(id=str(uuid4()), user_type=UserType.MODERATOR)


@pytest.fixture
def sample_child_id() -> str:
    """Provide a sample child ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"


# =============================================================================
# Entity Factories
# =============================================================================


@pytest.fixture
def make_worksheet() -> Callable[..., Worksheet]:
    """Build transient Worksheet rows with sensible defaults."""

    def factory(**overrides: Any) -> Worksheet:
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "title": "Fine motor fun",
            "type": "activity",
            "sub_type": None,
            "difficulty": "developing",
            "color_mode": "full_color",
            "data_source": "manual",
            "content": {
                "title": "Fine motor fun",
                "sections": [
                    {"id": "s1", "title": "Warm up", "activities": []},
                    {"id": "s2", "title": "Practice", "activities": []},
                ],
            },
            "generation_params": {},
            "target_domains": ["FINE_MOTOR"],
            "condition_tags": [],
            "age_range_min": None,
            "age_range_max": None,
            "status": "draft",
            "is_public": False,
            "average_rating": None,
            "review_count": 0,
            "clone_count": 0,
            "version": 1,
            "parent_version_id": None,
            "cloned_from_id": None,
            "created_by_id": str(uuid4()),
            "images": [],
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        fields.update(overrides)
        return Worksheet(**fields)

    return factory


@pytest.fixture
def make_image() -> Callable[..., WorksheetImage]:
    def factory(**overrides: Any) -> WorksheetImage:
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "prompt": "A child stacking blocks",
            "alt_text": "Stacking blocks",
            "position": 0,
            "status": "completed",
            "image_url": "https://media.example.com/1.png",
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        fields.update(overrides)
        return WorksheetImage(**fields)

    return factory


@pytest.fixture
def make_assignment() -> Callable[..., WorksheetAssignment]:
    def factory(**overrides: Any) -> WorksheetAssignment:
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "worksheet_id": str(uuid4()),
            "assigned_by_id": str(uuid4()),
            "assigned_to_id": str(uuid4()),
            "child_id": str(uuid4()),
            "status": "assigned",
            "due_date": None,
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        fields.update(overrides)
        return WorksheetAssignment(**fields)

    return factory


@pytest.fixture
def make_completion() -> Callable[..., WorksheetCompletion]:
    def factory(**overrides: Any) -> WorksheetCompletion:
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "worksheet_id": str(uuid4()),
            "child_id": str(uuid4()),
            "recorded_by_id": str(uuid4()),
            "completed_at": FIXED_NOW,
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        fields.update(overrides)
        return WorksheetCompletion(**fields)

    return factory


@pytest.fixture
def make_review() -> Callable[..., WorksheetReview]:
    def factory(**overrides: Any) -> WorksheetReview:
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "worksheet_id": str(uuid4()),
            "user_id": str(uuid4()),
            "rating": 4,
            "review_text": "Worked well at home",
            "helpful_count": 0,
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        fields.update(overrides)
        return WorksheetReview(**fields)

    return factory


@pytest.fixture
def make_flag() -> Callable[..., WorksheetFlag]:
    def factory(**overrides: Any) -> WorksheetFlag:
        fields: dict[str, Any] = {
            "id": str(uuid4()),
            "worksheet_id": str(uuid4()),
            "flagged_by_id": str(uuid4()),
            "reason": "inaccurate",
            "status": "pending",
            "created_at": FIXED_NOW,
            "updated_at": FIXED_NOW,
        }
        fields.update(overrides)
        return WorksheetFlag(**fields)

    return factory
