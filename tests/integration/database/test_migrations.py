# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for database migrations.

Runs the alembic revisions against a real PostgreSQL database.
"""

import asyncio
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

MIGRATIONS_DIR = (
    Path(__file__).resolve().parents[3] / "src" / "infrastructure" / "database" / "migrations"
)

WORKSHEET_TABLES = {
    "worksheets",
    "worksheet_images",
    "worksheet_assignments",
    "worksheet_completions",
    "worksheet_reviews",
    "worksheet_flags",
    "screening_domain_scores",
}

# Skip all tests if database is not available
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.environ.get("TEST_DATABASE_URL"),
        reason="TEST_DATABASE_URL not set",
    ),
]


def _inspect(db_url: str, fn):
    async def run():
        engine = create_async_engine(db_url)
        try:
            async with engine.connect() as conn:
                return await conn.run_sync(lambda sync_conn: fn(inspect(sync_conn)))
        finally:
            await engine.dispose()

    return asyncio.run(run())


def _drop_version_table(db_url: str) -> None:
    async def run():
        engine = create_async_engine(db_url)
        try:
            async with engine.begin() as conn:
                await conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
        finally:
            await engine.dispose()

    asyncio.run(run())


@pytest.fixture
def alembic_config(db_url: str):
    """Alembic config pointed at the test database."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    with patch.dict(os.environ, {"DATABASE_URL": db_url}):
        yield config
        command.downgrade(config, "base")
    _drop_version_table(db_url)


class TestWorksheetMigration:
    """Test the worksheet lifecycle migration."""

    def test_upgrade_creates_tables(self, alembic_config, db_url: str) -> None:
        command.upgrade(alembic_config, "head")

        tables = set(_inspect(db_url, lambda i: i.get_table_names()))

        assert WORKSHEET_TABLES <= tables

    def test_upgrade_creates_pending_flag_index(self, alembic_config, db_url: str) -> None:
        command.upgrade(alembic_config, "head")

        indexes = _inspect(db_url, lambda i: i.get_indexes("worksheet_flags"))

        pending = next(index for index in indexes if index["name"] == "uq_flag_pending_reporter")
        assert pending["unique"] is True
        assert pending["column_names"] == ["worksheet_id", "flagged_by_id"]

    def test_completion_assignment_is_unique(self, alembic_config, db_url: str) -> None:
        command.upgrade(alembic_config, "head")

        constraints = _inspect(
            db_url, lambda i: i.get_unique_constraints("worksheet_completions")
        )

        assert any(c["column_names"] == ["assignment_id"] for c in constraints)

    def test_downgrade_drops_tables(self, alembic_config, db_url: str) -> None:
        command.upgrade(alembic_config, "head")
        command.downgrade(alembic_config, "base")

        tables = set(_inspect(db_url, lambda i: i.get_table_names()))

        assert not WORKSHEET_TABLES & tables
