# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet generation background tasks.

Generation runs out of band: the API creates the worksheet in GENERATING
and enqueues generate_worksheet; clients poll the status endpoint until
the worksheet is ready or failed. expire_stale_generations is triggered
periodically by the scheduler to fail worksheets whose job was lost.
"""

import logging
from typing import Any

import dramatiq

from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async
from src.infrastructure.events import get_event_bridge

# Setup broker before defining actors
setup_dramatiq()

# Worker processes audit the events their actors publish
get_event_bridge().start()

logger = logging.getLogger(__name__)


@dramatiq.actor(
    queue_name=Queues.GENERATION,
    max_retries=0,
    time_limit=900000,  # 15 minutes
    priority=Priority.HIGH,
)
def generate_worksheet(worksheet_id: str) -> None:
    """Generate content, images and PDF for a worksheet.

    Retries happen inside the coordinator per step, so the actor itself
    is not retried by Dramatiq.

    Args:
        worksheet_id: Worksheet in GENERATING status.
    """

    async def _generate() -> None:
        from src.domains.worksheet.generation import GenerationCoordinator
        from src.infrastructure.database import get_worker_session

        async with get_worker_session() as session:
            await GenerationCoordinator(session).run_generation(worksheet_id)

    logger.info("Generation task started: %s", worksheet_id)
    run_async(_generate())


@dramatiq.actor(
    queue_name=Queues.MAINTENANCE,
    max_retries=1,
    time_limit=300000,  # 5 minutes
    priority=Priority.LOW,
)
def expire_stale_generations() -> dict[str, Any]:
    """Fail worksheets stuck in GENERATING past the generation timeout.

    Returns:
        Expired worksheet ids.
    """

    async def _expire() -> dict[str, Any]:
        from src.domains.worksheet.generation import GenerationCoordinator
        from src.infrastructure.database import get_worker_session

        async with get_worker_session() as session:
            expired = await GenerationCoordinator(session).expire_stale_generations()

        if expired:
            logger.warning("Expired %d stale generations", len(expired))
        return {"expired": expired}

    return run_async(_expire())


def get_generation_actors() -> list:
    return [
        generate_worksheet,
        expire_stale_generations,
    ]
