# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure module.

Provides background processing with Dramatiq:
- Redis broker for message persistence and durability
- Worksheet generation actors
- APScheduler integration for the stale generation sweep

Quick Start:
    from src.infrastructure.background import setup_dramatiq
    setup_dramatiq()

    from src.infrastructure.background.tasks import generate_worksheet
    generate_worksheet.send(worksheet_id)

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)
from src.infrastructure.background.scheduler import (
    DramatiqScheduler,
    ScheduledTask,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

# Tasks are imported lazily to avoid circular imports
# Use: from src.infrastructure.background.tasks import generate_worksheet

__all__ = [
    "BrokerManager",
    "DramatiqScheduler",
    "Priority",
    "Queues",
    "ScheduledTask",
    "get_broker",
    "get_broker_manager",
    "get_scheduler",
    "setup_dramatiq",
    "shutdown_dramatiq",
    "start_scheduler",
    "stop_scheduler",
]
