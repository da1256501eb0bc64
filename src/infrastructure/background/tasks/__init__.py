# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors for the worksheet engine.

Usage:
    from src.infrastructure.background.tasks import generate_worksheet

    generate_worksheet.send(worksheet_id)

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.tasks.generation import (
    expire_stale_generations,
    generate_worksheet,
    get_generation_actors,
)


def get_all_actors() -> list:
    """Get all registered actors for worker registration."""
    return [*get_generation_actors()]


__all__ = [
    "expire_stale_generations",
    "generate_worksheet",
    "get_all_actors",
]
