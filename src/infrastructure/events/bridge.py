# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet event audit bridge.

Subscribes to every worksheet event on the EventBus and writes one
structured audit log line per event, so lifecycle changes made by the API
and by generation workers end up in the same log stream.

The bridge is started in the API lifespan and when a worker process loads
the generation actors.

Example:
    from src.infrastructure.events.bridge import start_event_bridge, stop_event_bridge

    # In app lifespan
    await start_event_bridge()
    yield
    await stop_event_bridge()
"""

import logging
from typing import Any

from src.infrastructure.events.bus import EventBus, EventData, get_event_bus
from src.infrastructure.events.types import EventPatterns, EventTypes

logger = logging.getLogger(__name__)

# Events that need a human to look at them
_WARNING_EVENTS = frozenset(
    {
        EventTypes.Worksheet.GENERATION_FAILED,
        EventTypes.Worksheet.FLAGGED,
        EventTypes.Worksheet.RETIRED,
    }
)

# Payload keys copied into the audit line when present
_AUDIT_KEYS = (
    "worksheet_id",
    "user_id",
    "assignment_id",
    "completion_id",
    "flag_id",
    "review_id",
    "child_id",
    "status",
    "version",
    "degraded",
    "error",
)


def audit_fields(event: EventData) -> dict[str, Any]:
    """Pick the identifying fields of an event for the audit log."""
    fields: dict[str, Any] = {"event_id": event.event_id}
    for key in _AUDIT_KEYS:
        value = event.payload.get(key)
        if value is not None:
            fields[key] = value
    return fields


class WorksheetEventBridge:
    """Writes an audit log entry for each worksheet event.

    Attributes:
        _event_bus: EventBus the bridge is subscribed to.
        _running: Whether the bridge is active.
    """

    def __init__(self) -> None:
        self._event_bus: EventBus | None = None
        self._running = False
        self._events_logged = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Subscribe to all worksheet events. Calling it twice is a no-op."""
        if self._running:
            return

        self._event_bus = get_event_bus()
        self._event_bus.subscribe(EventPatterns.ALL_WORKSHEET, self._on_event)
        self._running = True
        logger.info("Worksheet event bridge started")

    def stop(self) -> None:
        if not self._running:
            return

        if self._event_bus is not None:
            self._event_bus.unsubscribe(EventPatterns.ALL_WORKSHEET, self._on_event)
        self._event_bus = None
        self._running = False
        logger.info("Worksheet event bridge stopped (events_logged=%d)", self._events_logged)

    async def _on_event(self, event: EventData) -> None:
        level = logging.WARNING if event.event_type in _WARNING_EVENTS else logging.INFO
        fields = audit_fields(event)
        logger.log(
            level,
            "Worksheet event %s: %s",
            event.event_type,
            ", ".join(f"{key}={value}" for key, value in fields.items()),
            extra={"event_type": event.event_type, **fields},
        )
        self._events_logged += 1

    def get_stats(self) -> dict[str, Any]:
        return {"running": self._running, "events_logged": self._events_logged}


_bridge_instance: WorksheetEventBridge | None = None


def get_event_bridge() -> WorksheetEventBridge:
    """Get the singleton bridge instance."""
    global _bridge_instance
    if _bridge_instance is None:
        _bridge_instance = WorksheetEventBridge()
    return _bridge_instance


async def start_event_bridge() -> WorksheetEventBridge:
    """Start the event bridge."""
    bridge = get_event_bridge()
    bridge.start()
    return bridge


async def stop_event_bridge() -> None:
    """Stop the event bridge."""
    global _bridge_instance
    if _bridge_instance is not None:
        _bridge_instance.stop()
        _bridge_instance = None
