# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure module.

Components:
- EventBus: In-memory pub/sub with pattern matching
- EventTypes: Centralized event type constants
- WorksheetEventBridge: Audit log of every worksheet event

Quick Start:
    from src.infrastructure.events import get_event_bus, EventTypes

    event_bus = get_event_bus()
    event_bus.subscribe(EventTypes.Worksheet.READY, my_handler)

    await event_bus.publish(EventTypes.Worksheet.READY, {"worksheet_id": "123"})
"""

from src.infrastructure.events.bridge import (
    WorksheetEventBridge,
    get_event_bridge,
    start_event_bridge,
    stop_event_bridge,
)
from src.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from src.infrastructure.events.types import EventPatterns, EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventPatterns",
    "EventTypes",
    "WorksheetEventBridge",
    "get_event_bridge",
    "get_event_bus",
    "reset_event_bus",
    "start_event_bridge",
    "stop_event_bridge",
]
