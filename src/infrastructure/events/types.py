# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions for the worksheet engine.

Using constants instead of string literals keeps a single source of truth
for event names and lets pattern subscribers catch new events without
changes.
"""


class EventTypes:
    """All event types organized by domain."""

    class Worksheet:
        """Worksheet lifecycle events."""

        GENERATION_REQUESTED = "worksheet.generation.requested"
        READY = "worksheet.ready"
        GENERATION_FAILED = "worksheet.generation_failed"
        PUBLISHED = "worksheet.published"
        UNPUBLISHED = "worksheet.unpublished"
        CLONED = "worksheet.cloned"
        VERSION_CREATED = "worksheet.version.created"
        ARCHIVED = "worksheet.archived"
        ASSIGNED = "worksheet.assigned"
        COMPLETION_RECORDED = "worksheet.completion.recorded"
        REVIEWED = "worksheet.reviewed"
        FLAGGED = "worksheet.flagged"
        FLAG_RESOLVED = "worksheet.flag.resolved"
        RESTORED = "worksheet.restored"
        RETIRED = "worksheet.retired"


class EventPatterns:
    """Wildcard patterns for subscribing to multiple events."""

    ALL_WORKSHEET = "worksheet.*"
    ALL_GENERATION = "worksheet.generation*"

    # Global wildcard
    ALL = "*"
