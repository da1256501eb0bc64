# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the worksheet lifecycle engine.

All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ) and every Python
datetime handled by the services is timezone-aware, so due dates, screening
measurements and completion times can be compared safely.

Usage:
    from src.utils.datetime import utc_now

    # For SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Naive datetimes are assumed to already be UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def is_past(dt: datetime | None, reference: datetime | None = None) -> bool:
    """Check whether a datetime lies strictly before the reference time.

    Args:
        dt: Datetime to check. None is never in the past.
        reference: Comparison point, defaults to now.

    Returns:
        True if dt is before the reference.
    """
    if dt is None:
        return False
    return ensure_utc(dt) < ensure_utc(reference or utc_now())


def seconds_ago(seconds: int | float) -> datetime:
    """Get a datetime N seconds before now.

    Args:
        seconds: Number of seconds to go back.

    Returns:
        Timezone-aware UTC datetime.
    """
    return utc_now() - timedelta(seconds=seconds)


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
