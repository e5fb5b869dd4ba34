# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities.

All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ) and all Python
datetimes are timezone-aware, so naive/aware mixing never happens.

Usage:
    from tutor_memory.utils.datetime import utc_now

    created_at = Column(DateTime(timezone=True), default=utc_now)
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Naive datetimes are assumed to be UTC; aware ones are converted.

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


def time_since(start: datetime, now: datetime | None = None) -> timedelta:
    """Calculate time elapsed since a start datetime.

    Args:
        start: The start datetime.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        Timedelta since start (negative if start is in the future).
    """
    reference = ensure_utc(now) if now is not None else utc_now()
    return reference - ensure_utc(start)

