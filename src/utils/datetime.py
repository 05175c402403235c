# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the sync engine.

All datetimes are timezone-aware UTC. Queue ordering uses integer epoch
milliseconds and score history uses ISO calendar dates (YYYY-MM-DD).

Usage:
    from src.utils.datetime import utc_now, today_iso, epoch_millis

    created_at = utc_now()
    history_date = today_iso()
    queued_at = epoch_millis()
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def today_iso() -> str:
    """Get the current UTC calendar date as ``YYYY-MM-DD``."""
    return utc_now().date().isoformat()


def epoch_millis() -> int:
    """Get the current time as integer milliseconds since the epoch."""
    return int(utc_now().timestamp() * 1000)


def utc_from_timestamp(timestamp: float) -> datetime:
    """Create a timezone-aware UTC datetime from a Unix timestamp.

    Args:
        timestamp: Unix timestamp (seconds since epoch).

    Returns:
        Timezone-aware UTC datetime.
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)
