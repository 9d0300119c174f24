"""Shared utility functions for the Mova widget task pipeline."""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware).

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds since the epoch.

    Pending entries are keyed by this value, matching the millisecond
    timestamps the app writes into the shared store.
    """
    return time.time_ns() // 1_000_000


def normalize_server_url(url: str) -> str:
    """Strip surrounding whitespace and trailing slashes from a server URL.

    Example:
        >>> normalize_server_url("https://todo.example.com//")
        'https://todo.example.com'
    """
    return url.strip().rstrip("/")
