"""Utility functions for the Rixian Drive client."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Union

# =============================================================================
# Constants
# =============================================================================

# Default API version sent as the ``api-version`` query parameter
DEFAULT_API_VERSION: str = "2019-09-01"

# Header carrying the subscription API key
DEFAULT_API_KEY_HEADER: str = "Subscription-Key"

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Maximum number of body characters kept on an unexpected-status error
MAX_ERROR_BODY_CHARS: int = 4096

# Chunk size used when streaming downloads to disk
DOWNLOAD_CHUNK_SIZE: int = 64 * 1024


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp from the drive API.

    Args:
        timestamp_str: ISO format timestamp (e.g., "2019-09-01T10:30:00.1234567+00:00")

    Returns:
        Timezone-aware datetime (UTC when the string has no offset) or None
        if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        # .NET emits 7 fractional digits; datetime accepts at most 6
        if "." in timestamp_str:
            head, _, tail = timestamp_str.partition(".")
            digits = ""
            for ch in tail:
                if not ch.isdigit():
                    break
                digits += ch
            offset = tail[len(digits) :]
            timestamp_str = f"{head}.{digits[:6].ljust(6, '0')}{offset}"

        dt = datetime.fromisoformat(timestamp_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (ValueError, AttributeError):
        return None


def format_iso_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime the way the drive API expects it."""
    if value is None:
        return None
    return value.isoformat()


# =============================================================================
# Value conversion utilities
# =============================================================================


def parse_uuid(value: Any) -> Optional[uuid.UUID]:
    """Parse a UUID field, returning None for missing or empty values.

    Raises:
        ValueError: If the value is present but is not a valid UUID
    """
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def to_query_value(value: Union[str, bool, int, uuid.UUID, Any]) -> str:
    """Convert a query parameter value to its invariant string form.

    Examples:
        >>> to_query_value(True)
        'true'
        >>> to_query_value(12)
        '12'
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def truncate_text(text: str, limit: int = MAX_ERROR_BODY_CHARS) -> str:
    """Truncate text to ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "...[truncated]"
