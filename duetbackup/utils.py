"""Utility functions for duetbackup."""

import re
from datetime import datetime
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Timestamp format used by RepRapFirmware (no timezone information)
RRF_TIME_FORMAT: str = "%Y-%m-%dT%H:%M:%S"

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

_MULTI_SLASH = re.compile(r"/{2,}")


# =============================================================================
# Path utilities
# =============================================================================


def clean_path(path: str) -> str:
    """Collapse runs of slashes and strip one trailing slash.

    Args:
        path: Remote path as typed by the user

    Returns:
        Normalized path

    Examples:
        >>> clean_path("0:/sys//macros/")
        '0:/sys/macros'
        >>> clean_path("0:///")
        '0:'
    """
    cleaned = _MULTI_SLASH.sub("/", path)
    if cleaned.endswith("/"):
        cleaned = cleaned[:-1]
    return cleaned


def join_remote(directory: str, name: str) -> str:
    """Join a remote directory and an entry name with a single slash."""
    return f"{directory}/{name}"


# =============================================================================
# Timestamp utilities
# =============================================================================


def parse_rrf_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse a RepRapFirmware timestamp.

    The firmware reports times without an offset; they are interpreted
    as local time and returned as a naive datetime.

    Args:
        timestamp_str: Timestamp string (e.g., "2024-03-01T12:30:05")

    Returns:
        Naive datetime in local time, or None if the string is empty

    Raises:
        ValueError: If the string is not in the firmware's format
    """
    if not timestamp_str:
        return None
    return datetime.strptime(timestamp_str, RRF_TIME_FORMAT)


def format_rrf_timestamp(dt: datetime) -> str:
    """Format a datetime the way RepRapFirmware expects it in requests."""
    return dt.strftime(RRF_TIME_FORMAT)


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


def transfer_rate_kib(size_bytes: int, elapsed: float) -> float:
    """Return the transfer rate in KiB/s (0.0 when elapsed is not positive)."""
    if elapsed <= 0:
        return 0.0
    return (size_bytes / elapsed) / 1024
