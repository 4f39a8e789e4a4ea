"""Utility functions for time operations."""

import time
from datetime import datetime, timezone
from typing import Union

EPOCH = datetime(1970, 1, 1)


def unix_now() -> int:
    """Current time as whole Unix seconds, clamped to the u32 range used by MBDB."""
    return int(time.time()) & 0xFFFFFFFF


def timestamp_to_iso(timestamp: Union[int, float]) -> str:
    """Convert Unix timestamp to ISO 8601 format."""
    dt = datetime.fromtimestamp(timestamp, timezone.utc)
    return dt.isoformat()


def format_duration(seconds: float) -> str:
    """Format duration in human readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    else:
        return f"{seconds / 3600:.1f}h"
