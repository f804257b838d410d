"""Human-readable relative timestamps for history descriptions."""

import time
from datetime import datetime
from typing import Optional

MINUTE_MS = 60_000
HOUR_MS = 3_600_000
DAY_MS = 86_400_000
WEEK_MS = 604_800_000


def now_ms() -> int:
    return int(time.time() * 1000)


def format_relative(timestamp_ms: int, now: Optional[int] = None) -> str:
    """
    Format an epoch-millisecond timestamp relative to now.

    Returns "5m ago", "3h ago", "2d ago", or the ISO date once the entry is
    more than a week old.
    """
    current = now_ms() if now is None else now
    diff = current - timestamp_ms

    if diff < HOUR_MS:
        return f"{max(diff, 0) // MINUTE_MS}m ago"
    if diff < DAY_MS:
        return f"{diff // HOUR_MS}h ago"
    if diff < WEEK_MS:
        return f"{diff // DAY_MS}d ago"
    return datetime.fromtimestamp(timestamp_ms / 1000).date().isoformat()
