"""Time helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def to_iso(moment: datetime) -> str:
    """ISO-8601 with a ``Z`` suffix for UTC."""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
