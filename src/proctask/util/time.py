from __future__ import annotations

import time
from datetime import datetime


def now_iso() -> str:
    """Return timezone-aware current local time in ISO format."""
    return datetime.now().astimezone().isoformat(timespec="milliseconds")


def monotonic() -> float:
    return time.monotonic()


def elapsed_sec(start: float, end: float) -> float:
    """Calculate elapsed seconds between two monotonic readings."""
    return end - start


def elapsed_ms(start: float, end: float) -> float:
    return (end - start) * 1000.0
