"""ID generation utilities."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from secrets import token_hex

IdGenerator = Callable[[], str]


def new_task_id(now: datetime | None = None) -> str:
    """Create task id: YYYYMMDD_HHMMSS_<8chars>."""
    ts = (now or datetime.now().astimezone()).strftime("%Y%m%d_%H%M%S")
    suffix = token_hex(4)
    return f"{ts}_{suffix}"


class SequentialIds:
    """Deterministic id source: <prefix>-1, <prefix>-2, ..."""

    def __init__(self, prefix: str = "task", start: int = 1) -> None:
        self._prefix = prefix
        self._next = start

    def __call__(self) -> str:
        value = f"{self._prefix}-{self._next}"
        self._next += 1
        return value
