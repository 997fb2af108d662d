from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

TaskStatus = Literal["NEW", "RUNNING", "COMPLETE", "SIGNALED"]
STATUS_NEW: TaskStatus = "NEW"
STATUS_RUNNING: TaskStatus = "RUNNING"
STATUS_COMPLETE: TaskStatus = "COMPLETE"
STATUS_SIGNALED: TaskStatus = "SIGNALED"
TERMINAL_STATUSES: set[str] = {"COMPLETE", "SIGNALED"}


@dataclass(slots=True)
class TaskSnapshot:
    """Point-in-time, serializable view of a task."""

    id: str
    name: str
    command: str
    cwd: str
    daemon: bool
    timeout_ms: int
    trust_exit_code: bool
    status: TaskStatus
    pid: int | None = None
    exit_code: int | None = None
    term_signal: str | None = None
    timed_out: bool = False
    started_at: str | None = None
    ended_at: str | None = None
    runtime_sec: float | None = None

    @property
    def succeeded(self) -> bool:
        """
        Whether the task finished without evidence of failure.

        Signaled and timed-out tasks never succeed, even when a timed-out task
        traps the signal and exits 0. Otherwise a completed task with an
        untrusted exit code counts as a success since its code carries no
        meaning.
        """
        if self.status != STATUS_COMPLETE:
            return False
        if self.timed_out:
            return False
        if not self.trust_exit_code:
            return True
        return self.exit_code == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "command": self.command,
            "cwd": self.cwd,
            "daemon": self.daemon,
            "timeout_ms": self.timeout_ms,
            "trust_exit_code": self.trust_exit_code,
            "status": self.status,
            "pid": self.pid,
            "exit_code": self.exit_code,
            "term_signal": self.term_signal,
            "timed_out": self.timed_out,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "runtime_sec": self.runtime_sec,
        }
