"""Process lifecycle state machine for a single task specification."""

from __future__ import annotations

import os
import signal
import subprocess

import structlog

from proctask.config.schema import TaskSpecification
from proctask.exec.signals import DEFAULT_TERM_SIGNAL, SignalLike, resolve_signal, signal_name
from proctask.state.model import (
    STATUS_COMPLETE,
    STATUS_NEW,
    STATUS_RUNNING,
    STATUS_SIGNALED,
    TERMINAL_STATUSES,
    TaskSnapshot,
    TaskStatus,
)
from proctask.util.errors import InvalidStateError, SpawnFailureError
from proctask.util.time import elapsed_ms, elapsed_sec, monotonic, now_iso

log = structlog.get_logger(__name__)


def _decode_signal(signum: int) -> int:
    try:
        return signal.Signals(signum)
    except ValueError:
        return signum


class Task:
    """
    Runs one specification as one OS process and tracks its outcome.

    States move ``NEW -> RUNNING -> COMPLETE | SIGNALED`` and never go back;
    a task is not restartable. Nothing here blocks on the child or runs in
    the background: every transition past ``RUNNING`` happens inside a
    caller-invoked ``status_check()``, which is also where timeouts are
    enforced and where the child is reaped.

    The process is started in its own session, so signals reach the whole
    process group (the shell and anything it started).
    """

    def __init__(self, spec: TaskSpecification, *, kill_grace_sec: float | None = None) -> None:
        if kill_grace_sec is not None and kill_grace_sec < 0:
            raise ValueError("kill_grace_sec must be >= 0")
        self._spec = spec
        self._kill_grace_sec = kill_grace_sec
        self._proc: subprocess.Popen[bytes] | None = None
        self._pid: int | None = None
        self._status: TaskStatus = STATUS_NEW
        self._exit_code: int | None = None
        self._term_signal: int | None = None
        self._started_at: float | None = None
        self._ended_at: float | None = None
        self._started_iso: str | None = None
        self._ended_iso: str | None = None
        self._timed_out = False
        self._timeout_signaled_at: float | None = None
        self._kill_sent = False

    def __repr__(self) -> str:
        return f"Task(id={self._spec.get_id()!r}, status={self._status}, pid={self._pid})"

    @property
    def spec(self) -> TaskSpecification:
        return self._spec

    def run(self) -> None:
        """Spawn the process; valid only once, from ``NEW``."""
        if self._status != STATUS_NEW:
            raise InvalidStateError(
                f"task '{self._spec.get_id()}' already started (status={self._status})"
            )
        merged_env = os.environ.copy()
        merged_env.update(self._spec.get_env())
        command = self._spec.get_command()
        started_iso = now_iso()
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=str(self._spec.get_cwd()),
                env=merged_env,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            log.warning("task_spawn_failed", task_id=self._spec.get_id(), error=str(exc))
            raise SpawnFailureError(
                f"failed to start process for task '{self._spec.get_id()}': {exc}"
            ) from exc

        self._proc = proc
        self._pid = proc.pid
        self._started_at = monotonic()
        self._started_iso = started_iso
        self._status = STATUS_RUNNING
        log.debug("task_spawned", task_id=self._spec.get_id(), pid=proc.pid, command=command)

    def status_check(self) -> TaskStatus:
        """
        Poll the process without blocking and return the resulting status.

        Once terminal, further calls are pure reads. While the process is
        alive, an expired timeout (non-daemon tasks only) delivers SIGTERM;
        the ``SIGNALED`` transition shows up on a later poll.
        """
        if self._status in TERMINAL_STATUSES:
            return self._status
        if self._proc is None or self._started_at is None:
            raise InvalidStateError(f"task '{self._spec.get_id()}' has not been started")

        returncode = self._proc.poll()
        now = monotonic()
        if returncode is None:
            self._enforce_timeout(now)
            return self._status

        self._ended_at = now
        self._ended_iso = now_iso()
        if returncode < 0:
            self._term_signal = _decode_signal(-returncode)
            self._status = STATUS_SIGNALED
            log.debug(
                "task_signaled",
                task_id=self._spec.get_id(),
                signal=signal_name(self._term_signal),
                timed_out=self._timed_out,
            )
        else:
            self._exit_code = returncode
            self._status = STATUS_COMPLETE
            log.debug("task_completed", task_id=self._spec.get_id(), exit_code=returncode)
        return self._status

    def terminate(self, sig: SignalLike = DEFAULT_TERM_SIGNAL) -> bool:
        """
        Send ``sig`` to the running process group.

        The status is left untouched; call ``status_check()`` to observe the
        ``SIGNALED`` transition. Returns False without doing anything once the
        task is terminal, and False when delivery fails because the process
        is already gone. Raises ``InvalidStateError`` before ``run()``.
        """
        resolved = resolve_signal(sig)
        if self._status == STATUS_NEW:
            raise InvalidStateError(f"task '{self._spec.get_id()}' has not been started")
        if self._status in TERMINAL_STATUSES:
            return False
        return self._deliver(resolved)

    def _deliver(self, sig: signal.Signals) -> bool:
        # The child is reaped only by the terminal status_check(), so while
        # RUNNING the pid cannot have been recycled.
        assert self._pid is not None
        try:
            os.killpg(self._pid, sig)
        except OSError as exc:
            log.debug(
                "signal_delivery_failed",
                task_id=self._spec.get_id(),
                signal=sig.name,
                error=str(exc),
            )
            return False
        return True

    def _enforce_timeout(self, now: float) -> None:
        timeout_ms = self._spec.get_timeout()
        if self._spec.is_daemon() or timeout_ms <= 0:
            return
        assert self._started_at is not None
        if self._timeout_signaled_at is None:
            if elapsed_ms(self._started_at, now) > timeout_ms:
                log.info("task_timeout", task_id=self._spec.get_id(), timeout_ms=timeout_ms)
                self._timed_out = True
                self._timeout_signaled_at = now
                self._deliver(DEFAULT_TERM_SIGNAL)
            return
        if self._kill_grace_sec is None or self._kill_sent:
            return
        if elapsed_sec(self._timeout_signaled_at, now) > self._kill_grace_sec:
            log.warning("task_kill_escalated", task_id=self._spec.get_id())
            self._kill_sent = True
            self._deliver(signal.SIGKILL)

    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    def timed_out(self) -> bool:
        """True once this task delivered its own timeout signal."""
        return self._timed_out

    def get_id(self) -> str:
        return self._spec.get_id()

    def get_name(self) -> str:
        return self._spec.get_name()

    def get_pid(self) -> int | None:
        return self._pid

    def get_status(self) -> TaskStatus:
        return self._status

    def get_exit_code(self) -> int | None:
        """Exit code, present only in ``COMPLETE``."""
        return self._exit_code if self._status == STATUS_COMPLETE else None

    def get_term_signal(self) -> int | None:
        """Terminating signal, present only in ``SIGNALED``."""
        return self._term_signal if self._status == STATUS_SIGNALED else None

    def get_runtime(self) -> float | None:
        """Elapsed seconds: frozen once terminal, running total before that."""
        if self._started_at is None:
            return None
        if self._ended_at is not None:
            return elapsed_sec(self._started_at, self._ended_at)
        return elapsed_sec(self._started_at, monotonic())

    def snapshot(self) -> TaskSnapshot:
        runtime = self.get_runtime()
        return TaskSnapshot(
            id=self._spec.get_id(),
            name=self._spec.get_name(),
            command=self._spec.get_command(),
            cwd=str(self._spec.get_cwd()),
            daemon=self._spec.is_daemon(),
            timeout_ms=self._spec.get_timeout(),
            trust_exit_code=self._spec.trust_exit_code(),
            status=self._status,
            pid=self._pid,
            exit_code=self.get_exit_code(),
            term_signal=signal_name(self.get_term_signal()),
            timed_out=self._timed_out,
            started_at=self._started_iso,
            ended_at=self._ended_iso,
            runtime_sec=None if runtime is None else round(runtime, 3),
        )
