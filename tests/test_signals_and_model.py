from __future__ import annotations

import signal

import pytest

from proctask.exec.signals import DEFAULT_TERM_SIGNAL, resolve_signal, signal_name
from proctask.state.model import TaskSnapshot
from proctask.util.ids import SequentialIds


@pytest.mark.parametrize(
    "value",
    [signal.SIGABRT, int(signal.SIGABRT), "ABRT", "abrt", "SIGABRT", " sigabrt "],
)
def test_resolve_signal_accepts_enum_number_and_names(value: signal.Signals | int | str) -> None:
    assert resolve_signal(value) is signal.SIGABRT


@pytest.mark.parametrize("value", ["NOPE", "", 0, 100000, True, 1.5])
def test_resolve_signal_rejects_unknown_values(value: object) -> None:
    with pytest.raises(ValueError):
        resolve_signal(value)  # type: ignore[arg-type]


def test_default_term_signal_is_sigterm() -> None:
    assert DEFAULT_TERM_SIGNAL is signal.SIGTERM


def test_signal_name_handles_absent_and_unnamed_values() -> None:
    assert signal_name(None) is None
    assert signal_name(signal.SIGKILL) == "SIGKILL"
    assert signal_name(int(signal.SIGTERM)) == "SIGTERM"
    assert signal_name(100000) == "SIG100000"


def _snapshot(**overrides: object) -> TaskSnapshot:
    values: dict[str, object] = {
        "id": "t1",
        "name": "one",
        "command": "true",
        "cwd": "/",
        "daemon": False,
        "timeout_ms": 0,
        "trust_exit_code": True,
        "status": "COMPLETE",
        "exit_code": 0,
    }
    values.update(overrides)
    return TaskSnapshot(**values)  # type: ignore[arg-type]


def test_snapshot_success_rules() -> None:
    assert _snapshot().succeeded is True
    assert _snapshot(exit_code=1).succeeded is False
    assert _snapshot(exit_code=255, trust_exit_code=False).succeeded is True
    assert _snapshot(status="SIGNALED", exit_code=None, term_signal="SIGTERM").succeeded is False
    assert _snapshot(status="RUNNING", exit_code=None).succeeded is False
    assert _snapshot(timed_out=True).succeeded is False
    assert _snapshot(timed_out=True, trust_exit_code=False).succeeded is False


def test_snapshot_to_dict_contains_all_fields() -> None:
    data = _snapshot(pid=1234, runtime_sec=0.5).to_dict()
    assert data["pid"] == 1234
    assert data["runtime_sec"] == 0.5
    assert data["term_signal"] is None
    assert set(data) == {
        "id",
        "name",
        "command",
        "cwd",
        "daemon",
        "timeout_ms",
        "trust_exit_code",
        "status",
        "pid",
        "exit_code",
        "term_signal",
        "timed_out",
        "started_at",
        "ended_at",
        "runtime_sec",
    }


def test_sequential_ids_start_and_prefix() -> None:
    ids = SequentialIds(prefix="run", start=5)
    assert [ids(), ids(), ids()] == ["run-5", "run-6", "run-7"]
