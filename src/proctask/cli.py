from __future__ import annotations

import json
import signal
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from proctask.config.loader import load_specs
from proctask.config.schema import TaskSpecification
from proctask.exec.task import Task
from proctask.state.model import TERMINAL_STATUSES, TaskSnapshot
from proctask.util.errors import InvalidConfigurationError, SpawnFailureError
from proctask.util.logconfig import setup_logging

app = typer.Typer(help="Run and supervise local OS processes")
console = Console()
STOP_GRACE_SEC = 1.0


def _exit_code_for(snapshots: Sequence[TaskSnapshot], *, canceled: bool) -> int:
    if canceled:
        return 4
    if all(snapshot.succeeded for snapshot in snapshots):
        return 0
    return 3


def _load_or_exit(spec_path: Path) -> list[TaskSpecification]:
    try:
        return load_specs(spec_path)
    except InvalidConfigurationError as exc:
        console.print(f"[red]Spec validation error:[/red] {exc}")
        raise typer.Exit(2) from exc


def _poll_until_terminal(tasks: Sequence[Task], poll_interval: float) -> None:
    while True:
        pending = [task for task in tasks if task.status_check() not in TERMINAL_STATUSES]
        if not pending:
            return
        time.sleep(poll_interval)


def _stop_all(
    tasks: Sequence[Task], poll_interval: float, grace_sec: float = STOP_GRACE_SEC
) -> None:
    """Send SIGTERM to every live task, then SIGKILL whatever outlives ``grace_sec``."""
    for task in tasks:
        if not task.is_terminal():
            task.terminate()
    deadline = time.monotonic() + grace_sec
    while True:
        pending = [task for task in tasks if task.status_check() not in TERMINAL_STATUSES]
        if not pending:
            return
        if time.monotonic() >= deadline:
            for task in pending:
                task.terminate(signal.SIGKILL)
            _poll_until_terminal(pending, poll_interval)
            return
        time.sleep(poll_interval)


def _render_status(snapshots: Sequence[TaskSnapshot]) -> Table:
    table = Table(title="Task Status")
    table.add_column("id")
    table.add_column("name")
    table.add_column("status")
    table.add_column("pid", justify="right")
    table.add_column("exit_code", justify="right")
    table.add_column("signal")
    table.add_column("runtime_sec", justify="right")
    for snapshot in snapshots:
        exit_code = "-" if snapshot.exit_code is None else str(snapshot.exit_code)
        if snapshot.exit_code is not None and not snapshot.trust_exit_code:
            exit_code += " (untrusted)"
        term_signal = snapshot.term_signal or "-"
        if snapshot.timed_out:
            term_signal += " (timeout)"
        table.add_row(
            snapshot.id,
            snapshot.name,
            snapshot.status,
            "-" if snapshot.pid is None else str(snapshot.pid),
            exit_code,
            term_signal,
            "-" if snapshot.runtime_sec is None else str(snapshot.runtime_sec),
        )
    return table


@app.command()
def check(spec_path: Annotated[Path, typer.Argument(exists=True)]) -> None:
    """Validate a spec file without starting anything."""
    setup_logging()
    specs = _load_or_exit(spec_path)
    table = Table(title="Task Specifications")
    table.add_column("id")
    table.add_column("name")
    table.add_column("command")
    table.add_column("cwd")
    table.add_column("daemon")
    table.add_column("timeout_ms", justify="right")
    for spec in specs:
        table.add_row(
            spec.get_id(),
            spec.get_name(),
            spec.get_command(),
            str(spec.get_cwd()),
            "yes" if spec.is_daemon() else "no",
            str(spec.get_timeout()),
        )
    console.print(table)


@app.command()
def run(
    spec_path: Annotated[Path, typer.Argument(exists=True)],
    poll_interval: Annotated[float, typer.Option("--poll-interval", min=0.001)] = 0.05,
    kill_grace: Annotated[float | None, typer.Option("--kill-grace", min=0.0)] = None,
    as_json: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    """Start every task in the spec file and poll them until they finish."""
    setup_logging()
    specs = _load_or_exit(spec_path)
    tasks = [Task(spec, kill_grace_sec=kill_grace) for spec in specs]
    stop_grace = STOP_GRACE_SEC if kill_grace is None else kill_grace

    started: list[Task] = []
    for task in tasks:
        try:
            task.run()
        except SpawnFailureError as exc:
            console.print(f"[red]Failed to start task:[/red] {exc}")
            _stop_all(started, poll_interval, stop_grace)
            raise typer.Exit(2) from exc
        started.append(task)

    canceled = False
    try:
        _poll_until_terminal(tasks, poll_interval)
    except KeyboardInterrupt:
        canceled = True
        _stop_all(tasks, poll_interval, stop_grace)

    snapshots = [task.snapshot() for task in tasks]
    if as_json:
        typer.echo(json.dumps([s.to_dict() for s in snapshots], ensure_ascii=False, indent=2))
    else:
        console.print(_render_status(snapshots))
    raise typer.Exit(_exit_code_for(snapshots, canceled=canceled))


if __name__ == "__main__":
    app()
