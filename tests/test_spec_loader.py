from __future__ import annotations

import sys
from pathlib import Path

import pytest

from proctask.config.interpreter import InterpreterSpecification
from proctask.config.loader import build_spec, load_specs
from proctask.config.shell import ShellSpecification
from proctask.util.errors import InvalidConfigurationError
from proctask.util.ids import SequentialIds

FIXTURES = Path(__file__).parent / "fixtures"


def _write_specs(path: Path, content: str) -> None:
    path.write_text(content.strip() + "\n", encoding="utf-8")


def test_load_specs_builds_each_variant(tmp_path: Path) -> None:
    spec_path = tmp_path / "tasks.yaml"
    _write_specs(
        spec_path,
        f"""
tasks:
  - name: list
    cmd: "ls"
    cwd: /
    args: ["-la", "a b"]
    daemon: false
    timeout_ms: 2500
    env:
      LANG: C
  - type: interpreter
    id: script
    interpreter: {sys.executable}
    file: {FIXTURES / "exit_200.py"}
""",
    )

    specs = load_specs(spec_path, id_generator=SequentialIds())

    assert len(specs) == 2
    shell, interpreter = specs
    assert isinstance(shell, ShellSpecification)
    assert shell.get_id() == "task-1"
    assert shell.get_command() == "ls -la 'a b'"
    assert shell.is_daemon() is False
    assert shell.get_timeout() == 2500
    assert shell.get_env() == {"LANG": "C"}
    assert isinstance(interpreter, InterpreterSpecification)
    assert interpreter.get_id() == "script"
    assert interpreter.trust_exit_code() is False


def test_load_specs_resolves_relative_paths_against_spec_file(tmp_path: Path) -> None:
    (tmp_path / "work").mkdir()
    (tmp_path / "job.py").write_text("print('x')\n", encoding="utf-8")
    spec_path = tmp_path / "tasks.yaml"
    _write_specs(
        spec_path,
        """
tasks:
  - name: rel
    cmd: "true"
    cwd: work
  - type: interpreter
    interpreter: python3
    file: job.py
""",
    )

    shell, interpreter = load_specs(spec_path)

    assert shell.get_cwd() == tmp_path.absolute() / "work"
    assert interpreter.get_cwd() == tmp_path.absolute()
    assert interpreter.get_name() == "job.py"


def test_load_specs_ignores_unknown_task_fields(tmp_path: Path) -> None:
    spec_path = tmp_path / "tasks.yaml"
    _write_specs(
        spec_path,
        """
tasks:
  - name: list
    cmd: ls
    cwd: /
    priority: high
""",
    )
    assert load_specs(spec_path)[0].get_command() == "ls"


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("- just a list", "root must be a mapping"),
        ("tasks: []", "non-empty list"),
        ("tasks: {a: 1}", "non-empty list"),
        ("tasks:\n  - just-a-string", r"tasks\[0\] must be a mapping"),
        ("tasks:\n  - type: docker\n    name: x", "unknown task type"),
        ("tasks:\n  - name: x\n    cwd: /", r"tasks\[0\]: No shell command"),
        ("tasks: [\n", "failed to parse yaml"),
    ],
)
def test_load_specs_rejects_invalid_documents(tmp_path: Path, content: str, message: str) -> None:
    spec_path = tmp_path / "tasks.yaml"
    spec_path.write_text(content, encoding="utf-8")
    with pytest.raises(InvalidConfigurationError, match=message):
        load_specs(spec_path)


def test_load_specs_rejects_duplicate_ids(tmp_path: Path) -> None:
    spec_path = tmp_path / "tasks.yaml"
    _write_specs(
        spec_path,
        """
tasks:
  - {id: a, name: one, cmd: ls, cwd: /}
  - {id: a, name: two, cmd: ls, cwd: /}
""",
    )
    with pytest.raises(InvalidConfigurationError, match="unique"):
        load_specs(spec_path)


def test_load_specs_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError, match="not found"):
        load_specs(tmp_path / "missing.yaml")


def test_load_specs_rejects_directory(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError, match="failed to read"):
        load_specs(tmp_path)


def test_load_specs_rejects_non_utf8(tmp_path: Path) -> None:
    spec_path = tmp_path / "tasks.yaml"
    spec_path.write_bytes(b"tasks:\n  - name: \xff\xfe\n")
    with pytest.raises(InvalidConfigurationError, match="utf-8"):
        load_specs(spec_path)


def test_build_spec_defaults_to_shell() -> None:
    spec = build_spec({"name": "x", "cmd": "ls", "cwd": "/"})
    assert isinstance(spec, ShellSpecification)


def test_build_spec_rejects_non_string_type() -> None:
    with pytest.raises(InvalidConfigurationError, match="unknown task type"):
        build_spec({"type": 3, "name": "x", "cmd": "ls", "cwd": "/"})
