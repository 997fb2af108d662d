from __future__ import annotations

import errno
import os
import stat
from collections.abc import Callable, Mapping
from contextlib import suppress
from pathlib import Path
from typing import Any

import yaml

from proctask.config.interpreter import InterpreterSpecification
from proctask.config.schema import TaskSpecification
from proctask.config.shell import ShellSpecification
from proctask.util.errors import InvalidConfigurationError
from proctask.util.ids import IdGenerator, new_task_id

SpecFactory = Callable[..., TaskSpecification]

SPEC_FACTORIES: dict[str, SpecFactory] = {
    "shell": ShellSpecification.factory,
    "interpreter": InterpreterSpecification.factory,
}


def build_spec(
    raw: Mapping[str, Any],
    *,
    id_generator: IdGenerator = new_task_id,
    base_dir: Path | None = None,
) -> TaskSpecification:
    """
    Build one specification from a configuration record.

    ``type`` selects the variant (default ``shell``). Relative ``cwd`` and
    ``file`` paths are taken relative to ``base_dir`` when given.
    """
    kind = raw.get("type", "shell")
    factory = SPEC_FACTORIES.get(kind) if isinstance(kind, str) else None
    if factory is None:
        raise InvalidConfigurationError(
            f"unknown task type: {kind!r} (expected one of {sorted(SPEC_FACTORIES)})"
        )
    config = dict(raw)
    if base_dir is not None:
        for key in ("cwd", "file", "script"):
            value = config.get(key)
            if isinstance(value, str) and value.strip() and not Path(value).is_absolute():
                config[key] = str(base_dir / value)
    return factory(config, id_generator=id_generator)


def _read_text(path: Path) -> str:
    try:
        meta = path.stat()
    except FileNotFoundError as exc:
        raise InvalidConfigurationError(f"spec file not found: {path}") from exc
    except (OSError, RuntimeError) as exc:
        raise InvalidConfigurationError(f"failed to read spec file: {path}") from exc
    if not stat.S_ISREG(meta.st_mode):
        raise InvalidConfigurationError(f"failed to read spec file: {path}")

    open_flags = os.O_RDONLY
    if hasattr(os, "O_NONBLOCK"):
        open_flags |= os.O_NONBLOCK
    fd: int | None = None
    try:
        fd = os.open(str(path), open_flags)
        with os.fdopen(fd, "r", encoding="utf-8") as f:
            fd = None
            return f.read()
    except UnicodeError as exc:
        raise InvalidConfigurationError(f"failed to decode spec file as utf-8: {path}") from exc
    except OSError as exc:
        if exc.errno == errno.ENOENT:
            raise InvalidConfigurationError(f"spec file not found: {path}") from exc
        raise InvalidConfigurationError(f"failed to read spec file: {path}") from exc
    finally:
        if fd is not None:
            with suppress(OSError):
                os.close(fd)


def load_specs(path: Path, *, id_generator: IdGenerator = new_task_id) -> list[TaskSpecification]:
    """Load task specifications from a YAML file with a top-level ``tasks`` list."""
    content = _read_text(path)
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise InvalidConfigurationError(f"failed to parse yaml: {exc}") from exc

    if not isinstance(raw, dict):
        raise InvalidConfigurationError("spec file root must be a mapping")
    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise InvalidConfigurationError("tasks must be a non-empty list")

    base_dir = path.parent.absolute()
    specs: list[TaskSpecification] = []
    for idx, raw_task in enumerate(raw_tasks):
        if not isinstance(raw_task, dict) or any(not isinstance(k, str) for k in raw_task):
            raise InvalidConfigurationError(f"tasks[{idx}] must be a mapping with string keys")
        try:
            specs.append(build_spec(raw_task, id_generator=id_generator, base_dir=base_dir))
        except InvalidConfigurationError as exc:
            raise InvalidConfigurationError(f"tasks[{idx}]: {exc}") from exc

    ids = [spec.get_id() for spec in specs]
    if len(set(ids)) != len(ids):
        raise InvalidConfigurationError("task id must be unique")
    return specs
