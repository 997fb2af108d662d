from __future__ import annotations

import os
import shlex
import stat
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from proctask.config.schema import (
    TaskSpecification,
    optional_str,
    parse_args,
    parse_bool,
    parse_env,
    parse_timeout_ms,
    require_str,
    resolve_cwd,
    resolve_id,
)
from proctask.util.errors import InvalidConfigurationError
from proctask.util.ids import IdGenerator, new_task_id


def _resolve_script(value: str) -> Path:
    script = Path(value).absolute()
    try:
        meta = script.stat()
    except (OSError, RuntimeError) as exc:
        raise InvalidConfigurationError(f"script file not found: {script}") from exc
    if not stat.S_ISREG(meta.st_mode) or not os.access(script, os.R_OK):
        raise InvalidConfigurationError(f"script must be a readable file: {script}")
    return script


@dataclass(frozen=True, kw_only=True)
class InterpreterSpecification(TaskSpecification):
    """A script file run through a named interpreter executable.

    Scripts are expected to terminate, so these specifications are not
    daemons by default. Exit codes are untrusted by default because an
    interpreter's own fatal-error status (for example 255) cannot be told
    apart from a status the script chose deliberately.
    """

    interpreter: str
    script: Path
    args: tuple[str, ...] = ()

    @classmethod
    def factory(
        cls,
        config: Mapping[str, Any] | None = None,
        *,
        id_generator: IdGenerator = new_task_id,
    ) -> InterpreterSpecification:
        """
        Build a validated interpreter specification.

        Required keys: ``file`` (or ``script``) and ``interpreter`` (or
        ``php``). ``cwd`` defaults to the script's directory and ``name`` to
        the script's file name. The interpreter is quoted as one token, so
        flags belong in ``args``.
        """
        config = config or {}
        script = _resolve_script(require_str(config, "file", "script", label="script file"))
        interpreter = require_str(config, "interpreter", "php", label="interpreter")
        if any(ch.isspace() for ch in interpreter):
            raise InvalidConfigurationError(
                "interpreter must be a single executable path; pass flags via args"
            )
        raw_cwd = config.get("cwd")
        cwd = resolve_cwd(raw_cwd if raw_cwd is not None else script.parent)
        name = optional_str(config, "name", "friendly name") or script.name
        return cls(
            id=resolve_id(config, id_generator),
            name=name,
            cwd=cwd,
            interpreter=interpreter,
            script=script,
            args=parse_args(config.get("args")),
            env=parse_env(config.get("env")),
            daemon=parse_bool(config, "daemon", False),
            timeout_ms=parse_timeout_ms(config.get("timeout_ms")),
            exit_code_trusted=parse_bool(config, "trust_exit_code", False),
        )

    def get_command(self) -> str:
        parts = [shlex.quote(self.interpreter), shlex.quote(str(self.script))]
        parts.extend(shlex.quote(arg) for arg in self.args)
        return " ".join(parts)
