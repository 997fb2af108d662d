from __future__ import annotations

import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from proctask.config.schema import (
    TaskSpecification,
    parse_args,
    parse_bool,
    parse_env,
    parse_timeout_ms,
    require_str,
    resolve_cwd,
    resolve_id,
)
from proctask.util.ids import IdGenerator, new_task_id


@dataclass(frozen=True, kw_only=True)
class ShellSpecification(TaskSpecification):
    """Arbitrary shell command followed by individually escaped arguments."""

    cmd: str
    args: tuple[str, ...] = ()

    @classmethod
    def factory(
        cls,
        config: Mapping[str, Any] | None = None,
        *,
        id_generator: IdGenerator = new_task_id,
    ) -> ShellSpecification:
        """
        Build a validated shell specification.

        Required keys: ``cmd``, ``cwd``, ``name``. Optional: ``args``, ``id``,
        ``env``, ``daemon`` (default True), ``timeout_ms`` (default 0) and
        ``trust_exit_code`` (default True). Other keys are ignored.
        """
        config = config or {}
        cmd = require_str(config, "cmd", label="shell command")
        cwd = resolve_cwd(config.get("cwd"))
        name = require_str(config, "name", label="friendly name")
        return cls(
            id=resolve_id(config, id_generator),
            name=name,
            cwd=cwd,
            cmd=cmd,
            args=parse_args(config.get("args")),
            env=parse_env(config.get("env")),
            daemon=parse_bool(config, "daemon", True),
            timeout_ms=parse_timeout_ms(config.get("timeout_ms")),
            exit_code_trusted=parse_bool(config, "trust_exit_code", True),
        )

    def get_command(self) -> str:
        cmd = self.cmd
        for arg in self.args:
            cmd += " " + shlex.quote(arg)
        return cmd.strip()
