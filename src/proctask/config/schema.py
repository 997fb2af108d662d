"""Task specification contract shared by all runnable variants."""

from __future__ import annotations

import math
import os
import stat
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from proctask.util.errors import InvalidConfigurationError
from proctask.util.ids import IdGenerator


@dataclass(frozen=True, kw_only=True)
class TaskSpecification(ABC):
    """Immutable description of what to run and under which constraints.

    Instances are built through a variant's ``factory`` classmethod, which
    validates the configuration record; the constructor itself performs no
    checks. A validated specification is runnable as far as static checks
    can tell, but a missing executable only surfaces when the task spawns.
    """

    id: str
    name: str
    cwd: Path
    daemon: bool
    timeout_ms: int
    exit_code_trusted: bool
    env: dict[str, str] = field(default_factory=dict)

    def get_id(self) -> str:
        return self.id

    def get_name(self) -> str:
        return self.name

    @abstractmethod
    def get_command(self) -> str:
        """Return the fully resolved, shell-safe command line."""

    def get_env(self) -> dict[str, str]:
        """Return variables to overlay on the inherited environment."""
        return dict(self.env)

    def get_cwd(self) -> Path:
        return self.cwd

    def is_daemon(self) -> bool:
        """True when the process may run indefinitely and is never timed out."""
        return self.daemon

    def get_timeout(self) -> int:
        """
        Return the time limit in milliseconds; zero means no limit.

        Ignored when ``is_daemon()`` is true. Enforcement happens on polling,
        so a process may outlive the limit by up to one poll interval.
        """
        return self.timeout_ms

    def trust_exit_code(self) -> bool:
        """Whether the numeric exit code is a reliable success/failure signal."""
        return self.exit_code_trusted


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip()) and "\x00" not in value


def _is_str_without_nul(value: object) -> bool:
    return isinstance(value, str) and "\x00" not in value


def _is_valid_env_key(value: object) -> bool:
    if not isinstance(value, str):
        return False
    return _is_non_blank_str(value) and "=" not in value


def require_str(config: Mapping[str, Any], *keys: str, label: str) -> str:
    """Return the first present key among ``keys`` as a non-blank string."""
    for key in keys:
        if key in config and config[key] is not None:
            value = config[key]
            if not _is_non_blank_str(value):
                raise InvalidConfigurationError(f"{label} must be non-empty string")
            return value
    raise InvalidConfigurationError(f"No {label} specified in config")


def optional_str(config: Mapping[str, Any], key: str, label: str) -> str | None:
    value = config.get(key)
    if value is None:
        return None
    if not _is_non_blank_str(value):
        raise InvalidConfigurationError(f"{label} must be non-empty string")
    return value


def resolve_cwd(value: object) -> Path:
    """Validate that ``value`` names an existing, readable directory."""
    if value is None:
        raise InvalidConfigurationError("No cwd specified in config")
    if not isinstance(value, (str, os.PathLike)) or not str(value).strip():
        raise InvalidConfigurationError("cwd must be a path")
    if "\x00" in str(value):
        raise InvalidConfigurationError("cwd must not contain null bytes")
    cwd = Path(value)
    try:
        meta = cwd.stat()
    except (OSError, RuntimeError) as exc:
        raise InvalidConfigurationError(f"The cwd needs to be a readable directory: {cwd}") from exc
    if not stat.S_ISDIR(meta.st_mode) or not os.access(cwd, os.R_OK):
        raise InvalidConfigurationError(f"The cwd needs to be a readable directory: {cwd}")
    return cwd


def parse_args(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise InvalidConfigurationError("args must be list[str]")
    if not all(_is_str_without_nul(arg) for arg in value):
        raise InvalidConfigurationError("args must be list[str] without null bytes")
    return tuple(value)


def parse_env(value: object) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        _is_valid_env_key(k) and _is_str_without_nul(v) for k, v in value.items()
    ):
        raise InvalidConfigurationError("env must be dict[str, str]")
    return dict(value)


def parse_bool(config: Mapping[str, Any], key: str, default: bool) -> bool:
    value = config.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} must be bool")
    return value


def parse_timeout_ms(value: object) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidConfigurationError("timeout_ms must be an integer >= 0")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidConfigurationError("timeout_ms must be an integer >= 0")
    if value < 0:
        raise InvalidConfigurationError("timeout_ms must be an integer >= 0")
    return int(value)


def resolve_id(config: Mapping[str, Any], id_generator: IdGenerator) -> str:
    task_id = optional_str(config, "id", "id")
    return task_id if task_id is not None else id_generator()
