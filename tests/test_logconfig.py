from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from proctask.util.logconfig import setup_logging


@pytest.fixture
def restore_logging() -> Iterator[None]:
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
    structlog.reset_defaults()


def test_setup_logging_json_renders_structured_events(
    restore_logging: None, capsys: pytest.CaptureFixture[str]
) -> None:
    setup_logging(level="INFO", log_format="json")

    structlog.get_logger("proctask.test").info("task_timeout", task_id="t1", timeout_ms=200)

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "task_timeout"
    assert payload["task_id"] == "t1"
    assert payload["timeout_ms"] == 200
    assert payload["level"] == "info"


def test_setup_logging_reads_level_from_environment(
    restore_logging: None, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("PROCTASK_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("PROCTASK_LOG_FORMAT", "json")
    setup_logging()

    structlog.get_logger("proctask.test").warning("ignored_event")

    assert logging.getLogger().level == logging.ERROR
    assert "ignored_event" not in capsys.readouterr().err
