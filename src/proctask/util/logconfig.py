"""structlog configuration.

PROCTASK_LOG_FORMAT selects the renderer:
- "dev" (default): human readable console output
- "json": one JSON object per line

PROCTASK_LOG_LEVEL sets the root level (default WARNING).
"""

from __future__ import annotations

import logging
import os

import structlog


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Route structlog through stdlib logging on stderr."""
    log_format = log_format or os.environ.get("PROCTASK_LOG_FORMAT", "dev")
    level = level or os.environ.get("PROCTASK_LOG_LEVEL", "WARNING")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
