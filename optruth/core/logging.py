"""Structured logging shared by the CLI and the web app.

Engine modules log through ``logging.getLogger(__name__)``; those records go
through the same structlog processor chain as ``structlog.get_logger()``
calls, so both carry the bound ``request_id`` and render identically.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from optruth.config import get_config


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structured logging for the application.

    Args:
        level: Overrides the configured ``log_level``
        json_logs: Overrides the configured ``log_format`` (JSON lines when
            true, console otherwise)
    """
    config = get_config()
    if json_logs is None:
        json_logs = config.log_format.lower() == "json"

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    final: list[Any]
    if json_logs:
        final = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        final = [structlog.dev.ConsoleRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    # Audit copy of reconciliation runs when logs/ exists
    log_file = Path("logs/optruth.log")
    if log_file.parent.exists():
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        handlers=handlers,
        level=(level or config.log_level).upper(),
        force=True,
    )
