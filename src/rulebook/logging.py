"""
Structured logging for rulebook.

Events are snake_case names with keyword context, rendered as JSON lines:

- ``rule_file_loaded`` (debug): one per rule file, with ``file`` and ``groups``
- ``rule_groups_loaded`` (info): end of a load, with file and group counts
- ``no_groups_found`` (warning): the patterns matched no groups
- ``datasource_query`` (debug) and ``datasource_query_failed`` (warning)
- ``command_error`` and ``unexpected_error``: CLI failures with exit codes
"""

import logging
from typing import Any

import structlog


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure structlog/standard logging bridge."""

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(level=level, format="%(message)s")


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Bind contextual fields for downstream logs, e.g. file or group."""

    logger = structlog.get_logger()
    return logger.bind(**kwargs)
