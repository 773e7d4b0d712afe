"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    project_id: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format; otherwise, colored console
        project_id: Optional desk project ID to include in all log entries
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if project_id:

        def add_project_id(
            logger: Any, method_name: str, event_dict: dict[str, Any]
        ) -> dict[str, Any]:
            event_dict["project_id"] = project_id
            return event_dict

        processors.insert(0, add_project_id)

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound logger instance
    """
    return structlog.get_logger(name)


def log_context(**values: Any) -> AbstractContextManager[Any]:
    """Bind key/value context (rule_type, rule_id...) to log entries in a block.

    None values are left out so unsaved rules do not log ``rule_id=None``.

    Usage:
        with log_context(rule_type="ASSIGNMENT", rule_id=rule_id):
            await client.update_rule(payload)
    """
    bound = {key: value for key, value in values.items() if value is not None}
    return structlog.contextvars.bound_contextvars(**bound)
