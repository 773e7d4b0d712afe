"""Structured logging helpers."""

from desk_shared.logging.setup import get_logger, log_context, setup_logging

__all__ = ["get_logger", "log_context", "setup_logging"]
