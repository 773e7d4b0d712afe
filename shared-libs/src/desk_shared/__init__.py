"""Desk shared libraries.

Minimal shared utilities for desk dashboard services.
"""

__version__ = "0.1.0"

from desk_shared.config import load_config_dict
from desk_shared.logging import get_logger, log_context, setup_logging

__all__ = [
    "load_config_dict",
    "setup_logging",
    "get_logger",
    "log_context",
]
