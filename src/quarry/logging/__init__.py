"""Logging infrastructure for quarry.

This module provides structured logging with JSON output and request
context tracking.
"""

from quarry.logging.filters import ContextFilter, set_logging_context, set_request_context, clear_request_context
from quarry.logging.logger import CustomJsonFormatter, get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "CustomJsonFormatter",
    "ContextFilter",
    "set_logging_context",
    "set_request_context",
    "clear_request_context",
]
