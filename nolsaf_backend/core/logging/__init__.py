"""Structured logging with per-request context."""

from .logger_config import get_logger, setup_logging, shutdown_logging
from .middleware import (
    RequestContextMiddleware,
    bind_user,
    current_context,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "RequestContextMiddleware",
    "bind_user",
    "current_context",
]
