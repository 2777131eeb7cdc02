"""Middleware for the monitor bot"""

from .logging import LoggingMiddleware

__all__ = [
    "LoggingMiddleware",
]
