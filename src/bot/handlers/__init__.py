"""Handlers for the monitor bot"""

from . import (
    start,
    help_cmd,
    status,
)

__all__ = [
    "start",
    "help_cmd",
    "status",
]
