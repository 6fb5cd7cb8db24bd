"""Shared utilities: configuration and logging."""

from .config import BookConfig, Settings, get_settings
from .logging import configure_logging

__all__ = [
    "BookConfig",
    "Settings",
    "get_settings",
    "configure_logging",
]
