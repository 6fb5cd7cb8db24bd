"""Book File Scanning

Document discovery and real-time change monitoring for book projects.
"""

from .file_monitor import (
    ADDED,
    MODIFIED,
    REMOVED,
    ChangeBuffer,
    FileChangeEvent,
    FileMonitor,
    LoopForwardingEventHandler,
)
from .file_scanner import DEFAULT_EXCLUDE_PATTERNS, DocumentFilter, order_source_files

__all__ = [
    "ADDED",
    "MODIFIED",
    "REMOVED",
    "ChangeBuffer",
    "FileChangeEvent",
    "FileMonitor",
    "LoopForwardingEventHandler",
    "DEFAULT_EXCLUDE_PATTERNS",
    "DocumentFilter",
    "order_source_files",
]
