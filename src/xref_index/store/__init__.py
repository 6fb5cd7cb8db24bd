"""Index storage: the persisted per-document store and the unsaved-document overlay."""

from .index_store import (
    INDEX_DIR_NAME,
    INDEX_FILE_SUFFIX,
    PathLocks,
    XRefIndexStore,
    deserialize_entries,
    project_scratch_dir,
    serialize_entries,
)
from .unsaved import XRefUnsavedIndex

__all__ = [
    "INDEX_DIR_NAME",
    "INDEX_FILE_SUFFIX",
    "PathLocks",
    "XRefIndexStore",
    "XRefUnsavedIndex",
    "deserialize_entries",
    "project_scratch_dir",
    "serialize_entries",
]
