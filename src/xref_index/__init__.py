"""Bookdown Cross-Reference Index

Keeps an index of the cross-reference labels declared across a bookdown
book's R Markdown sources and answers lookups against it, merging the
persisted per-document index with the indexes of unsaved editor buffers.
"""

__version__ = "0.1.0"

from .exceptions import InvalidRequestError, RendererError, XRefError
from .models import SourceDocument, XRef, XRefFileIndex, XRefIndexEntry

__all__ = [
    "InvalidRequestError",
    "RendererError",
    "XRefError",
    "SourceDocument",
    "XRef",
    "XRefFileIndex",
    "XRefIndexEntry",
]
