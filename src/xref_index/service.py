"""Cross-Reference Index Service

Owns the index store, the unsaved-document overlay and the file monitor for
one book session, and answers cross-reference queries by merging them.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog

from xref_index.analyzer.renderer import PandocRenderer
from xref_index.analyzer.xrefs import entries_for_file, index_entries_to_xrefs
from xref_index.documents import SourceDatabase, Subscription, normalize_path
from xref_index.exceptions import InvalidRequestError
from xref_index.models import SourceDocument, XRef, XRefFileIndex, XRefIndexEntry
from xref_index.project import BookProject
from xref_index.scanner.file_monitor import FileMonitor
from xref_index.store.index_store import XRefIndexStore
from xref_index.store.unsaved import XRefUnsavedIndex
from xref_index.utils.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class XRefIndexService:
    """Session-scoped cross-reference index for a book project."""

    def __init__(
        self,
        project: BookProject,
        source_database: SourceDatabase,
        renderer: Optional[PandocRenderer] = None,
        store: Optional[XRefIndexStore] = None,
        settings: Optional[Settings] = None,
        monitor_factory: Callable[..., FileMonitor] = FileMonitor,
    ):
        self.settings = settings or get_settings()
        self.project = project
        self.source_database = source_database
        self.renderer = renderer or PandocRenderer.from_settings(self.settings)
        self.store = store or XRefIndexStore.for_project(
            self.settings.scratch_dir, project.root_path, self.renderer
        )
        self.unsaved = XRefUnsavedIndex(self.renderer)
        self.monitor: Optional[FileMonitor] = None
        self._monitor_factory = monitor_factory
        self._subscriptions: List[Subscription] = []

    async def start(self) -> None:
        """Subscribe to editor events and, in a bookdown context, watch the book."""
        self._subscriptions = [
            self.source_database.on_updated.connect(self._on_doc_updated),
            self.source_database.on_removed.connect(self._on_doc_removed),
            self.source_database.on_all_removed.connect(self._on_all_docs_removed),
        ]

        if await self.project.is_bookdown_context():
            self.monitor = self._monitor_factory(
                self.project,
                self.store,
                **self.settings.get_monitor_config(),
            )
            await self.monitor.start()
        else:
            logger.info("Not a bookdown context, file monitoring disabled", root=str(self.project.root_path))

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

        if self.monitor is not None:
            await self.monitor.stop()
            self.monitor = None

        self.unsaved.clear()
        logger.info("Cross-reference index service stopped")

    async def __aenter__(self) -> "XRefIndexService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # Editor events

    def _book_relative_path(self, path: str) -> Optional[str]:
        if not path:
            return None
        file_path = Path(normalize_path(path))
        if not self.project.is_book_document(file_path):
            return None
        return self.project.relative_path(file_path)

    async def _on_doc_updated(self, doc: SourceDocument) -> None:
        relative_path = self._book_relative_path(doc.path)
        if relative_path is not None:
            await self.unsaved.update(relative_path, doc.contents, doc.dirty)

    async def _on_doc_removed(self, doc_id: str, path: str) -> None:
        relative_path = self._book_relative_path(path)
        if relative_path is not None:
            await self.unsaved.remove(relative_path)

    async def _on_all_docs_removed(self) -> None:
        self.unsaved.clear()

    # Queries

    async def _file_index(self, relative_path: str) -> XRefFileIndex:
        """Overlay first, then the persisted store, then nothing."""
        index = self.unsaved.get(relative_path)
        if index is not None:
            return index
        index = await self.store.lookup(relative_path)
        return index or XRefFileIndex(relative_path)

    async def index_entries_for_project(self) -> List[XRefIndexEntry]:
        source_files = self.project.source_files()
        indexes = await asyncio.gather(*(self._file_index(f) for f in source_files))
        entries: List[XRefIndexEntry] = []
        for index in indexes:
            entries.extend(entries_for_file(index))
        return entries

    async def index_entries_for_document(self, path: str) -> List[XRefIndexEntry]:
        """Index the live editor contents of ``path``; unknown documents yield nothing."""
        doc_id = self.source_database.get_id(path)
        doc = self.source_database.get(doc_id) if doc_id else None
        if doc is None:
            return []
        entries = await self.renderer.index_text(doc.contents)
        return entries_for_file(XRefFileIndex(Path(path).name, entries))

    async def xref_index_for_file(self, document_path: Any) -> List[XRef]:
        """Cross-references visible from ``document_path``.

        Documents inside a bookdown book see the whole book; anything else
        sees only its own references.
        """
        if not isinstance(document_path, str):
            raise InvalidRequestError("documentPath must be a string")

        path = normalize_path(document_path)
        if path and self.project.is_within_root(Path(path)) and await self.project.is_bookdown_context():
            entries = await self.index_entries_for_project()
        else:
            entries = await self.index_entries_for_document(path)
        return index_entries_to_xrefs(entries)

    # Maintenance

    async def reindex_all(self, force: bool = False) -> Dict[str, int]:
        """Index every document in the book, skipping current indexes unless forced."""
        paths = [
            self.project.relative_path(file_path)
            async for file_path in self.project.document_filter.discover()
        ]
        reindex = self.store.reindex if force else self.store.reindex_if_stale
        results = await asyncio.gather(*(reindex(p) for p in paths if p))
        indexed = sum(1 for r in results if r is not None)
        return {"documents": len(paths), "indexed": indexed, "skipped": len(paths) - indexed}

    def get_stats(self) -> Dict[str, Any]:
        return {
            "book_root": str(self.project.root_path),
            "unsaved_documents": len(self.unsaved),
            "store": self.store.get_stats(),
            "monitor": self.monitor.get_stats() if self.monitor else None,
            "renderer": {
                "completed": self.renderer.renders_completed,
                "failed": self.renderer.renders_failed,
            },
        }
