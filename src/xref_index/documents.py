"""Open Document Tracking

Editor-side documents (path, contents, dirty flag) and the signals fired when
they change. Handlers are awaited in registration order, so a caller of
``update()`` knows every subscriber has seen the change when it returns.
"""

import os
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from xref_index.models import SourceDocument

logger = structlog.get_logger(__name__)

Handler = Callable[..., Awaitable[None]]


class Subscription:
    """Handle returned by ``Signal.connect``; disconnects its handler."""

    def __init__(self, signal: "Signal", handler: Handler):
        self._signal = signal
        self._handler = handler

    @property
    def connected(self) -> bool:
        return self._handler in self._signal._handlers

    def unsubscribe(self) -> None:
        if self.connected:
            self._signal._handlers.remove(self._handler)


class Signal:
    """Async callback list."""

    def __init__(self, name: str):
        self.name = name
        self._handlers: List[Handler] = []

    def connect(self, handler: Handler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    async def emit(self, *args: Any) -> None:
        for handler in list(self._handlers):
            try:
                await handler(*args)
            except Exception as e:
                logger.error("Error in signal handler", signal=self.name, error=str(e))

    def __len__(self) -> int:
        return len(self._handlers)


def normalize_path(path: str) -> str:
    """Expand ``~`` and make absolute so both sides of a lookup agree."""
    if not path:
        return ""
    return os.path.abspath(os.path.expanduser(path))


class SourceDatabase:
    """The set of documents currently open in the editor."""

    def __init__(self):
        self._documents: Dict[str, SourceDocument] = {}
        self.on_updated = Signal("doc_updated")
        self.on_removed = Signal("doc_removed")
        self.on_all_removed = Signal("all_docs_removed")

    def get(self, doc_id: str) -> Optional[SourceDocument]:
        return self._documents.get(doc_id)

    def get_id(self, path: str) -> Optional[str]:
        """Id of the open document at ``path``, if any."""
        target = normalize_path(path)
        if not target:
            return None
        for doc in self._documents.values():
            if doc.path and normalize_path(doc.path) == target:
                return doc.id
        return None

    def documents(self) -> List[SourceDocument]:
        return list(self._documents.values())

    async def update(
        self,
        path: str,
        contents: str,
        dirty: bool,
        doc_id: Optional[str] = None,
    ) -> SourceDocument:
        """Open or update a document and notify subscribers."""
        doc_id = doc_id or self.get_id(path) or uuid.uuid4().hex
        doc = SourceDocument(id=doc_id, path=path, contents=contents, dirty=dirty)
        self._documents[doc_id] = doc
        await self.on_updated.emit(doc)
        return doc

    async def remove(self, doc_id: str) -> bool:
        doc = self._documents.pop(doc_id, None)
        if doc is None:
            return False
        await self.on_removed.emit(doc.id, doc.path)
        return True

    async def remove_all(self) -> None:
        self._documents.clear()
        await self.on_all_removed.emit()
