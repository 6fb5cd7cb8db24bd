"""In-memory index of open documents with unsaved edits."""

from typing import Dict, Optional

import structlog

from xref_index.analyzer.renderer import PandocRenderer
from xref_index.models import XRefFileIndex
from xref_index.store.index_store import PathLocks

logger = structlog.get_logger(__name__)


class XRefUnsavedIndex:
    """Overlay of file indexes that always wins over the persisted store."""

    def __init__(self, renderer: PandocRenderer):
        self.renderer = renderer
        self._unsaved: Dict[str, XRefFileIndex] = {}
        self._locks = PathLocks()
        # bumped by clear() so renders started before it are discarded
        self._generation = 0

    def get(self, relative_path: str) -> Optional[XRefFileIndex]:
        return self._unsaved.get(relative_path)

    def __contains__(self, relative_path: str) -> bool:
        return relative_path in self._unsaved

    def __len__(self) -> int:
        return len(self._unsaved)

    async def update(self, relative_path: str, contents: str, dirty: bool) -> None:
        async with self._locks(relative_path):
            # the old entry must not outlive a render that fails
            self._unsaved.pop(relative_path, None)
            if not dirty:
                return

            generation = self._generation
            entries = await self.renderer.index_text(contents)
            if generation != self._generation:
                logger.debug("Discarding overlay render started before clear", file=relative_path)
                return
            self._unsaved[relative_path] = XRefFileIndex(relative_path, entries)
            logger.debug("Updated unsaved index", file=relative_path, entries=len(entries))

    async def remove(self, relative_path: str) -> None:
        async with self._locks(relative_path):
            self._unsaved.pop(relative_path, None)

    def clear(self) -> None:
        self._generation += 1
        self._unsaved.clear()
        logger.debug("Cleared unsaved indexes")
