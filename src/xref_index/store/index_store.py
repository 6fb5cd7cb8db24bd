"""Persistent Cross-Reference Index Store

One plain-text entry file per book document under a project-scoped scratch
directory: ``<scratch>/<project hash>/bookdown-xrefs/<relative path>.xref``.
"""

import asyncio
import hashlib
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import aiofiles
import aiofiles.os
import structlog

from xref_index.analyzer.renderer import PandocRenderer
from xref_index.models import XRefFileIndex

logger = structlog.get_logger(__name__)

INDEX_DIR_NAME = "bookdown-xrefs"
INDEX_FILE_SUFFIX = ".xref"


def project_scratch_dir(scratch_root: Path, book_root: Path) -> Path:
    """Scratch directory scoped to one book, derived from its resolved root."""
    digest = hashlib.sha1(str(Path(book_root).resolve()).encode("utf-8")).hexdigest()[:12]
    return Path(scratch_root).expanduser() / digest


def serialize_entries(entries: List[str]) -> str:
    """Newline-terminated entries; reading back yields the identical list."""
    return "".join(f"{entry}\n" for entry in entries)


def deserialize_entries(text: str) -> List[str]:
    if text and not text.endswith("\n"):
        text += "\n"
    return text.split("\n")[:-1]


class PathLocks:
    """Per-key asyncio locks serializing mutations of the same document.

    A key's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def __call__(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class XRefIndexStore:
    """Durable mapping from book-relative path to a file index."""

    def __init__(self, index_dir: Path, book_root: Path, renderer: PandocRenderer):
        self.index_dir = Path(index_dir)
        self.book_root = Path(book_root)
        self.renderer = renderer
        self._locks = PathLocks()

        # Statistics
        self.reindexed = 0
        self.skipped = 0
        self.evicted = 0
        self.errors = 0

    @classmethod
    def for_project(cls, scratch_root: Path, book_root: Path, renderer: PandocRenderer) -> "XRefIndexStore":
        index_dir = project_scratch_dir(scratch_root, book_root) / INDEX_DIR_NAME
        return cls(index_dir, book_root, renderer)

    def index_file_path(self, relative_path: str) -> Path:
        return self.index_dir / f"{relative_path}{INDEX_FILE_SUFFIX}"

    def source_path(self, relative_path: str) -> Path:
        return self.book_root / relative_path

    async def is_fresh(self, relative_path: str) -> bool:
        """True when a persisted index exists and is strictly newer than its source."""
        try:
            index_stat = await aiofiles.os.stat(self.index_file_path(relative_path))
            source_stat = await aiofiles.os.stat(self.source_path(relative_path))
        except OSError:
            return False
        return index_stat.st_mtime > source_stat.st_mtime

    async def reindex(self, relative_path: str) -> Optional[XRefFileIndex]:
        """Render the document from disk and replace its persisted index.

        Returns the new index, or None when the document could not be read
        or the index could not be written (the previous index is kept).
        """
        async with self._locks(relative_path):
            source = self.source_path(relative_path)
            try:
                async with aiofiles.open(source, "rb") as f:
                    content = await f.read()
            except FileNotFoundError:
                logger.debug("Source document vanished before indexing", file=relative_path)
                return None
            except OSError as e:
                self.errors += 1
                logger.error("Failed to read source document", file=relative_path, error=str(e))
                return None

            index = XRefFileIndex(relative_path, await self.renderer.index(content))
            if not await self._write(index):
                return None

            self.reindexed += 1
            logger.debug("Reindexed document", file=relative_path, entries=len(index.entries))
            return index

    async def reindex_if_stale(self, relative_path: str) -> Optional[XRefFileIndex]:
        """Reindex unless the persisted index is already newer than the document."""
        if await self.is_fresh(relative_path):
            self.skipped += 1
            logger.debug("Index is current, skipping", file=relative_path)
            return None
        return await self.reindex(relative_path)

    async def _write(self, index: XRefFileIndex) -> bool:
        target = self.index_file_path(index.file)
        temp = target.with_name(f".{target.name}.{os.getpid()}.tmp")
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(temp, "w", encoding="utf-8", newline="") as f:
                await f.write(serialize_entries(index.entries))
            await aiofiles.os.replace(temp, target)
            return True
        except OSError as e:
            self.errors += 1
            logger.error("Failed to write index file", file=index.file, path=str(target), error=str(e))
            try:
                await aiofiles.os.remove(temp)
            except OSError:
                pass
            return False

    async def evict(self, relative_path: str) -> bool:
        """Delete the persisted index for ``relative_path``; a missing index is a no-op."""
        async with self._locks(relative_path):
            try:
                await aiofiles.os.remove(self.index_file_path(relative_path))
            except FileNotFoundError:
                return False
            except OSError as e:
                self.errors += 1
                logger.error("Failed to remove index file", file=relative_path, error=str(e))
                return False

            self.evicted += 1
            logger.debug("Evicted document index", file=relative_path)
            return True

    async def lookup(self, relative_path: str) -> Optional[XRefFileIndex]:
        path = self.index_file_path(relative_path)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
                text = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Failed to read index file", file=relative_path, error=str(e))
            return None
        return XRefFileIndex(relative_path, deserialize_entries(text))

    def get_stats(self) -> Dict[str, Any]:
        return {
            "index_dir": str(self.index_dir),
            "reindexed": self.reindexed,
            "skipped": self.skipped,
            "evicted": self.evicted,
            "errors": self.errors,
        }
