"""Book project context: document identity, chapter enumeration and detection."""

import asyncio
import re
from pathlib import Path
from typing import List, Optional

import structlog

from xref_index.scanner.file_scanner import DocumentFilter, order_source_files
from xref_index.utils.config import BookConfig, Settings, get_settings

logger = structlog.get_logger(__name__)

BOOKDOWN_SITE_PATTERN = re.compile(r"^site:\s*[\"']?bookdown::bookdown_site", re.MULTILINE)


class BookProject:
    """A bookdown book rooted at ``root_path``."""

    def __init__(self, root_path: Path, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.document_filter = DocumentFilter(root_path, extension=self.settings.document_extension)
        self.root_path = self.document_filter.root_path
        self.config = BookConfig(self.root_path)
        self._package_available: Optional[bool] = None

    def relative_path(self, path: Path) -> Optional[str]:
        """Join key shared by the index store, the overlay and query results."""
        return self.document_filter.relative_path(path)

    def is_within_root(self, path: Path) -> bool:
        return self.document_filter.is_within_root(path)

    def is_book_document(self, path: Path) -> bool:
        return self.document_filter.matches(path)

    def source_files(self) -> List[str]:
        """Book documents in chapter order; errors yield an empty list."""
        try:
            rmd_files = self.config.get_rmd_files()
            if rmd_files is not None:
                return [Path(f).as_posix() for f in rmd_files]
            return order_source_files(self._discover_source_files())
        except Exception as e:
            logger.error("Failed to enumerate book source files", root=str(self.root_path), error=str(e))
            return []

    def _discover_source_files(self) -> List[str]:
        extension = self.document_filter.extension
        directories = [self.root_path]

        subdir = self.config.get("rmd_subdir", False)
        if subdir is True:
            directories = [p for p in self.root_path.rglob("*") if p.is_dir()] + directories
        elif isinstance(subdir, (list, str)):
            subdirs = [subdir] if isinstance(subdir, str) else subdir
            directories += [self.root_path / d for d in subdirs]

        files = []
        for directory in directories:
            if not self.document_filter.include_directory(directory):
                continue
            for entry in directory.iterdir():
                if entry.is_file() and entry.suffix.lower() == extension:
                    files.append(self.relative_path(entry))
        return sorted(set(f for f in files if f))

    def is_bookdown_site(self) -> bool:
        """A book declares itself via ``_bookdown.yml`` or the ``index.Rmd`` site field."""
        if self.config.exists:
            return True
        index_path = self.root_path / "index.Rmd"
        if not index_path.exists():
            return False
        try:
            header = index_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Could not read index.Rmd", error=str(e))
            return False
        return bool(BOOKDOWN_SITE_PATTERN.search(header))

    async def is_package_installed(self, package: str = "bookdown") -> bool:
        """Probe R for ``package``; the result is cached for the project's lifetime."""
        if not self.settings.require_bookdown_package:
            return True
        if self._package_available is not None:
            return self._package_available

        expr = f'quit(status = if (requireNamespace("{package}", quietly = TRUE)) 0 else 1)'
        try:
            process = await asyncio.create_subprocess_exec(
                self.settings.rscript_path, "--vanilla", "-e", expr,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning("R is not available", rscript=self.settings.rscript_path, error=str(e))
            self._package_available = False
            return False

        try:
            await asyncio.wait_for(process.wait(), timeout=self.settings.package_probe_timeout_seconds)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("R package probe timed out", package=package)
            return False

        self._package_available = process.returncode == 0
        logger.info("Probed R package", package=package, installed=self._package_available)
        return self._package_available

    async def is_bookdown_context(self) -> bool:
        return self.is_bookdown_site() and await self.is_package_installed("bookdown")
