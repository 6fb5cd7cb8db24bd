"""Book Document Discovery

Filtering and recursive discovery of the R Markdown documents that make up a
book project.
"""

import os
from pathlib import Path
from typing import AsyncGenerator, Iterable, List, Optional

import structlog
from pathspec import PathSpec

logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDE_PATTERNS = [
    "_book/",
    "_bookdown_files/",
    "*_files/",
    "*_cache/",
    ".git/",
    ".Rproj.user/",
    "renv/",
    "packrat/",
    "node_modules/",
]


class DocumentFilter:
    """Decides whether a path is an indexable book document."""

    def __init__(
        self,
        root_path: Path,
        extension: str = ".rmd",
        exclude_patterns: Optional[Iterable[str]] = None,
        max_depth: int = 20,
    ):
        self.root_path = Path(root_path).expanduser().resolve()
        self.extension = extension.lower()
        self.max_depth = max_depth
        patterns = DEFAULT_EXCLUDE_PATTERNS if exclude_patterns is None else list(exclude_patterns)
        self.exclude_spec = PathSpec.from_lines("gitwildmatch", patterns)

    def relative_path(self, path: Path) -> Optional[str]:
        """Book-relative POSIX path, or None when ``path`` is outside the root."""
        path = Path(path).expanduser()
        # editor paths may go through symlinks the resolved root does not
        for candidate in (Path(os.path.abspath(path)), path.resolve()):
            try:
                return candidate.relative_to(self.root_path).as_posix()
            except ValueError:
                continue
        return None

    def is_within_root(self, path: Path) -> bool:
        return self.relative_path(path) is not None

    def matches(self, path: Path) -> bool:
        """Check whether ``path`` is a document under the root with the document extension."""
        relative_path = self.relative_path(path)
        if not relative_path or relative_path == ".":
            return False
        if Path(relative_path).suffix.lower() != self.extension:
            return False
        return not self.exclude_spec.match_file(relative_path)

    def include_directory(self, directory: Path) -> bool:
        relative_path = self.relative_path(directory)
        if relative_path is None:
            return False
        if relative_path == ".":
            return True
        return not self.exclude_spec.match_file(relative_path + "/")

    async def discover(self, start_path: Optional[Path] = None) -> AsyncGenerator[Path, None]:
        """Discover matching documents recursively with depth limits."""
        start_path = start_path or self.root_path

        async def _scan_directory(directory: Path, depth: int = 0) -> AsyncGenerator[Path, None]:
            if depth > self.max_depth:
                logger.warning("Maximum directory depth reached", path=str(directory), depth=depth)
                return

            if not self.include_directory(directory):
                logger.debug("Directory excluded", path=str(directory))
                return

            try:
                entries = sorted(directory.iterdir())
            except OSError as e:
                logger.warning("Cannot list directory", path=str(directory), error=str(e))
                return

            # Process files first
            for entry in entries:
                if entry.is_file() and self.matches(entry):
                    yield entry

            # Then recurse into subdirectories
            for entry in entries:
                if entry.is_dir() and not entry.is_symlink():
                    async for file_path in _scan_directory(entry, depth + 1):
                        yield file_path

        async for file_path in _scan_directory(start_path):
            yield file_path


def order_source_files(files: List[str]) -> List[str]:
    """Order documents the way bookdown does: ``index`` first, the rest sorted.

    Files whose name starts with an underscore are not part of the book.
    """
    files = sorted(f for f in files if not Path(f).name.startswith("_"))
    for i, f in enumerate(files):
        if Path(f).stem == "index" and "/" not in f:
            files.insert(0, files.pop(i))
            break
    return files
