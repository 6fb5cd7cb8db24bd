"""Pandoc Renderer Adapter

Runs pandoc with the xref Lua filter over a document and returns the raw
index entries it prints, one per line.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import structlog

from xref_index.exceptions import RendererError
from xref_index.utils.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class PandocRenderer:
    """Async pandoc runner with bounded concurrency and a bounded wait."""

    def __init__(
        self,
        pandoc_path: str = "pandoc",
        from_format: str = "markdown-auto_identifiers",
        filter_path: Optional[Path] = None,
        timeout: float = 30.0,
        max_concurrent: int = 2,
    ):
        self.pandoc_path = pandoc_path
        self.from_format = from_format
        self.filter_path = filter_path
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))

        # Statistics
        self.renders_completed = 0
        self.renders_failed = 0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PandocRenderer":
        settings = settings or get_settings()
        return cls(**settings.get_renderer_config())

    def build_args(self) -> List[str]:
        return [
            self.pandoc_path,
            "--from", self.from_format,
            "--to", str(self.filter_path),
        ]

    async def index(self, content: bytes) -> List[str]:
        """Return the raw entries for ``content``; any failure yields ``[]``."""
        try:
            async with self._semaphore:
                stdout = await self._run(content)
        except RendererError as e:
            self.renders_failed += 1
            logger.error(
                "Renderer failed",
                error=str(e),
                exit_status=e.exit_status,
                stderr=e.stderr,
            )
            return []

        self.renders_completed += 1
        return split_output(stdout)

    async def index_text(self, text: str) -> List[str]:
        """Index editor contents; characters UTF-8 cannot carry (lone surrogates) become ``?``."""
        return await self.index(text.encode("utf-8", errors="replace"))

    async def _run(self, content: bytes) -> str:
        args = self.build_args()
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RendererError(f"Could not start {args[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(content), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise RendererError(f"Renderer timed out after {self.timeout}s")

        if process.returncode != 0:
            raise RendererError(
                "Renderer exited with non-zero status",
                exit_status=process.returncode,
                stderr=stderr.decode("utf-8", errors="replace").strip(),
            )
        return stdout.decode("utf-8", errors="replace")


def split_output(stdout: str) -> List[str]:
    """Split renderer output into entries, one per ``\\n``-separated line."""
    return [line[:-1] if line.endswith("\r") else line for line in stdout.split("\n")]

