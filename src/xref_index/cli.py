"""Command line interface for the cross-reference index."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click

from xref_index.documents import SourceDatabase
from xref_index.mcp_server.server import serve
from xref_index.project import BookProject
from xref_index.service import XRefIndexService
from xref_index.utils.config import Settings, get_settings
from xref_index.utils.logging import configure_logging


def _settings(book_root: Optional[str]) -> Settings:
    settings = get_settings()
    if book_root:
        settings = settings.model_copy(update={"book_root": Path(book_root)})
    configure_logging(settings)
    return settings


def _service(settings: Settings) -> XRefIndexService:
    project = BookProject(Path(settings.book_root), settings)
    return XRefIndexService(project, SourceDatabase(), settings=settings)


@click.group()
def main() -> None:
    """Bookdown cross-reference index."""


@main.command("serve")
@click.option("--book-root", type=click.Path(exists=True, file_okay=False), help="Book project root")
def serve_command(book_root: Optional[str]) -> None:
    """Run the MCP server over stdio."""
    asyncio.run(serve(_settings(book_root)))


@main.command()
@click.argument("document", type=click.Path())
@click.option("--book-root", type=click.Path(exists=True, file_okay=False), help="Book project root")
def query(document: str, book_root: Optional[str]) -> None:
    """Print the cross-references visible from DOCUMENT as JSON."""
    service = _service(_settings(book_root))

    async def _query():
        if not service.project.is_within_root(Path(document)):
            # outside the book only open documents resolve, so open it from disk
            path = Path(document)
            if path.exists():
                await service.source_database.update(
                    str(path), path.read_text(encoding="utf-8", errors="replace"), dirty=False
                )
        return await service.xref_index_for_file(document)

    xrefs = asyncio.run(_query())
    click.echo(json.dumps([xref.to_dict() for xref in xrefs], indent=2))


@main.command()
@click.option("--book-root", type=click.Path(exists=True, file_okay=False), help="Book project root")
@click.option("--force", is_flag=True, help="Reindex documents whose index is already current")
def reindex(book_root: Optional[str], force: bool) -> None:
    """Index every document of the book."""
    service = _service(_settings(book_root))
    result = asyncio.run(service.reindex_all(force=force))
    click.echo(f"Indexed {result['indexed']} of {result['documents']} documents")
    if service.store.errors:
        sys.exit(1)


@main.command()
@click.option("--book-root", type=click.Path(exists=True, file_okay=False), help="Book project root")
def status(book_root: Optional[str]) -> None:
    """Show where the index lives and what the book contains."""
    service = _service(_settings(book_root))
    project = service.project

    click.echo(json.dumps({
        "book_root": str(project.root_path),
        "index_dir": str(service.store.index_dir),
        "bookdown_context": asyncio.run(project.is_bookdown_context()),
        "source_files": project.source_files(),
        "stats": service.get_stats(),
    }, indent=2))


if __name__ == "__main__":
    main()
