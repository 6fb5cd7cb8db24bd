#!/usr/bin/env python3
"""Cross-Reference Index MCP Server

A Model Context Protocol server that answers bookdown cross-reference lookups
and receives editor document events.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from xref_index.documents import SourceDatabase
from xref_index.exceptions import InvalidRequestError
from xref_index.project import BookProject
from xref_index.service import XRefIndexService
from xref_index.utils.config import Settings, get_settings
from xref_index.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

SERVER_NAME = "xref-index"

TOOLS = [
    Tool(
        name="xref_index_for_file",
        description="List the cross-references (figures, tables, sections, equations) visible from a document",
        inputSchema={
            "type": "object",
            "properties": {
                "documentPath": {
                    "type": "string",
                    "description": "Path of the document being edited"
                }
            },
            "required": ["documentPath"]
        }
    ),
    Tool(
        name="document_updated",
        description="Report the current contents and dirty state of an open document",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Document path"},
                "contents": {"type": "string", "description": "Current editor contents"},
                "dirty": {"type": "boolean", "description": "Whether the document has unsaved changes"},
                "id": {"type": "string", "description": "Editor document id (optional)"}
            },
            "required": ["path", "contents", "dirty"]
        }
    ),
    Tool(
        name="document_removed",
        description="Report that an open document was closed",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Document path"}
            },
            "required": ["path"]
        }
    ),
    Tool(
        name="documents_cleared",
        description="Report that all open documents were closed",
        inputSchema={"type": "object", "properties": {}}
    ),
]


def _require(arguments: Dict[str, Any], key: str, kind: type) -> Any:
    if key not in arguments:
        raise InvalidRequestError(f"Missing required parameter: {key}")
    value = arguments[key]
    if not isinstance(value, kind):
        raise InvalidRequestError(f"Parameter {key} must be of type {kind.__name__}")
    return value


def _json_content(payload: Any) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


async def handle_tool_call(
    service: XRefIndexService, name: str, arguments: Dict[str, Any]
) -> List[TextContent]:
    """Dispatch one tool call; parameter errors propagate to the caller."""
    arguments = arguments or {}
    database = service.source_database

    if name == "xref_index_for_file":
        document_path = _require(arguments, "documentPath", str)
        xrefs = await service.xref_index_for_file(document_path)
        return _json_content([xref.to_dict() for xref in xrefs])

    elif name == "document_updated":
        doc = await database.update(
            _require(arguments, "path", str),
            _require(arguments, "contents", str),
            _require(arguments, "dirty", bool),
            doc_id=arguments.get("id"),
        )
        return _json_content({"id": doc.id})

    elif name == "document_removed":
        doc_id = database.get_id(_require(arguments, "path", str))
        removed = await database.remove(doc_id) if doc_id else False
        return _json_content({"removed": removed})

    elif name == "documents_cleared":
        await database.remove_all()
        return _json_content({"cleared": True})

    raise InvalidRequestError(f"Unknown tool: {name}")


def create_server(service: XRefIndexService) -> Server:
    """Build an MCP server bound to ``service``."""
    app = Server(SERVER_NAME)

    @app.list_tools()
    async def list_tools() -> List[Tool]:
        return TOOLS

    @app.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        try:
            return await handle_tool_call(service, name, arguments)
        except InvalidRequestError as e:
            logger.warning("Invalid tool request", tool=name, error=str(e))
            raise

    return app


async def serve(settings: Settings) -> None:
    """Run the server over stdio for the lifetime of the session."""
    project = BookProject(Path(settings.book_root), settings)
    service = XRefIndexService(project, SourceDatabase(), settings=settings)
    app = create_server(service)

    logger.info("Starting cross-reference index server", book_root=str(project.root_path))
    async with service:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())


async def main() -> None:
    """Main server entry point"""
    settings = get_settings()
    configure_logging(settings)

    try:
        await serve(settings)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error("Server error", error=str(e))
        raise
