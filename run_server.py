#!/usr/bin/env python3
"""Entry point to run the cross-reference index MCP server"""

import asyncio

from xref_index.mcp_server.server import main

if __name__ == "__main__":
    asyncio.run(main())
