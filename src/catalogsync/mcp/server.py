"""catalogsync MCP server entrypoint using FastMCP.

Exposes the cached catalog search, offline mode and eviction as tools.
Run with:
  - catalogsync-mcp
  - or: python -m catalogsync.mcp.server (ensure PYTHONPATH includes ./src)
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastmcp import FastMCP

from catalogsync.app import CatalogApp
from catalogsync.config import Settings, load_settings
from catalogsync.exceptions import ConfigError
from catalogsync.mcp.tools import register_catalog_tools

logger = logging.getLogger(__name__)


class AppState:
    """Application state shared by MCP tools."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.app: Optional[CatalogApp] = None

    def init_app(self) -> None:
        """Wire the catalog application from configuration."""
        try:
            self.app = CatalogApp(self.settings)
        except ConfigError as exc:
            logger.warning("Catalog tools disabled: %s", exc)
            self.app = None


# Global state and server instance
_state: Optional[AppState] = None


@asynccontextmanager
async def _lifespan(server: FastMCP) -> AsyncIterator[None]:
    app = _state.app if _state is not None else None
    if app is not None:
        await app.start()
    try:
        yield
    finally:
        if app is not None:
            await app.close()


mcp = FastMCP("catalogsync MCP Server", lifespan=_lifespan)


# ----- Tools -----

@mcp.tool
def health() -> str:
    """Simple health check tool."""
    return "ok"


# ----- Entrypoint -----

def main() -> None:
    """Initialize state and run the MCP server."""
    global _state
    settings = load_settings()
    logging.basicConfig(
        level=settings.app.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state = AppState(settings)
    _state.init_app()
    register_catalog_tools(mcp, get_state=lambda: _state)
    # Choose transport based on configuration: stdio (default), http, or sse
    transport = settings.app.transport
    if transport in ("http", "sse"):
        mcp.run(transport=transport, host=settings.app.host, port=settings.app.port)
    else:
        mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
