"""Tool registration modules for the catalogsync MCP server."""

from .catalog import register_catalog_tools

__all__ = ["register_catalog_tools"]
