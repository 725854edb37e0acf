"""Catalog tools for FastMCP.

Search with the local cache, toggle offline mode, evict caches and report status.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from fastmcp import FastMCP

from catalogsync.app import CatalogApp
from catalogsync.exceptions import EvictionPartialFailure


def register_catalog_tools(mcp: FastMCP, get_state: Callable[[], Any]) -> None:
    """Register catalog tools on the given FastMCP instance.

    Reads the wired application from ``state.app``.
    """

    def _app(state_obj: Any) -> CatalogApp:
        app = getattr(state_obj, "app", None)
        if app is None:
            raise RuntimeError("Catalog is not configured. Set CATALOGSYNC_REPLICA__BASE_URL.")
        return app

    @mcp.tool
    async def catalog_search(term: str) -> List[Dict[str, Any]]:
        """Search the catalog; repeated searches are served from the local cache.

        Parameters
        ----------
        term: str
            Search phrase. Matching is case-insensitive; an empty phrase returns [].
        """
        app = _app(get_state())
        listings = await app.orchestrator.search(term)
        return [lst.to_dict() for lst in listings]

    @mcp.tool
    async def catalog_set_offline_mode(enabled: bool) -> Dict[str, Any]:
        """Pause (true) or resume (false) live sync with the remote catalog."""
        app = _app(get_state())
        offline = await app.offline.set_offline_mode(enabled)
        return {"offline": offline}

    @mcp.tool
    async def catalog_toggle_offline_mode() -> Dict[str, Any]:
        """Flip offline mode and return the new state."""
        app = _app(get_state())
        offline = await app.offline.toggle()
        return {"offline": offline}

    @mcp.tool
    async def catalog_clear_cache() -> Dict[str, Any]:
        """Clear images, subscriptions, replicated listings and cached searches."""
        app = _app(get_state())
        try:
            await app.eviction.clear_all()
        except EvictionPartialFailure as exc:
            return {
                "ok": False,
                "failed_steps": [name for name, _ in exc.failures],
                "errors": [str(err) for _, err in exc.failures],
            }
        return {"ok": True, "storage": app.storage_report().to_dict()}

    @mcp.tool
    async def catalog_status() -> Dict[str, Any]:
        """Offline flag, cached terms, interest set size and storage sizes."""
        app = _app(get_state())
        return await app.status()
