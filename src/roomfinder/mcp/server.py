"""MCP server exposing room directory search and browsing tools."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from roomfinder.api import JsonFileStore, RoomStoreApi
from roomfinder.config import resolve_data_directory
from roomfinder.controller import SearchNavigateController
from roomfinder.core.cache.storage import SqliteStorage
from roomfinder.core.cache.ttl_cache import TTLCache
from roomfinder.models.hierarchy import Entity, HierarchyKey, Leaf, LeafHit, Tier


class _NullSink:
    """Tools only report matches; nothing is ever committed."""

    def on_entity_selected(self, entity_id: str) -> None:
        pass

    def on_leaf_action(self, leaf: Leaf, context: LeafHit) -> None:
        pass

    def on_back(self) -> None:
        pass


def _entity_entry(entity: Entity) -> dict[str, Any]:
    return {
        "id": entity.id,
        "name": entity.name,
        "label": entity.label,
        "context": list(entity.context),
        "room_count": len(entity.leaves),
    }


def _hit_entry(hit: LeafHit) -> dict[str, Any]:
    return {
        "room_id": hit.leaf.id,
        "room": hit.leaf.name,
        "anydesk": hit.leaf.contact,
        "ip": hit.leaf.secondary_contact,
        "notes": hit.leaf.notes,
        "city": hit.entity_name,
        "context": list(hit.context),
    }


# --- Core functions (testable without MCP context) ---


async def roomfinder_list_entities(
    store: JsonFileStore | RoomStoreApi,
    cache: TTLCache | None,
    *,
    category: str,
    subcategory: str | None = None,
) -> dict[str, Any]:
    """List the entities (cities) of a category, with room counts."""
    controller = SearchNavigateController(store, _NullSink(), cache=cache)
    try:
        hierarchy = await controller.mount(HierarchyKey(category, subcategory))
    finally:
        controller.unmount()
    return {
        "entities": [_entity_entry(e) for e in hierarchy],
        "count": len(hierarchy),
        "total_rooms": sum(len(e.leaves) for e in hierarchy),
    }


async def roomfinder_search(
    store: JsonFileStore | RoomStoreApi,
    cache: TTLCache | None,
    *,
    category: str,
    query: str,
    subcategory: str | None = None,
    limit: int = 20,
    remote_fallback: bool = False,
) -> dict[str, Any]:
    """Search entities by name; when none match, search rooms by all words.

    Args:
        category: Category to search in (e.g. an escape room type).
        query: Search text. Room search requires every word to match.
        subcategory: Optional narrower scope (e.g. a country).
        limit: Max results (1-50, default 20).
        remote_fallback: Search rooms on the store across all categories.
    """
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0, "total": 0}

    limit = max(1, min(limit, 50))
    controller = SearchNavigateController(
        store,
        _NullSink(),
        cache=cache,
        leaf_searcher=store if remote_fallback else None,
        debounce_delay=0,
    )
    try:
        await controller.mount(HierarchyKey(category, subcategory))
        controller.handle_query_change(query)
        await controller.wait_idle()
    finally:
        controller.unmount()

    tier = controller.tier
    if tier is Tier.PRIMARY:
        results = [_entity_entry(e) for e in controller.results.primary[:limit]]
        total = len(controller.results.primary)
    else:
        results = [_hit_entry(h) for h in controller.results.fallback[:limit]]
        total = len(controller.results.fallback)
    return {
        "tier": tier.value,
        "results": results,
        "count": len(results),
        "total": total,
        "has_more": len(results) < total,
    }


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: JsonFileStore | RoomStoreApi
    storage: SqliteStorage
    cache: TTLCache


def _resolve_paths() -> tuple[Path, Path | None]:
    data_dir_env = os.environ.get("ROOMFINDER_DATA_DIR")
    data_dir = Path(data_dir_env) if data_dir_env else resolve_data_directory()
    source_env = os.environ.get("ROOMFINDER_SOURCE")
    source = Path(source_env) if source_env else None
    return data_dir, source


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the store and cache database on startup, close on shutdown."""
    data_dir, source = _resolve_paths()
    store: JsonFileStore | RoomStoreApi = JsonFileStore(source) if source else RoomStoreApi()
    storage = SqliteStorage.open(data_dir)
    logger.info("Serving rooms from {}", source or store.__class__.__name__)
    try:
        yield ServerContext(store=store, storage=storage, cache=TTLCache(storage))
    finally:
        storage.close()


mcp_server = FastMCP(
    "roomfinder",
    instructions="""\
The room directory is a two-level hierarchy: categories (escape room types,
optionally narrowed by country) hold cities, and cities hold rooms with an
AnyDesk id, an optional IP and notes.

1. Use roomfinder_list_entities_tool to see the cities of a category.
2. Use roomfinder_search_tool to find a city by name. When no city name
   matches, the search returns rooms instead, matching every word of the
   query against room name, AnyDesk id, IP, notes, city and country.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def roomfinder_search_tool(
    ctx: Context,
    category: str,
    query: str,
    subcategory: str | None = None,
    limit: int = 20,
    remote_fallback: bool = False,
) -> dict[str, Any]:
    """Search cities by name, falling back to rooms when no city matches.

    The "tier" field tells which: "primary" results are cities, "fallback"
    results are rooms with their city and country.

    Args:
        category: Escape room type id.
        query: Search text. Room search requires every word to match.
        subcategory: Optional country.
        limit: Max results (1-50, default 20).
        remote_fallback: Search rooms across all types on the server.
    """
    sc = _ctx(ctx)
    return await roomfinder_search(
        sc.store,
        sc.cache,
        category=category,
        query=query,
        subcategory=subcategory,
        limit=limit,
        remote_fallback=remote_fallback,
    )


@mcp_server.tool()
async def roomfinder_list_entities_tool(
    ctx: Context,
    category: str,
    subcategory: str | None = None,
) -> dict[str, Any]:
    """List the cities of an escape room type, with room counts.

    Args:
        category: Escape room type id.
        subcategory: Optional country.
    """
    sc = _ctx(ctx)
    return await roomfinder_list_entities(
        sc.store, sc.cache, category=category, subcategory=subcategory
    )


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from roomfinder.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
