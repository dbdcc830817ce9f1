"""Command-line interface for roomfinder (entities, search, navigate, MCP server)."""

import asyncio
import json
import re
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from roomfinder.api import JsonFileStore, RoomStoreApi
from roomfinder.config import DEFAULT_COLUMNS, resolve_data_directory
from roomfinder.controller import SearchNavigateController
from roomfinder.core.cache.storage import SqliteStorage
from roomfinder.core.cache.ttl_cache import TTLCache
from roomfinder.logging_config import configure_logging
from roomfinder.models.hierarchy import (
    CommitEvent,
    Entity,
    EntitySelected,
    HierarchyKey,
    KeyEvent,
    Leaf,
    LeafHit,
    Tier,
)

app = typer.Typer(help="Room directory: search and navigate the room hierarchy.")

KEY_ALIASES: dict[str, KeyEvent] = {
    "down": KeyEvent("ArrowDown"),
    "up": KeyEvent("ArrowUp"),
    "right": KeyEvent("ArrowRight"),
    "left": KeyEvent("ArrowLeft"),
    "enter": KeyEvent("Enter"),
    "esc": KeyEvent("Escape"),
    "escape": KeyEvent("Escape"),
    "back": KeyEvent("Backspace", ctrl=True),
}


def connect_url(leaf: Leaf) -> str:
    """Remote-desktop URL for a room: the contact id without whitespace."""
    return "anydesk:" + re.sub(r"\s+", "", leaf.contact)


class ConsoleSink:
    """Prints what a commit would do."""

    def on_entity_selected(self, entity_id: str) -> None:
        typer.echo(f"open {entity_id}")

    def on_leaf_action(self, leaf: Leaf, context: LeafHit) -> None:
        where = " / ".join([context.entity_name, *context.context])
        typer.echo(f"connect {leaf.name} ({where}) -> {connect_url(leaf)}")

    def on_back(self) -> None:
        typer.echo("back")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_store(source: Path | None) -> JsonFileStore | RoomStoreApi:
    if source is not None:
        if not source.exists():
            logger.error("Source file not found: {}", source)
            raise typer.Exit(1)
        return JsonFileStore(source)
    try:
        return RoomStoreApi()
    except RuntimeError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


def _open_cache(data_dir: Path | None, *, no_cache: bool) -> TTLCache | None:
    if no_cache:
        return None
    return TTLCache(SqliteStorage.open(data_dir or resolve_data_directory()))


def _parse_keys(keys: str) -> list[KeyEvent]:
    events = []
    for name in filter(None, (k.strip().lower() for k in keys.split(","))):
        if name not in KEY_ALIASES:
            typer.echo(f"Unknown key '{name}'. Known: {', '.join(KEY_ALIASES)}")
            raise typer.Exit(1)
        events.append(KEY_ALIASES[name])
    return events


def _describe(item: Entity | LeafHit) -> str:
    if isinstance(item, LeafHit):
        extra = f" ip={item.leaf.secondary_contact}" if item.leaf.secondary_contact else ""
        return f"{item.leaf.name} [{item.entity_name}] anydesk={item.leaf.contact}{extra}"
    return f"{item.label} ({len(item.leaves)} rooms)"


def _item_to_dict(item: Entity | LeafHit) -> dict[str, Any]:
    if isinstance(item, LeafHit):
        return {
            "room": item.leaf.name,
            "contact": item.leaf.contact,
            "ip": item.leaf.secondary_contact,
            "notes": item.leaf.notes,
            "entity": item.entity_name,
            "context": list(item.context),
        }
    return {"id": item.id, "name": item.name, "rooms": len(item.leaves)}


async def _drive(
    controller: SearchNavigateController,
    key: HierarchyKey,
    query: str,
    events: list[KeyEvent],
) -> list[CommitEvent]:
    commits: list[CommitEvent] = []
    controller.subscribe_commits(commits.append)
    try:
        await controller.mount(key)
        controller.handle_query_change(query)
        await controller.wait_idle()
        for event in events:
            controller.handle_key(event)
    finally:
        controller.unmount()
        cache = controller.coordinator.cache
        if cache is not None and isinstance(cache.storage, SqliteStorage):
            cache.storage.close()
    return commits


SourceOption = Annotated[
    Path | None,
    typer.Option("--source", "-S", help="JSON file with hierarchies (default: remote store)"),
]
SubcategoryOption = Annotated[
    str | None, typer.Option("--subcategory", "-s", help="Narrow the scope, e.g. a country")
]
DataDirOption = Annotated[
    Path | None, typer.Option("--data-dir", "-d", help="Cache database directory")
]


@app.command()
def entities(
    category: str = typer.Argument(..., help="Category, e.g. an escape room type"),
    subcategory: SubcategoryOption = None,
    source: SourceOption = None,
    data_dir: DataDirOption = None,
    no_cache: bool = typer.Option(False, "--no-cache", help="Always fetch"),
) -> None:
    """List the entities of a hierarchy."""
    controller = SearchNavigateController(
        _open_store(source), ConsoleSink(), cache=_open_cache(data_dir, no_cache=no_cache)
    )
    asyncio.run(_drive(controller, HierarchyKey(category, subcategory), "", []))
    typer.echo(f"{len(controller.hierarchy)} entities:\n")
    for entity in controller.hierarchy:
        typer.echo(f"  {_describe(entity)}  [id={entity.id}]")


@app.command()
def search(
    category: str = typer.Argument(..., help="Category, e.g. an escape room type"),
    query: str = typer.Argument(..., help="Search query"),
    subcategory: SubcategoryOption = None,
    source: SourceOption = None,
    data_dir: DataDirOption = None,
    no_cache: bool = typer.Option(False, "--no-cache", help="Always fetch"),
    remote_fallback: bool = typer.Option(
        False, "--remote-fallback", "-r", help="Search rooms on the store instead of locally"
    ),
    descriptions: bool = typer.Option(
        False, "--descriptions", help="Also match entity descriptions"
    ),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Search entities by name, falling back to rooms."""
    store = _open_store(source)
    controller = SearchNavigateController(
        store,
        ConsoleSink(),
        cache=_open_cache(data_dir, no_cache=no_cache),
        leaf_searcher=store if remote_fallback else None,
        debounce_delay=0,
        match_description=descriptions,
    )
    asyncio.run(_drive(controller, HierarchyKey(category, subcategory), query, []))

    items = controller.active_list
    if output_json:
        data = {
            "tier": controller.tier.value,
            "results": [_item_to_dict(i) for i in items],
            "count": len(items),
        }
        typer.echo(json.dumps(data, indent=2))
        return

    label = "entities" if controller.tier is Tier.PRIMARY else "rooms"
    typer.echo(f"Found {len(items)} {label} ({controller.tier.value} tier):\n")
    for i, item in enumerate(items):
        typer.echo(f"  {i:>3}  {_describe(item)}")


@app.command()
def navigate(
    category: str = typer.Argument(..., help="Category, e.g. an escape room type"),
    query: str = typer.Argument("", help="Search query (empty: browse all entities)"),
    keys: str = typer.Option(
        "", "--keys", "-k", help="Comma-separated keys, e.g. down,right,enter"
    ),
    columns: int = typer.Option(DEFAULT_COLUMNS, "--columns", "-c", help="Grid width"),
    subcategory: SubcategoryOption = None,
    source: SourceOption = None,
    data_dir: DataDirOption = None,
    no_cache: bool = typer.Option(False, "--no-cache", help="Always fetch"),
    rooms: bool = typer.Option(False, "--rooms", help="Navigate rooms only (single tier)"),
) -> None:
    """Replay keyboard input against a screen and print what gets committed."""
    events = _parse_keys(keys)
    controller = SearchNavigateController(
        _open_store(source),
        ConsoleSink(),
        cache=_open_cache(data_dir, no_cache=no_cache),
        columns=columns,
        debounce_delay=0,
        browse_leaves=rooms,
    )
    controller.subscribe_selection(lambda i: logger.debug("Selected {}", i))
    commits = asyncio.run(_drive(controller, HierarchyKey(category, subcategory), query, events))

    if not commits:
        typer.echo(f"Nothing committed (selected index {controller.selected_index}).")
    for event in commits:
        if isinstance(event, EntitySelected):
            logger.info("Descend into {}", event.entity.name)
        else:
            logger.info("Act on {}", event.hit.leaf.name)


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from roomfinder.mcp.server import run_mcp_server

    run_mcp_server()
