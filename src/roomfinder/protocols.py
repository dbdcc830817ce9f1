"""Protocols for the collaborators the controller depends on."""

from typing import Protocol, runtime_checkable

from roomfinder.models.hierarchy import Entity, HierarchyKey, Leaf, LeafHit


@runtime_checkable
class HierarchyFetcher(Protocol):
    """Loads entities with their leaves already attached."""

    async def fetch_hierarchy(self, key: HierarchyKey) -> list[Entity]:
        """Return the entities scoped by key, or raise on transport/backend error."""
        ...


@runtime_checkable
class LeafSearcher(Protocol):
    """Server-side free-text leaf search, for sets too large to hold locally."""

    async def fetch_leaves_by_free_text(self, query: str) -> list[LeafHit]:
        """Return leaves matching query, with their ancestor context."""
        ...


@runtime_checkable
class CommitSink(Protocol):
    """Receives the effects decided by the commit dispatcher."""

    def on_entity_selected(self, entity_id: str) -> None:
        """Descend into the entity."""
        ...

    def on_leaf_action(self, leaf: Leaf, context: LeafHit) -> None:
        """Act on the leaf (connect, copy, view)."""
        ...

    def on_back(self) -> None:
        """Leave the current screen."""
        ...


@runtime_checkable
class KeyValueStorage(Protocol):
    """String key/value store backing the TTL cache."""

    def get_item(self, key: str) -> str | None:
        """Return the stored string, or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...
