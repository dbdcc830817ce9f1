"""Domain models for the room hierarchy and the search/navigation state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class HierarchyKey:
    """Parameters scoping a hierarchy fetch (a type, or type + country)."""

    category: str
    subcategory: str | None = None

    def serialize(self) -> str:
        if self.subcategory:
            return f"{self.category}/{self.subcategory}"
        return self.category

    @classmethod
    def parse(cls, value: str) -> "HierarchyKey":
        category, _, subcategory = value.partition("/")
        return cls(category=category, subcategory=subcategory or None)


@dataclass(frozen=True)
class Leaf:
    """A terminal record, e.g. a room with its remote-desktop id."""

    id: str
    name: str
    contact: str
    entity_id: str
    secondary_contact: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Entity:
    """A mid-level node, e.g. a city holding rooms."""

    id: str
    name: str
    label: str
    leaves: tuple[Leaf, ...] = ()
    description: str = ""
    context: tuple[str, ...] = ()


@dataclass(frozen=True)
class LeafHit:
    """A leaf denormalized with its ancestor context."""

    leaf: Leaf
    entity_name: str
    context: tuple[str, ...] = ()

    @property
    def searchable_text(self) -> str:
        return " ".join(
            [
                self.leaf.name,
                self.leaf.contact,
                self.leaf.secondary_contact or "",
                self.leaf.notes or "",
                self.entity_name,
                *self.context,
            ]
        ).lower()


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the time it was stored."""

    key: str
    value: Any
    stored_at: float


class Tier(Enum):
    """Which list the user is looking at."""

    NONE = "none"
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class MatchTierResult:
    """Search matches. Fallback is only populated when primary is empty."""

    primary: tuple[Entity, ...] = ()
    fallback: tuple[LeafHit, ...] = ()


@dataclass(frozen=True)
class KeyEvent:
    """A keyboard event as delivered by the presentation layer."""

    key: str
    ctrl: bool = False


@dataclass(frozen=True)
class EntitySelected:
    """Commit event: descend into an entity."""

    entity: Entity


@dataclass(frozen=True)
class LeafAction:
    """Commit event: act on a leaf record."""

    hit: LeafHit


CommitEvent = EntitySelected | LeafAction


@dataclass(frozen=True)
class NavigationState:
    """Snapshot of what the controller currently exposes."""

    query: str
    tier: Tier
    items: tuple[Entity | LeafHit, ...] = field(default_factory=tuple)
    selected_index: int = -1


def leaf_to_dict(leaf: Leaf) -> dict[str, Any]:
    return {
        "id": leaf.id,
        "name": leaf.name,
        "contact": leaf.contact,
        "entity_id": leaf.entity_id,
        "secondary_contact": leaf.secondary_contact,
        "notes": leaf.notes,
    }


def leaf_from_dict(data: dict[str, Any], *, entity_id: str | None = None) -> Leaf:
    return Leaf(
        id=str(data["id"]),
        name=data["name"],
        contact=data.get("contact") or "",
        entity_id=str(data.get("entity_id") or entity_id or ""),
        secondary_contact=data.get("secondary_contact"),
        notes=data.get("notes"),
    )


def entity_to_dict(entity: Entity) -> dict[str, Any]:
    return {
        "id": entity.id,
        "name": entity.name,
        "label": entity.label,
        "description": entity.description,
        "context": list(entity.context),
        "leaves": [leaf_to_dict(leaf) for leaf in entity.leaves],
    }


def entity_from_dict(data: dict[str, Any]) -> Entity:
    """Build an Entity with nested leaves from a JSON-compatible dict.

    Raises KeyError/TypeError/ValueError on malformed input.
    """
    if not isinstance(data, dict):
        msg = f"Entity must be a mapping, got {type(data).__name__}"
        raise TypeError(msg)
    entity_id = str(data["id"])
    return Entity(
        id=entity_id,
        name=data["name"],
        label=data.get("label") or data["name"],
        description=data.get("description") or "",
        context=tuple(data.get("context") or ()),
        leaves=tuple(
            leaf_from_dict(leaf, entity_id=entity_id) for leaf in data.get("leaves") or ()
        ),
    )
