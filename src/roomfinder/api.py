"""Room store clients: the hosted REST backend and a local JSON file."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

import requests

from roomfinder.config import STORE_KEY_ENV, STORE_KEY_FILES, STORE_URL_ENV
from roomfinder.core.search.tiered import flatten_leaves, match_leaves
from roomfinder.models.hierarchy import Entity, HierarchyKey, Leaf, LeafHit, entity_from_dict


def _room_to_leaf(room: dict[str, Any]) -> Leaf:
    return Leaf(
        id=str(room["id"]),
        name=room["name"],
        contact=room.get("anydesk") or "",
        entity_id=str(room.get("city_id") or ""),
        secondary_contact=room.get("ip") or None,
        notes=room.get("notes") or None,
    )


def _city_to_entity(city: dict[str, Any]) -> Entity:
    rooms = sorted(city.get("rooms") or [], key=lambda r: r["name"])
    context = tuple(c for c in (city.get("country"),) if c)
    return Entity(
        id=str(city["id"]),
        name=city["name"],
        label=city["name"],
        context=context,
        leaves=tuple(_room_to_leaf(r) for r in rooms),
    )


class RoomStoreApi:
    """Client for the hosted room database (PostgREST-style REST endpoints)."""

    def __init__(self, *, base_url: str | None = None, api_key: str | None = None) -> None:
        self.sess = requests.Session()
        self.logger = logging.getLogger("api")

        base_url = base_url or os.environ.get(STORE_URL_ENV)
        if not base_url:
            msg = f"No store URL configured, set {STORE_URL_ENV}"
            raise RuntimeError(msg)
        self.base_url = base_url.rstrip("/")

        key_name = "argument"
        if api_key is None:
            api_key = os.environ.get(STORE_KEY_ENV)
            key_name = STORE_KEY_ENV
        if api_key is None:
            for key_path in STORE_KEY_FILES:
                try:
                    api_key = key_path.read_text(encoding="utf-8").strip()
                    key_name = str(key_path)
                    break
                except FileNotFoundError:
                    pass
            else:
                msg = (
                    f"Cannot find store key, was looking at {STORE_KEY_ENV} "
                    f"and {STORE_KEY_FILES!r}"
                )
                raise RuntimeError(msg)
        self.api_key = api_key

        self.sess.headers.update(
            {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}
        )
        self.logger.debug(f"API ready: {self.base_url!r}, key from {key_name!r}")

    def call(self, path: str, params: dict[str, str]) -> Any:
        """GET a table endpoint, return decoded json."""
        self.logger.debug(f"Making request: {path!r} {repr(params)[:64]}")
        r = self.sess.get(f"{self.base_url}/rest/v1/{path}", params=params, timeout=30)
        r.raise_for_status()
        rv = r.json()
        if isinstance(rv, dict) and rv.get("code"):
            msg = (
                f"API call failed: ({path!r}, {params!r}) -> "
                f"({rv['code']!r}, {rv.get('message')!r})"
            )
            raise RuntimeError(msg)
        return rv

    def get_cities(self, key: HierarchyKey) -> list[Entity]:
        params = {
            "select": "*,rooms(*)",
            "escape_room_type_id": f"eq.{key.category}",
            "order": "name",
        }
        if key.subcategory:
            params["country"] = f"eq.{key.subcategory}"
        return [_city_to_entity(c) for c in self.call("cities", params)]

    def search_rooms(self, term: str) -> list[LeafHit]:
        rows = self.call(
            "rooms",
            {
                "select": "*,cities!inner(name,country,escape_room_type_id)",
                "name": f"ilike.*{term}*",
                "order": "name",
            },
        )
        hits = []
        for row in rows:
            city = row.get("cities") or {}
            context = tuple(
                c for c in (city.get("country"), city.get("escape_room_type_id")) if c
            )
            hits.append(
                LeafHit(leaf=_room_to_leaf(row), entity_name=city.get("name", ""), context=context)
            )
        return hits

    async def fetch_hierarchy(self, key: HierarchyKey) -> list[Entity]:
        return await asyncio.to_thread(self.get_cities, key)

    async def fetch_leaves_by_free_text(self, query: str) -> list[LeafHit]:
        return await asyncio.to_thread(self.search_rooms, query)


class JsonFileStore:
    """Hierarchies read from a JSON file keyed by serialized HierarchyKey.

    Format: {"mindtrap/Germany": [{"id": ..., "name": ..., "leaves": [...]}, ...]}
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, list[dict[str, Any]]]:
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            msg = f"{self.path}: expected an object keyed by hierarchy key"
            raise ValueError(msg)
        return data

    def keys(self) -> list[HierarchyKey]:
        return [HierarchyKey.parse(k) for k in self._read()]

    def get_entities(self, key: HierarchyKey) -> list[Entity]:
        data = self._read()
        serialized = key.serialize()
        if serialized not in data:
            msg = f"{self.path}: no hierarchy for {serialized!r}"
            raise KeyError(msg)
        return [entity_from_dict(e) for e in data[serialized]]

    async def fetch_hierarchy(self, key: HierarchyKey) -> list[Entity]:
        return self.get_entities(key)

    async def fetch_leaves_by_free_text(self, query: str) -> list[LeafHit]:
        hits: list[LeafHit] = []
        for key in self.keys():
            hits.extend(match_leaves(query, flatten_leaves(self.get_entities(key))))
        return hits
