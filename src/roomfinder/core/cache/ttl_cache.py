"""Time-limited cache over a string key/value storage."""

import json
import time
from collections.abc import Callable
from typing import Any

from loguru import logger

from roomfinder.config import CACHE_TTL_SECONDS
from roomfinder.models.hierarchy import CacheEntry
from roomfinder.protocols import KeyValueStorage

_KEY_PREFIX = "cache:"


def is_fresh(now: float, stored_at: float, ttl: float) -> bool:
    """Return True while an entry stored at stored_at is still valid."""
    return now - stored_at < ttl


class TTLCache:
    """Key -> (value, timestamp) store with a fixed expiry.

    Expired entries are never served, but are not deleted either; the next
    set() overwrites them. Values must be JSON-serializable.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.ttl = ttl
        self.clock = clock

    def get_entry(self, key: str) -> CacheEntry | None:
        raw = self.storage.get_item(_KEY_PREFIX + key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            stored_at = float(data["stored_at"])
            value = data["value"]
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring unreadable cache entry for {!r}", key)
            return None
        if not is_fresh(self.clock(), stored_at, self.ttl):
            logger.debug("Cache entry for {!r} expired", key)
            return None
        return CacheEntry(key=key, value=value, stored_at=stored_at)

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps({"stored_at": self.clock(), "value": value}, separators=(",", ":"))
        self.storage.set_item(_KEY_PREFIX + key, payload)
