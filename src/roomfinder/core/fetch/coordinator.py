"""Hierarchy loading with caching and supersession of stale requests."""

from collections.abc import Callable

from loguru import logger

from roomfinder.core.cache.ttl_cache import TTLCache
from roomfinder.core.cancellation import CancellationToken
from roomfinder.core.search.tiered import flatten_leaves
from roomfinder.models.hierarchy import (
    Entity,
    HierarchyKey,
    LeafHit,
    entity_from_dict,
    entity_to_dict,
)
from roomfinder.protocols import HierarchyFetcher


class FetchCoordinator:
    """Loads the hierarchy for one screen.

    Only the most recent load() may publish. An earlier invocation whose key
    was superseded, or which was still running at cancel(), finishes its
    await but writes nothing.
    """

    def __init__(
        self,
        fetcher: HierarchyFetcher,
        cache: TTLCache | None = None,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache
        self.on_change = on_change
        self.key: HierarchyKey | None = None
        self.hierarchy: tuple[Entity, ...] = ()
        self.flat_leaves: tuple[LeafHit, ...] = ()
        self.loading = False
        self._token: CancellationToken | None = None

    async def load(self, key: HierarchyKey, *, force: bool = False) -> tuple[Entity, ...]:
        """Load the hierarchy for key and publish it.

        Args:
            key: Scope of the fetch.
            force: Skip the cache lookup (re-fetch after a mutation elsewhere).

        Returns:
            The published hierarchy, or the current one if this call was superseded.
        """
        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token
        cache_key = key.serialize()

        if not force:
            cached = self._read_cache(cache_key)
            if cached is not None:
                logger.debug("Hierarchy {!r} served from cache", cache_key)
                # A superseded fetch may have left the flag set.
                self.loading = False
                self._publish(key, cached)
                return cached

        self.loading = True
        try:
            entities = tuple(await self.fetcher.fetch_hierarchy(key))
        except Exception:
            if not token.cancelled:
                logger.exception("Failed to load hierarchy {!r}", cache_key)
                if self.key != key:
                    self._publish(key, ())
            return self.hierarchy
        finally:
            if not token.cancelled:
                self.loading = False

        if token.cancelled:
            logger.debug("Discarding superseded hierarchy {!r}", cache_key)
            return self.hierarchy

        if self.cache is not None:
            try:
                self.cache.set(cache_key, [entity_to_dict(e) for e in entities])
            except Exception:
                logger.exception("Failed to cache hierarchy {!r}", cache_key)
        self._publish(key, entities)
        logger.debug("Loaded hierarchy {!r}: {} entities", cache_key, len(entities))
        return entities

    def cancel(self) -> None:
        """Supersede whatever is in flight. Used on teardown."""
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self.loading = False

    def _read_cache(self, cache_key: str) -> tuple[Entity, ...] | None:
        if self.cache is None:
            return None
        value = self.cache.get(cache_key)
        if value is None:
            return None
        try:
            return tuple(entity_from_dict(item) for item in value)
        except (KeyError, TypeError, ValueError):
            logger.warning("Cached hierarchy {!r} is corrupt, re-fetching", cache_key)
            return None

    def _publish(self, key: HierarchyKey, entities: tuple[Entity, ...]) -> None:
        self.key = key
        self.hierarchy = entities
        self.flat_leaves = flatten_leaves(entities)
        if self.on_change is not None:
            self.on_change()
