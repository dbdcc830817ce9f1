"""Search-and-navigate controller for one hierarchy screen.

Owns the query text, the cursor and the match results. Everything the
presentation layer displays (tier, active list, selected index) is derived
from those three.
"""

from collections.abc import Callable

from loguru import logger

from roomfinder.config import DEBOUNCE_DELAY_SECONDS, DEFAULT_COLUMNS
from roomfinder.core.cache.ttl_cache import TTLCache
from roomfinder.core.cancellation import CancellationToken
from roomfinder.core.fetch.coordinator import FetchCoordinator
from roomfinder.core.navigation.cursor import UNSELECTED, NavigationCursor
from roomfinder.core.navigation.dispatcher import CommitDispatcher
from roomfinder.core.search.debounce import DebounceGate
from roomfinder.core.search.tiered import filter_leaves, match_entities, normalize_query, search
from roomfinder.models.hierarchy import (
    CommitEvent,
    Entity,
    HierarchyKey,
    KeyEvent,
    LeafHit,
    MatchTierResult,
    NavigationState,
    Tier,
)
from roomfinder.protocols import CommitSink, HierarchyFetcher, LeafSearcher


class SearchNavigateController:
    """Tiered search plus grid keyboard navigation over a two-level hierarchy.

    Must be driven from a running asyncio loop: query changes schedule the
    debounced search as a task.
    """

    def __init__(
        self,
        fetcher: HierarchyFetcher,
        sink: CommitSink,
        *,
        cache: TTLCache | None = None,
        leaf_searcher: LeafSearcher | None = None,
        columns: int = DEFAULT_COLUMNS,
        debounce_delay: float = DEBOUNCE_DELAY_SECONDS,
        match_description: bool = False,
        browse_leaves: bool = False,
    ) -> None:
        self.sink = sink
        self.leaf_searcher = leaf_searcher
        self.columns = columns
        self.match_description = match_description
        self.browse_leaves = browse_leaves
        self.coordinator = FetchCoordinator(fetcher, cache, on_change=self._on_hierarchy_changed)
        self.gate = DebounceGate(debounce_delay)
        self.cursor = NavigationCursor()
        self.dispatcher = CommitDispatcher(sink, browse_leaves=browse_leaves)
        self.query = ""
        self.results = MatchTierResult()
        self.searching = False
        self.visible = True
        self._signature: tuple[Tier, int] = (Tier.NONE, 0)
        self._shown_hierarchy: tuple[Entity, ...] = ()
        self._selection_listeners: list[Callable[[int], None]] = []
        self._commit_listeners: list[Callable[[CommitEvent], None]] = []

    # --- Derived state ---

    @property
    def hierarchy(self) -> tuple[Entity, ...]:
        return self.coordinator.hierarchy

    @property
    def loading(self) -> bool:
        return self.coordinator.loading

    @property
    def selected_index(self) -> int:
        return self.cursor.index

    @property
    def tier(self) -> Tier:
        if not normalize_query(self.query):
            return Tier.NONE
        if self.results.primary:
            return Tier.PRIMARY
        return Tier.FALLBACK

    @property
    def active_list(self) -> tuple[Entity, ...] | tuple[LeafHit, ...]:
        tier = self.tier
        if tier is Tier.PRIMARY:
            return self.results.primary
        if tier is Tier.FALLBACK:
            return self.results.fallback
        if self.browse_leaves:
            return self.coordinator.flat_leaves
        return self.coordinator.hierarchy

    def snapshot(self) -> NavigationState:
        return NavigationState(
            query=self.query,
            tier=self.tier,
            items=tuple(self.active_list),
            selected_index=self.cursor.index,
        )

    # --- Subscriptions ---

    def subscribe_selection(self, callback: Callable[[int], None]) -> None:
        """Call callback with every newly selected index (for scroll-into-view)."""
        self._selection_listeners.append(callback)

    def subscribe_commits(self, callback: Callable[[CommitEvent], None]) -> None:
        self._commit_listeners.append(callback)

    # --- Lifecycle ---

    async def mount(self, key: HierarchyKey) -> tuple[Entity, ...]:
        return await self.coordinator.load(key)

    async def refresh(self) -> tuple[Entity, ...]:
        """Re-fetch the current scope, bypassing the cache."""
        if self.coordinator.key is None:
            return ()
        return await self.coordinator.load(self.coordinator.key, force=True)

    def unmount(self) -> None:
        self.gate.close()
        self.coordinator.cancel()
        self.searching = False

    async def wait_idle(self) -> None:
        """Wait until no debounced search is pending."""
        await self.gate.wait()

    def set_visible(self, visible: bool) -> None:
        """Pause searching while the screen is hidden; catch up when shown again."""
        if visible == self.visible:
            return
        self.visible = visible
        if not visible:
            self.gate.cancel()
            self.searching = False
        elif normalize_query(self.query):
            self._schedule_search()

    # --- Input ---

    def handle_query_change(self, text: str) -> None:
        if text == self.query:
            return
        self.query = text
        self._set_index(UNSELECTED)
        if not normalize_query(text):
            self.gate.cancel()
            self.searching = False
            self.results = MatchTierResult()
            self._sync_cursor()
            return
        self._sync_cursor()
        self._schedule_search()

    def handle_key(self, event: KeyEvent) -> bool:
        """Apply a key press. Returns True if the key was consumed."""
        if event.key == "Backspace" and event.ctrl:
            self.sink.on_back()
            return True
        if event.key == "Escape":
            self.handle_query_change("")
            self._set_index(UNSELECTED)
            return True
        if event.key == "Enter":
            if self.cursor.selected:
                self.commit(self.cursor.index)
            return True

        previous = self.cursor.index
        if not self.cursor.move(event, len(self.active_list), self.columns):
            return False
        if self.cursor.index != previous and self.cursor.selected:
            self._notify_selection(self.cursor.index)
        return True

    def commit(self, index: int) -> CommitEvent | None:
        """Commit the item at index of the active list (Enter or click)."""
        event = self.dispatcher.commit(
            self.tier,
            index,
            hierarchy=self.coordinator.hierarchy,
            primary=self.results.primary,
            fallback=self.results.fallback,
            flat_leaves=self.coordinator.flat_leaves,
        )
        if event is not None:
            for listener in self._commit_listeners:
                listener(event)
        return event

    # --- Internals ---

    def _schedule_search(self) -> None:
        if not self.visible:
            return
        self.gate.schedule(self._run_search)

    async def _run_search(self, token: CancellationToken) -> None:
        query = self.query
        self.searching = True
        try:
            result = await self._compute(query, token)
        finally:
            if not token.cancelled:
                self.searching = False
        if token.cancelled or result is None:
            return
        if result != self.results:
            self.results = result
            self._set_index(UNSELECTED)
        self._sync_cursor()

    async def _compute(self, query: str, token: CancellationToken) -> MatchTierResult | None:
        hierarchy = self.coordinator.hierarchy
        flat_leaves = self.coordinator.flat_leaves

        if self.browse_leaves:
            return MatchTierResult(fallback=filter_leaves(query, flat_leaves))
        if self.leaf_searcher is None:
            return search(query, hierarchy, flat_leaves, match_description=self.match_description)

        primary = match_entities(query, hierarchy, match_description=self.match_description)
        if primary:
            return MatchTierResult(primary=primary)
        try:
            hits = await self.leaf_searcher.fetch_leaves_by_free_text(normalize_query(query))
        except Exception:
            if token.cancelled:
                return None
            logger.exception("Remote leaf search failed for {!r}", query)
            return MatchTierResult()
        return MatchTierResult(fallback=tuple(hits))

    def _on_hierarchy_changed(self) -> None:
        if self.coordinator.hierarchy != self._shown_hierarchy:
            self._shown_hierarchy = self.coordinator.hierarchy
            self._set_index(UNSELECTED)
        self._sync_cursor()
        if normalize_query(self.query):
            self._schedule_search()

    def _sync_cursor(self) -> None:
        """Reset the cursor whenever the active list's tier or length changes."""
        signature = (self.tier, len(self.active_list))
        if signature != self._signature:
            self._signature = signature
            self._set_index(UNSELECTED)

    def _set_index(self, index: int) -> None:
        if index == self.cursor.index:
            return
        self.cursor.index = index
        if index != UNSELECTED:
            self._notify_selection(index)

    def _notify_selection(self, index: int) -> None:
        for listener in self._selection_listeners:
            listener(index)
