"""Tests for the search-and-navigate controller."""

import asyncio

from roomfinder.controller import SearchNavigateController
from roomfinder.core.cache.storage import MemoryStorage
from roomfinder.core.cache.ttl_cache import TTLCache
from roomfinder.core.search.tiered import flatten_leaves
from roomfinder.models.hierarchy import (
    Entity,
    EntitySelected,
    HierarchyKey,
    KeyEvent,
    LeafAction,
    LeafHit,
    Tier,
)
from tests.unit.fakes import FakeFetcher, FakeLeafSearcher, RecordingSink, make_entity

KEY = HierarchyKey("mindtrap", "Germany")
DOWN = KeyEvent("ArrowDown")
RIGHT = KeyEvent("ArrowRight")
ENTER = KeyEvent("Enter")


def _controller(
    entities: list[Entity], sink: RecordingSink | None = None, **kwargs: object
) -> SearchNavigateController:
    fetcher = FakeFetcher({KEY.serialize(): entities})
    kwargs.setdefault("debounce_delay", 0)
    sink = sink or RecordingSink()
    return SearchNavigateController(fetcher, sink, **kwargs)  # type: ignore[arg-type]


async def _type(controller: SearchNavigateController, text: str) -> None:
    controller.handle_query_change(text)
    await controller.wait_idle()


def test_end_to_end_room_search_acts_on_leaf(cities: list[Entity]) -> None:
    sink = RecordingSink()
    controller = _controller(cities, sink)
    commits: list[object] = []
    controller.subscribe_commits(commits.append)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "room")
        assert controller.tier is Tier.FALLBACK
        assert [h.leaf.name for h in controller.active_list] == ["Zen Room"]
        controller.handle_key(DOWN)
        assert controller.selected_index == 0
        controller.handle_key(ENTER)

    asyncio.run(scenario())
    assert len(sink.calls) == 1
    kind, (leaf, hit) = sink.calls[0]
    assert kind == "leaf"
    assert leaf.name == "Zen Room"
    assert hit.entity_name == "Berlin"
    assert hit.context == ("Germany",)
    assert commits == [LeafAction(hit=hit)]


def test_browsing_without_query_descends_into_entity(cities: list[Entity]) -> None:
    sink = RecordingSink()
    controller = _controller(cities, sink)

    async def scenario() -> None:
        await controller.mount(KEY)
        assert controller.tier is Tier.NONE
        assert controller.active_list == tuple(cities)
        controller.handle_key(DOWN)
        controller.handle_key(RIGHT)
        controller.handle_key(ENTER)

    asyncio.run(scenario())
    assert sink.calls == [("entity", "hamburg")]


def test_primary_match_descends_into_matched_entity(cities: list[Entity]) -> None:
    sink = RecordingSink()
    controller = _controller(cities, sink)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "ham")
        assert controller.tier is Tier.PRIMARY
        controller.handle_key(DOWN)
        event = controller.commit(controller.selected_index)
        assert event == EntitySelected(entity=cities[1])

    asyncio.run(scenario())
    assert sink.calls == [("entity", "hamburg")]


def test_enter_without_selection_commits_nothing(cities: list[Entity]) -> None:
    sink = RecordingSink()
    controller = _controller(cities, sink)

    async def scenario() -> None:
        await controller.mount(KEY)
        assert controller.handle_key(ENTER) is True

    asyncio.run(scenario())
    assert sink.calls == []


def test_query_change_resets_cursor_before_next_key(grid_entities: list[Entity]) -> None:
    controller = _controller(grid_entities, debounce_delay=10)

    async def scenario() -> None:
        await controller.mount(KEY)
        controller.handle_key(DOWN)
        controller.handle_key(DOWN)
        assert controller.selected_index == 3

        controller.handle_query_change("c")
        assert controller.selected_index == -1
        controller.handle_query_change("ci")
        assert controller.selected_index == -1
        controller.unmount()

    asyncio.run(scenario())


def test_same_length_results_still_reset_on_query_change(grid_entities: list[Entity]) -> None:
    controller = _controller(grid_entities)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "c")
        controller.handle_key(DOWN)
        controller.handle_key(DOWN)
        assert controller.selected_index == 3
        await _type(controller, "ci")
        assert len(controller.active_list) == 9
        assert controller.selected_index == -1

    asyncio.run(scenario())


def test_tier_switch_resets_cursor_even_with_same_length(cities: list[Entity]) -> None:
    fetcher = FakeFetcher({KEY.serialize(): [make_entity("Vault City", []), *cities]})
    controller = SearchNavigateController(fetcher, RecordingSink(), debounce_delay=0)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "vault")
        assert controller.tier is Tier.PRIMARY
        controller.handle_key(DOWN)
        assert controller.selected_index == 0

        # The city is renamed elsewhere; the same query now only matches a room
        fetcher.hierarchies[KEY.serialize()] = cities
        await controller.refresh()
        await controller.wait_idle()

    asyncio.run(scenario())
    assert controller.tier is Tier.FALLBACK
    assert len(controller.active_list) == 1
    assert controller.selected_index == -1


def test_rapid_edits_run_exactly_one_search() -> None:
    searched: list[str] = []
    entities = [make_entity("Abc", [])]
    controller = _controller(entities, debounce_delay=0.2)
    original = controller._compute

    async def recording_compute(query, token):  # type: ignore[no-untyped-def]
        searched.append(query)
        return await original(query, token)

    controller._compute = recording_compute  # type: ignore[method-assign]

    async def scenario() -> None:
        await controller.mount(KEY)
        for text in ("a", "ab", "abc"):
            controller.handle_query_change(text)
            await asyncio.sleep(0.01)
        await controller.wait_idle()

    asyncio.run(scenario())
    assert searched == ["abc"]
    assert controller.tier is Tier.PRIMARY


def test_escape_clears_query_and_selection(cities: list[Entity]) -> None:
    controller = _controller(cities)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "room")
        controller.handle_key(DOWN)
        assert controller.handle_key(KeyEvent("Escape")) is True

    asyncio.run(scenario())
    assert controller.query == ""
    assert controller.tier is Tier.NONE
    assert controller.selected_index == -1
    assert controller.active_list == tuple(cities)


def test_ctrl_backspace_goes_back(cities: list[Entity]) -> None:
    sink = RecordingSink()
    controller = _controller(cities, sink)

    async def scenario() -> None:
        await controller.mount(KEY)
        assert controller.handle_key(KeyEvent("Backspace", ctrl=True)) is True
        assert controller.handle_key(KeyEvent("Backspace")) is False

    asyncio.run(scenario())
    assert sink.calls == [("back", None)]


def test_selection_listeners_receive_new_indices(grid_entities: list[Entity]) -> None:
    controller = _controller(grid_entities)
    selected: list[int] = []
    controller.subscribe_selection(selected.append)

    async def scenario() -> None:
        await controller.mount(KEY)
        for _ in range(4):
            controller.handle_key(DOWN)
        await _type(controller, "city")

    asyncio.run(scenario())
    assert selected == [0, 3, 6, 0]
    assert controller.selected_index == -1


def test_blank_query_is_applied_without_waiting(cities: list[Entity]) -> None:
    controller = _controller(cities, debounce_delay=10)

    async def scenario() -> None:
        await controller.mount(KEY)
        controller.handle_query_change("room")
        assert controller.gate.pending
        controller.handle_query_change("   ")
        assert not controller.gate.pending
        assert controller.tier is Tier.NONE

    asyncio.run(scenario())


def test_hierarchy_arriving_later_reruns_active_search(cities: list[Entity]) -> None:
    fetcher = FakeFetcher({KEY.serialize(): cities}, gated=True)
    controller = SearchNavigateController(fetcher, RecordingSink(), debounce_delay=0)

    async def scenario() -> None:
        mount = asyncio.create_task(controller.mount(KEY))
        await asyncio.sleep(0)
        assert controller.loading is True
        await _type(controller, "vault")
        assert controller.active_list == ()
        fetcher.release(KEY.serialize())
        await mount
        await controller.wait_idle()

    asyncio.run(scenario())
    assert [h.leaf.name for h in controller.active_list] == ["Vault"]


def test_remote_leaf_search_replaces_local_fallback(cities: list[Entity]) -> None:
    remote_hit = LeafHit(leaf=flatten_leaves(cities)[2].leaf, entity_name="Hamburg")
    searcher = FakeLeafSearcher([remote_hit])
    controller = _controller(cities, leaf_searcher=searcher)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, " VAULT ")
        assert controller.active_list == (remote_hit,)
        await _type(controller, "berl")
        assert controller.tier is Tier.PRIMARY

    asyncio.run(scenario())
    assert searcher.queries == ["vault"]


def test_remote_leaf_search_failure_gives_empty_fallback(cities: list[Entity]) -> None:
    searcher = FakeLeafSearcher([], error=RuntimeError("backend down"))
    controller = _controller(cities, leaf_searcher=searcher)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "vault")

    asyncio.run(scenario())
    assert controller.tier is Tier.FALLBACK
    assert controller.active_list == ()
    assert controller.searching is False


def test_hidden_screen_defers_search_until_visible(cities: list[Entity]) -> None:
    controller = _controller(cities)

    async def scenario() -> None:
        await controller.mount(KEY)
        controller.set_visible(False)
        await _type(controller, "lab")
        assert controller.active_list == ()
        controller.set_visible(True)
        await controller.wait_idle()

    asyncio.run(scenario())
    assert [h.leaf.name for h in controller.active_list] == ["Lab"]


def test_browse_leaves_mode_navigates_rooms(cities: list[Entity]) -> None:
    sink = RecordingSink()
    controller = _controller(cities, sink, browse_leaves=True, columns=1)

    async def scenario() -> None:
        await controller.mount(KEY)
        assert [h.leaf.name for h in controller.active_list] == ["Zen Room", "Lab", "Vault"]
        controller.handle_key(KeyEvent("ArrowUp"))
        controller.handle_key(KeyEvent("ArrowUp"))
        controller.handle_key(ENTER)
        await _type(controller, "berlin")
        assert controller.tier is Tier.FALLBACK
        assert [h.leaf.name for h in controller.active_list] == ["Zen Room", "Lab"]

    asyncio.run(scenario())
    assert sink.calls[0][0] == "leaf"
    assert sink.calls[0][1][0].name == "Vault"


def test_refresh_bypasses_cache(cities: list[Entity]) -> None:
    fetcher = FakeFetcher({KEY.serialize(): cities})
    cache = TTLCache(MemoryStorage())
    controller = SearchNavigateController(fetcher, RecordingSink(), cache=cache)

    async def scenario() -> None:
        assert await controller.refresh() == ()
        await controller.mount(KEY)
        await controller.mount(KEY)
        await controller.refresh()

    asyncio.run(scenario())
    assert fetcher.calls == [KEY.serialize(), KEY.serialize()]


def test_unmount_stops_pending_search(cities: list[Entity]) -> None:
    controller = _controller(cities, debounce_delay=0.05)

    async def scenario() -> None:
        await controller.mount(KEY)
        controller.handle_query_change("room")
        controller.unmount()
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert controller.results.fallback == ()
    assert controller.searching is False


def test_snapshot_exposes_current_state(cities: list[Entity]) -> None:
    controller = _controller(cities)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "room")
        controller.handle_key(DOWN)

    asyncio.run(scenario())
    state = controller.snapshot()
    assert state.query == "room"
    assert state.tier is Tier.FALLBACK
    assert state.selected_index == 0
    assert [i.leaf.name for i in state.items] == ["Zen Room"]  # type: ignore[union-attr]


def test_new_results_of_same_shape_reset_cursor() -> None:
    entities = [make_entity(name, []) for name in ("Aa1", "Ab2", "Ba3", "Bb4")]
    controller = _controller(entities, debounce_delay=0.05)

    async def scenario() -> None:
        await controller.mount(KEY)
        await _type(controller, "a")
        controller.handle_query_change("b")
        # the previous results are still shown until the search runs
        controller.handle_key(DOWN)
        assert controller.active_list[controller.selected_index].name == "Aa1"
        await controller.wait_idle()

    asyncio.run(scenario())
    assert [e.name for e in controller.active_list] == ["Ab2", "Ba3", "Bb4"]
    assert controller.selected_index == -1


def test_refresh_with_same_length_hierarchy_resets_cursor(cities: list[Entity]) -> None:
    fetcher = FakeFetcher({KEY.serialize(): cities})
    controller = SearchNavigateController(fetcher, RecordingSink(), debounce_delay=0)

    async def scenario() -> None:
        await controller.mount(KEY)
        controller.handle_key(DOWN)
        assert controller.selected_index == 0
        fetcher.hierarchies[KEY.serialize()] = [
            make_entity("Munich", []),
            make_entity("Cologne", []),
        ]
        await controller.refresh()

    asyncio.run(scenario())
    assert [e.name for e in controller.active_list] == ["Munich", "Cologne"]
    assert controller.selected_index == -1
