"""Tests for commit dispatching."""

from roomfinder.core.navigation.dispatcher import CommitDispatcher
from roomfinder.core.search.tiered import flatten_leaves
from roomfinder.models.hierarchy import Entity, EntitySelected, LeafAction, Tier
from tests.unit.fakes import RecordingSink


def test_inactive_tier_descends_into_hierarchy_entity(cities: list[Entity]) -> None:
    sink = RecordingSink()
    event = CommitDispatcher(sink).commit(Tier.NONE, 1, hierarchy=cities)
    assert event == EntitySelected(entity=cities[1])
    assert sink.calls == [("entity", "hamburg")]


def test_primary_tier_descends_into_matched_entity(cities: list[Entity]) -> None:
    sink = RecordingSink()
    event = CommitDispatcher(sink).commit(Tier.PRIMARY, 0, hierarchy=cities, primary=cities[1:])
    assert event == EntitySelected(entity=cities[1])
    assert sink.calls == [("entity", "hamburg")]


def test_fallback_tier_acts_on_leaf_with_context(cities: list[Entity]) -> None:
    sink = RecordingSink()
    hits = flatten_leaves(cities)
    event = CommitDispatcher(sink).commit(Tier.FALLBACK, 2, fallback=hits)
    assert event == LeafAction(hit=hits[2])
    assert sink.calls == [("leaf", (hits[2].leaf, hits[2]))]


def test_browse_leaves_mode_acts_on_leaf_when_search_inactive(cities: list[Entity]) -> None:
    sink = RecordingSink()
    hits = flatten_leaves(cities)
    dispatcher = CommitDispatcher(sink, browse_leaves=True)
    event = dispatcher.commit(Tier.NONE, 0, hierarchy=cities, flat_leaves=hits)
    assert event == LeafAction(hit=hits[0])


def test_stale_index_is_ignored(cities: list[Entity]) -> None:
    sink = RecordingSink()
    dispatcher = CommitDispatcher(sink)
    assert dispatcher.commit(Tier.PRIMARY, 1, primary=cities[:1]) is None
    assert dispatcher.commit(Tier.NONE, -1, hierarchy=cities) is None
    assert dispatcher.commit(Tier.FALLBACK, 0) is None
    assert sink.calls == []
