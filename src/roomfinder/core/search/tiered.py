"""Two-tier incremental search over the entity hierarchy.

The primary tier matches entities by name. Only when no entity matches does
the fallback tier run: every whitespace-separated word of the query must
occur somewhere in a leaf's denormalized text, in any order.
"""

from collections.abc import Iterable, Sequence

from roomfinder.models.hierarchy import Entity, LeafHit, MatchTierResult


def normalize_query(query: str) -> str:
    return query.strip().lower()


def query_words(query: str) -> list[str]:
    """Split a query into lower-cased words. Runs of whitespace collapse."""
    return query.lower().split()


def flatten_leaves(hierarchy: Iterable[Entity]) -> tuple[LeafHit, ...]:
    """Project every leaf with its ancestor context, in hierarchy order."""
    return tuple(
        LeafHit(leaf=leaf, entity_name=entity.name, context=entity.context)
        for entity in hierarchy
        for leaf in entity.leaves
    )


def match_entities(
    query: str,
    hierarchy: Sequence[Entity],
    *,
    match_description: bool = False,
) -> tuple[Entity, ...]:
    """Entities whose name contains the query. Order is preserved."""
    needle = normalize_query(query)
    if not needle:
        return ()
    return tuple(
        e
        for e in hierarchy
        if needle in e.name.lower() or (match_description and needle in e.description.lower())
    )


def match_leaves(query: str, hits: Iterable[LeafHit]) -> tuple[LeafHit, ...]:
    """Hits whose searchable text contains every word of the query."""
    words = query_words(query)
    if not words:
        return ()
    matched = []
    for hit in hits:
        text = hit.searchable_text
        if all(word in text for word in words):
            matched.append(hit)
    return tuple(matched)


def search(
    query: str,
    hierarchy: Sequence[Entity],
    flat_leaves: Iterable[LeafHit],
    *,
    match_description: bool = False,
) -> MatchTierResult:
    """Compute primary and fallback matches for query.

    Args:
        query: Raw search text.
        hierarchy: Entities in display order.
        flat_leaves: Leaves denormalized with their context.
        match_description: Also match entities by description.

    Returns:
        An empty result when the query is blank (search inactive), the
        primary matches when any entity matches, else the fallback matches.
    """
    if not normalize_query(query):
        return MatchTierResult()

    primary = match_entities(query, hierarchy, match_description=match_description)
    if primary:
        return MatchTierResult(primary=primary)

    return MatchTierResult(fallback=match_leaves(query, flat_leaves))


def filter_leaves(query: str, hits: Sequence[LeafHit]) -> tuple[LeafHit, ...]:
    """Single-tier variant: all hits for a blank query, else the conjunctive match."""
    if not normalize_query(query):
        return tuple(hits)
    return match_leaves(query, hits)
