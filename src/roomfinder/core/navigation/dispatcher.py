"""Map a committed (tier, index) to an entity descent or a leaf action."""

from collections.abc import Sequence

from loguru import logger

from roomfinder.models.hierarchy import (
    CommitEvent,
    Entity,
    EntitySelected,
    LeafAction,
    LeafHit,
    Tier,
)
from roomfinder.protocols import CommitSink


class CommitDispatcher:
    """Resolves the committed item and hands it to the sink.

    With browse_leaves the inactive list is the flat leaf list (single-tier
    screens), so an inactive-tier commit acts on a leaf.
    """

    def __init__(self, sink: CommitSink, *, browse_leaves: bool = False) -> None:
        self.sink = sink
        self.browse_leaves = browse_leaves

    def commit(
        self,
        tier: Tier,
        index: int,
        *,
        hierarchy: Sequence[Entity] = (),
        primary: Sequence[Entity] = (),
        fallback: Sequence[LeafHit] = (),
        flat_leaves: Sequence[LeafHit] = (),
    ) -> CommitEvent | None:
        """Dispatch the item at index of the tier's list.

        Returns the emitted event, or None when index is stale for the
        current list.
        """
        items: Sequence[Entity] | Sequence[LeafHit]
        if tier is Tier.PRIMARY:
            items = primary
        elif tier is Tier.FALLBACK:
            items = fallback
        elif self.browse_leaves:
            items = flat_leaves
        else:
            items = hierarchy

        if not 0 <= index < len(items):
            logger.debug(
                "Ignoring commit of index {} in {} list of {}", index, tier.value, len(items)
            )
            return None

        item = items[index]
        if isinstance(item, LeafHit):
            self.sink.on_leaf_action(item.leaf, item)
            return LeafAction(hit=item)
        self.sink.on_entity_selected(item.id)
        return EntitySelected(entity=item)
