from __future__ import annotations

from typing import Iterable

from ..models import SourceEntity
from ..sources.base import GRAPH_LIST_SOURCE_ID


def is_privileged(entity: SourceEntity, *, persistent_source_id: str = GRAPH_LIST_SOURCE_ID) -> bool:
    # A record can come from another source yet still have been promoted into
    # the persistent set, so the attribute marker counts too.
    return entity.source_id == persistent_source_id or entity.attributes.is_persistent_set_member


def deduplicate(
    entities: Iterable[SourceEntity],
    *,
    persistent_source_id: str = GRAPH_LIST_SOURCE_ID,
) -> list[SourceEntity]:
    """Collapse records sharing an ``entity_id`` into one.

    A privileged record beats a non-privileged one whatever the order; among
    equals the first seen wins. Winners are kept whole and losers dropped whole.
    Output follows the first appearance of each id.
    """
    winners: dict[str, SourceEntity] = {}
    for ent in entities:
        current = winners.get(ent.entity_id)
        if current is None:
            winners[ent.entity_id] = ent
            continue
        if is_privileged(ent, persistent_source_id=persistent_source_id) and not is_privileged(
            current, persistent_source_id=persistent_source_id
        ):
            winners[ent.entity_id] = ent
    return list(winners.values())
