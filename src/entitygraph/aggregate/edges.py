from __future__ import annotations

from dataclasses import replace
from typing import AbstractSet, Iterable, Sequence

from ..layout import Position
from ..models import GraphEdge, GraphNode, Relationship, SourceEntity, edge_key


def edge_from_relationship(source_id: str, rel: Relationship) -> GraphEdge:
    return GraphEdge.create(
        source_id,
        rel.target_id,
        rel.relation_type,
        weight=(float(rel.score) if rel.score is not None else 1.0),
        score=rel.score,
        author_position=rel.author_position,
        is_corresponding=rel.is_corresponding,
        is_open_access=rel.is_open_access,
    )


def build_edges(entities: Iterable[SourceEntity], known_ids: AbstractSet[str]) -> list[GraphEdge]:
    """Edges from each entity's relationships whose target is a known node.

    ``(a, b, T)`` and ``(b, a, T)`` are the same edge; the first one wins.
    """
    seen: set[str] = set()
    out: list[GraphEdge] = []
    for ent in entities:
        if ent.entity_id not in known_ids:
            continue
        for rel in ent.relationships:
            if rel.target_id not in known_ids:
                continue
            key = edge_key(ent.entity_id, rel.target_id, rel.relation_type)
            rev = edge_key(rel.target_id, ent.entity_id, rel.relation_type)
            if key in seen or rev in seen:
                continue
            seen.add(key)
            out.append(edge_from_relationship(ent.entity_id, rel))
    return out


def overlay_store_edges(
    edges: Sequence[GraphEdge],
    store_edges: Iterable[GraphEdge],
    known_ids: AbstractSet[str],
) -> list[GraphEdge]:
    """Append persisted edges between known nodes that are not already present."""
    seen = {e.id for e in edges}
    out = list(edges)
    for e in store_edges:
        if e.source not in known_ids or e.target not in known_ids:
            continue
        key = edge_key(e.source, e.target, e.relation_type)
        if key in seen or e.reverse_key in seen:
            continue
        seen.add(key)
        # Store rows may carry their own ids; normalise to the deterministic key.
        out.append(e if e.id == key else replace(e, id=key))
    return out


def entity_to_node(entity: SourceEntity, position: Position) -> GraphNode:
    return GraphNode(
        id=entity.entity_id,
        entity_type=entity.entity_type,
        label=entity.label,
        x=float(position[0]),
        y=float(position[1]),
        attributes=entity.attributes.tagged(entity.source_id),
    )
