from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Mapping

from ..ids import looks_unresolved
from ..layout import Layout, random_layout
from ..models import GraphEdge, GraphNode, GraphState, edge_key


logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    nodes_added: int = 0
    labels_upgraded: int = 0
    labels_updated: int = 0
    edges_added: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.nodes_added or self.labels_upgraded or self.labels_updated or self.edges_added)


def _insert_edges(state: GraphState, new_edges: Iterable[GraphEdge]) -> int:
    added = 0
    for e in new_edges:
        if e.source not in state.nodes or e.target not in state.nodes:
            logger.debug("Skipping edge %s: endpoint not in graph", e.id)
            continue
        if state.has_edge(e):
            continue
        # Stored under the canonical key whatever id the caller supplied.
        key = edge_key(e.source, e.target, e.relation_type)
        state.edges[key] = replace(e, id=key)
        added += 1
    return added


def add_nodes_and_edges(
    state: GraphState,
    new_nodes: Iterable[GraphNode],
    new_edges: Iterable[GraphEdge],
    *,
    layout: Layout | None = None,
) -> MergeResult:
    """Fold newly discovered nodes and edges into ``state`` in place.

    Unseen nodes are inserted at a fresh position from ``layout``. For a node
    already present, only an unresolved label is replaced, and only by a
    resolved one. Edges are inserted when neither their key nor the reverse
    key exists. Safe to repeat with overlapping input.
    """
    result = MergeResult()
    pending: dict[str, GraphNode] = {}

    for cand in new_nodes:
        existing = state.nodes.get(cand.id) or pending.get(cand.id)
        if existing is None:
            pending[cand.id] = replace(cand)
            continue
        if looks_unresolved(existing.label) and not looks_unresolved(cand.label):
            existing.label = cand.label
            result.labels_upgraded += 1

    if pending:
        place = layout or random_layout()
        positions = place(list(pending))
        for (nid, cand), (x, y) in zip(pending.items(), positions):
            state.nodes[nid] = replace(cand, x=float(x), y=float(y))
        result.nodes_added = len(pending)

    result.edges_added = _insert_edges(state, new_edges)
    if result.changed:
        logger.debug(
            "Merged %d nodes (%d labels upgraded) and %d edges",
            result.nodes_added,
            result.labels_upgraded,
            result.edges_added,
        )
    return result


def update_node_labels(state: GraphState, updates: Mapping[str, str]) -> MergeResult:
    """Overwrite labels for the given ids; ids not in the graph are ignored."""
    result = MergeResult()
    for nid, label in updates.items():
        node = state.nodes.get(nid)
        if node is None:
            continue
        if node.label != label:
            node.label = label
            result.labels_updated += 1
    return result


def add_discovered_edges(state: GraphState, new_edges: Iterable[GraphEdge]) -> MergeResult:
    """Add edges between nodes already in the graph, never creating nodes."""
    return MergeResult(edges_added=_insert_edges(state, new_edges))


def find_unresolved_nodes(state: GraphState) -> list[str]:
    """Ids whose label is still a bare identifier and needs resolving."""
    return [n.id for n in state.nodes.values() if looks_unresolved(n.label)]
