from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import networkx as nx

from ..models import GraphEdge, GraphNode
from .utilities import _graph, _neighbors, _prepare


@dataclass(frozen=True)
class StarPattern:
    hub_id: str
    leaf_ids: tuple[str, ...]
    kind: str  # "in", "out" or "mixed"

    @property
    def degree(self) -> int:
        return len(self.leaf_ids)


def detect_triangles(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> list[tuple[str, str, str]]:
    """Every 3-node cycle, ignoring direction, as sorted id triples."""
    nodes, edges = _prepare(nodes, edges)
    simple = nx.Graph(_graph(nodes, edges).to_undirected(as_view=True))
    simple.remove_edges_from(list(nx.selfloop_edges(simple)))
    out: list[tuple[str, str, str]] = []
    # Cliques come out smallest first.
    for clique in nx.enumerate_all_cliques(simple):
        if len(clique) > 3:
            break
        if len(clique) == 3:
            out.append(tuple(sorted(clique)))
    return sorted(out)


def detect_star_patterns(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    *,
    min_degree: int = 3,
) -> list[StarPattern]:
    """Hub nodes with at least ``min_degree`` distinct neighbours.

    ``kind`` says whether every edge points into the hub ("in", e.g. a highly
    cited work), out of it ("out"), or both. Hubs are ordered by degree, then id.
    """
    if min_degree < 1:
        raise ValueError(f"min_degree must be >= 1, got {min_degree}")
    nodes, edges = _prepare(nodes, edges)
    G = _graph(nodes, edges)

    stars: list[StarPattern] = []
    for n in nodes:
        leaves = _neighbors(G, n.id)
        if len(leaves) < min_degree:
            continue
        loops = G.number_of_edges(n.id, n.id)
        if G.out_degree(n.id) - loops == 0:
            kind = "in"
        elif G.in_degree(n.id) - loops == 0:
            kind = "out"
        else:
            kind = "mixed"
        stars.append(StarPattern(hub_id=n.id, leaf_ids=tuple(sorted(leaves)), kind=kind))

    stars.sort(key=lambda s: (-s.degree, s.hub_id))
    return stars
