from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

import networkx as nx

from ..models import GraphEdge, GraphNode
from .utilities import GraphOperationResult, _ego_ids, _graph, _keep, _prepare


NodePredicate = Callable[[GraphNode], bool]
EdgePredicate = Callable[[GraphEdge], bool]


@dataclass(frozen=True)
class PathResult:
    nodes: list[str]
    edges: list[str]

    @property
    def length(self) -> int:
        return len(self.edges)


def extract_induced_subgraph(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    node_ids: Iterable[str],
) -> GraphOperationResult:
    nodes, edges = _prepare(nodes, edges)
    return _keep(nodes, edges, set(node_ids), "extractInducedSubgraph")


def filter_subgraph(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    *,
    node_filter: NodePredicate | None = None,
    edge_filter: EdgePredicate | None = None,
    combinator: str = "and",
) -> GraphOperationResult:
    """Subgraph by node/edge predicates; a missing predicate matches everything.

    ``"and"``: nodes passing ``node_filter`` and, between them, the edges
    passing ``edge_filter``. ``"or"``: nodes passing ``node_filter`` plus the
    endpoints of edges passing ``edge_filter``; edges are kept when they pass
    ``edge_filter`` or join two nodes that pass ``node_filter``.
    """
    mode = combinator.lower()
    if mode not in ("and", "or"):
        raise ValueError(f"combinator must be 'and' or 'or', got {combinator!r}")
    nodes, edges = _prepare(nodes, edges)

    node_ok = {n.id for n in nodes if node_filter is None or node_filter(n)}
    edge_ok = {e.id for e in edges if edge_filter is None or edge_filter(e)}

    if mode == "and":
        keep = node_ok
        kept_edges = [e for e in edges if e.id in edge_ok and e.source in keep and e.target in keep]
    else:
        keep = set(node_ok)
        for e in edges:
            if e.id in edge_ok:
                keep.add(e.source)
                keep.add(e.target)
        kept_edges = [
            e for e in edges if e.id in edge_ok or (e.source in node_ok and e.target in node_ok)
        ]

    kept_nodes = [n for n in nodes if n.id in keep]
    return GraphOperationResult(
        nodes=kept_nodes,
        edges=kept_edges,
        removed_count=len(nodes) - len(kept_nodes),
        operation="filterSubgraph",
    )


def extract_multi_source_ego_network(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    seeds: Sequence[str],
    hops: int = 2,
) -> GraphOperationResult:
    """Union of the ego networks around each seed."""
    if not seeds:
        raise ValueError("At least one seed is required")
    if hops < 0:
        raise ValueError(f"hops must be >= 0, got {hops}")
    nodes, edges = _prepare(nodes, edges)
    keep = _ego_ids(_graph(nodes, edges), seeds, int(hops))
    return _keep(nodes, edges, keep, "extractMultiSourceEgoNetwork")


def extract_reachability_subgraph(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    sources: Sequence[str],
    *,
    direction: str = "forward",
) -> GraphOperationResult:
    """Nodes reachable from ``sources`` following edge direction.

    ``"forward"`` walks source -> target (what a work cites), ``"backward"``
    walks target -> source (what cites it).
    """
    if direction not in ("forward", "backward"):
        raise ValueError(f"direction must be 'forward' or 'backward', got {direction!r}")
    nodes, edges = _prepare(nodes, edges)
    G = _graph(nodes, edges)
    walk = nx.descendants if direction == "forward" else nx.ancestors
    keep: set[str] = set()
    for s in sources:
        if s in G:
            keep.add(s)
            keep.update(walk(G, s))
    return _keep(nodes, edges, keep, "extractReachabilitySubgraph")


def find_shortest_path(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    source_id: str,
    target_id: str,
    *,
    directed: bool = False,
) -> PathResult | None:
    """Fewest-hop path, or ``None`` when unreachable.

    Neighbours are expanded in id order, so ties always resolve the same way.
    Each hop reports the smallest edge id joining its two nodes.
    """
    nodes, edges = _prepare(nodes, edges)
    G = _graph(nodes, edges)
    if source_id not in G or target_id not in G:
        return None
    if source_id == target_id:
        return PathResult(nodes=[source_id], edges=[])

    walk = G if directed else G.to_undirected(as_view=True)
    H = nx.DiGraph() if directed else nx.Graph()
    H.add_nodes_from(sorted(walk))
    for u in sorted(walk):
        H.add_edges_from((u, v) for v in sorted(set(walk[u])))

    hop_edge: dict[tuple[str, str], str] = {}
    for e in edges:
        pairs = [(e.source, e.target)] if directed else [(e.source, e.target), (e.target, e.source)]
        for pair in pairs:
            if pair not in hop_edge or e.id < hop_edge[pair]:
                hop_edge[pair] = e.id

    path = nx.single_source_shortest_path(H, source_id).get(target_id)
    if path is None:
        return None
    return PathResult(nodes=list(path), edges=[hop_edge[(a, b)] for a, b in zip(path, path[1:])])
