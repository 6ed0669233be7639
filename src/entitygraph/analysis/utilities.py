"""Graph utilities: trimming, filtering, ego networks, components, stats.

Every function is pure. Inputs are node and edge sequences; nothing is
mutated. Mutating operations return a ``GraphOperationResult`` holding the
surviving nodes and edges in their input order, so repeated runs over the same
graph give identical output.

Degree counts both endpoints of every edge, so a self-loop adds two to its
node. Edges whose endpoints are not among the nodes are ignored, and an edge
id seen twice counts once.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, AbstractSet, Callable, Iterable, Sequence

import networkx as nx

from ..models import GraphEdge, GraphNode, GraphState


@dataclass
class GraphOperationResult:
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    removed_count: int
    operation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "removedCount": self.removed_count,
            "operation": self.operation,
        }


@dataclass
class GraphStats:
    total_nodes: int = 0
    total_edges: int = 0
    connected_components: int = 0
    largest_component_size: int = 0
    nodes_by_type: dict[str, int] = field(default_factory=dict)
    edges_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "totalEdges": self.total_edges,
            "connectedComponents": self.connected_components,
            "largestComponentSize": self.largest_component_size,
            "nodesByType": dict(self.nodes_by_type),
            "edgesByType": dict(self.edges_by_type),
        }


def _unique_nodes(nodes: Iterable[GraphNode]) -> list[GraphNode]:
    seen: set[str] = set()
    out: list[GraphNode] = []
    for n in nodes:
        if n.id in seen:
            continue
        seen.add(n.id)
        out.append(n)
    return out


def _valid_edges(edges: Iterable[GraphEdge], node_ids: AbstractSet[str]) -> list[GraphEdge]:
    seen: set[str] = set()
    out: list[GraphEdge] = []
    for e in edges:
        if e.id in seen or e.source not in node_ids or e.target not in node_ids:
            continue
        seen.add(e.id)
        out.append(e)
    return out


def _graph(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> nx.MultiDiGraph:
    # Multi so parallel relations between the same pair each count toward degree.
    G = nx.MultiDiGraph()
    G.add_nodes_from(n.id for n in nodes)
    for e in edges:
        G.add_edge(e.source, e.target, key=e.id, relation_type=e.relation_type)
    return G


def _neighbors(G: nx.MultiDiGraph, nid: str) -> set[str]:
    return (set(G.successors(nid)) | set(G.predecessors(nid))) - {nid}


def _keep(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    keep_ids: AbstractSet[str],
    operation: str,
) -> GraphOperationResult:
    kept_nodes = [n for n in nodes if n.id in keep_ids]
    kept_edges = [e for e in edges if e.source in keep_ids and e.target in keep_ids]
    return GraphOperationResult(
        nodes=kept_nodes,
        edges=kept_edges,
        removed_count=len(nodes) - len(kept_nodes),
        operation=operation,
    )


def _prepare(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> tuple[list[GraphNode], list[GraphEdge]]:
    uniq = _unique_nodes(nodes)
    return uniq, _valid_edges(edges, {n.id for n in uniq})


def _is_pendant(G: nx.MultiDiGraph, nid: str) -> bool:
    # Degree 1 hanging off a node that has other connections.
    if G.degree(nid) != 1:
        return False
    (neighbor,) = _neighbors(G, nid)
    return G.degree(neighbor) > 1


def trim_leaf_nodes(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphOperationResult:
    """Remove degree-1 nodes whose only neighbour has other connections.

    Single pass; calling again on the result trims the next layer.
    """
    nodes, edges = _prepare(nodes, edges)
    G = _graph(nodes, edges)
    keep = {n.id for n in nodes if not _is_pendant(G, n.id)}
    return _keep(nodes, edges, keep, "trimLeafNodes")


def trim_root_nodes(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphOperationResult:
    """Remove degree-1 nodes on the source side of their only edge."""
    nodes, edges = _prepare(nodes, edges)
    G = _graph(nodes, edges)
    keep = {
        n.id
        for n in nodes
        if not (G.out_degree(n.id) == 1 and G.in_degree(n.id) == 0 and _is_pendant(G, n.id))
    }
    return _keep(nodes, edges, keep, "trimRootNodes")


def trim_degree1_nodes(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphOperationResult:
    nodes, edges = _prepare(nodes, edges)
    G = _graph(nodes, edges)
    keep = {n.id for n in nodes if G.degree(n.id) != 1}
    return _keep(nodes, edges, keep, "trimDegree1Nodes")


def remove_isolated_nodes(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphOperationResult:
    nodes, edges = _prepare(nodes, edges)
    isolated = set(nx.isolates(_graph(nodes, edges)))
    keep = {n.id for n in nodes if n.id not in isolated}
    return _keep(nodes, edges, keep, "removeIsolatedNodes")


def filter_by_publication_year(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    min_year: int,
    max_year: int,
) -> GraphOperationResult:
    """Keep nodes whose year falls in ``[min_year, max_year]``; yearless nodes go."""
    if min_year > max_year:
        raise ValueError(f"min_year ({min_year}) must not exceed max_year ({max_year})")
    nodes, edges = _prepare(nodes, edges)
    keep = {n.id for n in nodes if n.year is not None and min_year <= n.year <= max_year}
    return _keep(nodes, edges, keep, "filterByPublicationYear")


def _ego_ids(G: nx.MultiDiGraph, seeds: Iterable[str], hops: int) -> set[str]:
    keep: set[str] = set()
    for s in seeds:
        if s in G:
            keep.update(nx.ego_graph(G, s, radius=hops, undirected=True).nodes)
    return keep


def extract_ego_network(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    center_id: str,
    hops: int = 2,
) -> GraphOperationResult:
    """Everything within ``hops`` edges of ``center_id``, ignoring direction."""
    if hops < 0:
        raise ValueError(f"hops must be >= 0, got {hops}")
    nodes, edges = _prepare(nodes, edges)
    keep = _ego_ids(_graph(nodes, edges), [center_id], int(hops))
    return _keep(nodes, edges, keep, "extractEgoNetwork")


def _components(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> list[list[str]]:
    order = {n.id: i for i, n in enumerate(nodes)}
    G = _graph(nodes, edges)
    # Discovery follows node insertion order; members are listed in input order.
    return [
        sorted(comp, key=order.__getitem__)
        for comp in nx.connected_components(G.to_undirected(as_view=True))
    ]


def find_connected_components(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> list[list[str]]:
    """Undirected components in discovery order (input node order seeds discovery)."""
    nodes, edges = _prepare(nodes, edges)
    return _components(nodes, edges)


def get_largest_connected_component(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphOperationResult:
    nodes, edges = _prepare(nodes, edges)
    largest: list[str] = []
    for comp in _components(nodes, edges):
        # Strictly greater: ties go to the first component discovered.
        if len(comp) > len(largest):
            largest = comp
    return _keep(nodes, edges, set(largest), "getLargestConnectedComponent")


def get_graph_stats(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphStats:
    nodes, edges = _prepare(nodes, edges)
    if not nodes:
        return GraphStats()
    comps = _components(nodes, edges)
    return GraphStats(
        total_nodes=len(nodes),
        total_edges=len(edges),
        connected_components=len(comps),
        largest_component_size=max(len(c) for c in comps),
        nodes_by_type=dict(Counter(n.entity_type for n in nodes)),
        edges_by_type=dict(Counter(e.relation_type for e in edges)),
    )


def apply_result(state: GraphState, result: GraphOperationResult) -> GraphState:
    """Replace the state's graph with an operation's output.

    Surviving nodes are the same objects, so positions and labels carry over.
    """
    state.replace(result.nodes, result.edges)
    return state


Operation = Callable[..., GraphOperationResult]

OPERATIONS: dict[str, Operation] = {
    "trimLeafNodes": trim_leaf_nodes,
    "trimRootNodes": trim_root_nodes,
    "trimDegree1Nodes": trim_degree1_nodes,
    "removeIsolatedNodes": remove_isolated_nodes,
    "filterByPublicationYear": filter_by_publication_year,
    "extractEgoNetwork": extract_ego_network,
    "getLargestConnectedComponent": get_largest_connected_component,
}
