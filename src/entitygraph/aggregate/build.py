from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence

from ..config import Settings
from ..layout import Layout, layout_from_settings
from ..models import GraphEdge, GraphNode, GraphState, SourceEntity, SourceState
from ..sources.base import GRAPH_LIST_SOURCE_ID
from ..sources.registry import SourceRegistry
from ..store.sqlite_store import ToggleStore
from .collect import collect_entities, probe_entity_counts
from .dedup import deduplicate
from .edges import build_edges, entity_to_node, overlay_store_edges


logger = logging.getLogger(__name__)


class EdgeOverlay(Protocol):
    def get_all_nodes(self) -> list[GraphNode]: ...

    def get_all_edges(self) -> list[GraphEdge]: ...


@dataclass
class BuildResult:
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    stats: dict[str, Any]


def build_graph(
    entities: Sequence[SourceEntity],
    *,
    layout: Layout,
    persistent_source_id: str = GRAPH_LIST_SOURCE_ID,
    store_edges: Iterable[GraphEdge] | None = None,
) -> BuildResult:
    """Deduplicate collected entities and derive the edges between them."""
    unique = deduplicate(entities, persistent_source_id=persistent_source_id)
    known_ids = {e.entity_id for e in unique}

    positions = layout([e.entity_id for e in unique])
    nodes = [entity_to_node(e, pos) for e, pos in zip(unique, positions)]

    edges = build_edges(unique, known_ids)
    relationship_edges = len(edges)
    if store_edges is not None:
        edges = overlay_store_edges(edges, store_edges, known_ids)

    return BuildResult(
        nodes=nodes,
        edges=edges,
        stats={
            "entities_seen": len(entities),
            "unique_entities": len(unique),
            "duplicates_dropped": len(entities) - len(unique),
            "relationship_edges": relationship_edges,
            "store_edges": len(edges) - relationship_edges,
        },
    )


class GraphAggregator:
    """Drives collect -> deduplicate -> build edges over the discovered sources.

    The graph itself lives in a caller-owned ``GraphState``; ``load`` fully
    replaces its nodes and edges.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        *,
        toggle_store: ToggleStore,
        settings: Settings | None = None,
        relationship_store: EdgeOverlay | None = None,
        layout: Layout | None = None,
    ):
        self.registry = registry
        self.toggle_store = toggle_store
        self.settings = settings or Settings()
        self.relationship_store = relationship_store
        self.layout = layout or layout_from_settings(self.settings)
        self.last_stats: dict[str, Any] = {}

    def enabled_source_ids(self) -> set[str]:
        return self.toggle_store.load()

    def source_states(self) -> list[SourceState]:
        enabled = self.enabled_source_ids()
        return [SourceState(source=sid, enabled=(sid in enabled)) for sid in self.registry.ids()]

    def refresh_counts(self, states: Sequence[SourceState] | None = None) -> list[SourceState]:
        return probe_entity_counts(
            self.registry.sources(),
            list(states) if states is not None else self.source_states(),
            max_workers=self.settings.max_workers,
        )

    def load(self, state: GraphState | None = None) -> GraphState:
        state = state if state is not None else GraphState()
        state.loading = True
        try:
            collected = collect_entities(
                self.registry.sources(),
                self.source_states(),
                max_workers=self.settings.max_workers,
            )
            store_edges = self._store_edges()
            built = build_graph(
                collected.entities,
                layout=self.layout,
                persistent_source_id=self.settings.persistent_source,
                store_edges=store_edges,
            )
            state.replace(built.nodes, built.edges)
            state.sources = collected.states
            state.error = collected.first_error
            self.last_stats = {**built.stats, "sources_failed": len(collected.errors)}
        finally:
            state.loading = False

        logger.info(
            "Loaded %d nodes and %d edges from %d source(s)",
            len(state.nodes),
            len(state.edges),
            sum(1 for s in state.sources if s.enabled),
        )
        return state

    def toggle_source(self, source_id: str, enabled: bool | None = None) -> set[str]:
        current = self.enabled_source_ids()
        turn_on = (source_id not in current) if enabled is None else bool(enabled)
        if turn_on:
            current.add(source_id)
        else:
            current.discard(source_id)
        self.toggle_store.save(current)
        return current

    def enable_all(self) -> set[str]:
        ids = set(self.registry.ids())
        self.toggle_store.save(ids)
        return ids

    def disable_all(self) -> set[str]:
        self.toggle_store.save(())
        return set()

    def _store_edges(self) -> list[GraphEdge] | None:
        if self.relationship_store is None:
            return None
        try:
            return self.relationship_store.get_all_edges()
        except Exception as e:
            # Overlay is optional; load without it.
            logger.warning("Relationship store unavailable, skipping edge overlay: %s", e)
            return None
