import threading
from pathlib import Path
from typing import Any


def create_app(*, default_db_path: str | None = None, sources_dir: str | None = None):
    # Lazy import so core CLI works without web deps.
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse

    from .. import __version__
    from ..aggregate.build import GraphAggregator
    from ..aggregate.merge import add_nodes_and_edges, find_unresolved_nodes
    from ..analysis.utilities import OPERATIONS, apply_result, get_graph_stats
    from ..config import Settings
    from ..models import GraphEdge, GraphNode, GraphState, as_flag
    from ..sources.json_source import discover_json_sources
    from ..store import sqlite_store
    from ..store.sqlite_graph import RelationshipStore

    settings = Settings()
    db_path = default_db_path or settings.db_path
    root = Path(sources_dir or settings.sources_dir)

    conn = sqlite_store.connect(db_path)
    sqlite_store.init_db(conn)
    aggregator = GraphAggregator(
        discover_json_sources(root, marker_key=settings.persistent_marker),
        toggle_store=sqlite_store.ToggleStore(conn, default={settings.default_source}),
        settings=settings,
        relationship_store=RelationshipStore(conn),
    )
    state = GraphState(sources=aggregator.source_states())
    # Sync endpoints run in a threadpool; one lock guards the shared state and connection.
    lock = threading.Lock()

    app = FastAPI(title="Entity Graph", version=__version__)
    app.state.graph = state
    app.state.aggregator = aggregator
    app.state.lock = lock

    @app.get("/api/graph")
    def graph():
        with lock:
            return {"ok": True, "graph": state.to_dict()}

    @app.post("/api/graph/load")
    def graph_load():
        with lock:
            aggregator.load(state)
            return {"ok": True, "stats": aggregator.last_stats, "graph": state.to_dict()}

    @app.post("/api/graph/reset")
    def graph_reset():
        with lock:
            state.reset()
            return {"ok": True, "graph": state.to_dict()}

    @app.get("/api/sources")
    def sources():
        with lock:
            states = aggregator.refresh_counts()
        infos = {i.id: i for i in aggregator.registry.list_sources()}
        out = []
        for st in states:
            info = infos[st.source]
            out.append({**st.to_dict(), "label": info.label, "category": info.category})
        return {"ok": True, "sources": out}

    @app.post("/api/sources/toggle")
    def sources_toggle(payload: dict[str, Any]):
        source_id = str(payload.get("source") or "").strip()
        if not source_id:
            return JSONResponse({"ok": False, "error": "source is required"}, status_code=400)
        if source_id not in aggregator.registry:
            return JSONResponse({"ok": False, "error": f"Unknown source: {source_id}"}, status_code=404)
        enabled = payload.get("enabled")
        with lock:
            now = aggregator.toggle_source(source_id, None if enabled is None else as_flag(enabled))
            state.sources = aggregator.source_states()
        return {"ok": True, "enabled": sorted(now)}

    @app.get("/api/graph/stats")
    def graph_stats():
        with lock:
            nodes, edges = state.node_list(), state.edge_list()
        return {"ok": True, "stats": get_graph_stats(nodes, edges).to_dict()}

    @app.get("/api/graph/unresolved")
    def graph_unresolved():
        with lock:
            return {"ok": True, "ids": find_unresolved_nodes(state)}

    @app.post("/api/graph/analysis/{operation}")
    def graph_analysis(operation: str, payload: dict[str, Any]):
        op = OPERATIONS.get(operation)
        if op is None:
            return JSONResponse(
                {"ok": False, "error": f"Unknown operation: {operation}", "operations": sorted(OPERATIONS)},
                status_code=404,
            )
        params = payload.get("params") or {}
        if not isinstance(params, dict):
            return JSONResponse({"ok": False, "error": "params must be an object"}, status_code=400)
        with lock:
            try:
                res = op(state.node_list(), state.edge_list(), **params)
            except (TypeError, ValueError) as e:
                return JSONResponse({"ok": False, "error": str(e)}, status_code=400)

            if as_flag(payload.get("apply", True)):
                apply_result(state, res)
        return {"ok": True, "result": res.to_dict()}

    @app.post("/api/graph/expand")
    def graph_expand(payload: dict[str, Any]):
        try:
            nodes = [GraphNode.from_dict(d) for d in (payload.get("nodes") or [])]
            edges = [GraphEdge.from_dict(d) for d in (payload.get("edges") or [])]
        except (KeyError, TypeError, ValueError) as e:
            return JSONResponse({"ok": False, "error": f"Bad node/edge payload: {e}"}, status_code=400)

        with lock:
            res = add_nodes_and_edges(state, nodes, edges, layout=aggregator.layout)
            return {
                "ok": True,
                "nodesAdded": res.nodes_added,
                "labelsUpgraded": res.labels_upgraded,
                "edgesAdded": res.edges_added,
                "graph": state.to_dict(),
            }

    return app
