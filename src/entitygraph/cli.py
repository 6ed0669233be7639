from __future__ import annotations

import json
import logging
import sqlite3
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .aggregate.build import GraphAggregator
from .analysis.utilities import (
    extract_ego_network,
    find_connected_components,
    get_graph_stats,
    remove_isolated_nodes,
    trim_degree1_nodes,
    trim_leaf_nodes,
    trim_root_nodes,
)
from .config import Settings
from .errors import StoreError
from .models import GraphEdge, GraphNode, GraphState
from .sources.json_source import discover_json_sources
from .store import sqlite_store
from .store.sqlite_graph import RelationshipStore


app = typer.Typer(add_completion=False, help="Entity Graph: aggregate entities from many sources into one graph.")
console = Console()

sources_app = typer.Typer(add_completion=False, help="List and toggle entity sources.")
app.add_typer(sources_app, name="sources")

store_app = typer.Typer(add_completion=False, help="Relationship store utilities.")
app.add_typer(store_app, name="store")


class TrimKind(str, Enum):
    leaf = "leaf"
    root = "root"
    degree1 = "degree1"
    isolated = "isolated"


_TRIMS = {
    TrimKind.leaf: trim_leaf_nodes,
    TrimKind.root: trim_root_nodes,
    TrimKind.degree1: trim_degree1_nodes,
    TrimKind.isolated: remove_isolated_nodes,
}


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default: ENTITYGRAPH_LOG_LEVEL)"),
):
    """Configure logging for every command."""
    name = (log_level or Settings().log_level).strip().upper()
    level = getattr(logging, name, None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level or name}")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _open(db: Path | None, sources_dir: Path | None) -> tuple[sqlite3.Connection, GraphAggregator]:
    settings = Settings()
    conn = sqlite_store.connect(db or Path(settings.db_path))
    sqlite_store.init_db(conn)
    registry = discover_json_sources(sources_dir or Path(settings.sources_dir), marker_key=settings.persistent_marker)
    aggregator = GraphAggregator(
        registry,
        toggle_store=sqlite_store.ToggleStore(conn, default={settings.default_source}),
        settings=settings,
        relationship_store=RelationshipStore(conn),
    )
    return conn, aggregator


def _load(db: Path | None, sources_dir: Path | None) -> tuple[GraphState, dict]:
    conn, aggregator = _open(db, sources_dir)
    try:
        state = aggregator.load()
    finally:
        conn.close()
    return state, aggregator.last_stats


def _print_source_errors(state: GraphState) -> None:
    for s in state.sources:
        if s.error is not None:
            console.print(f"- {s.source}: {s.error}", style="yellow", markup=False)


DbOption = typer.Option(None, "--db", help="SQLite DB path (default: ENTITYGRAPH_DB_PATH)")
SourcesOption = typer.Option(None, "--sources-dir", help="Directory of JSON sources (default: ENTITYGRAPH_SOURCES_DIR)")


@sources_app.command("list")
def sources_list(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Show discovered sources, whether they are enabled, and their entity counts."""
    conn, aggregator = _open(db, sources_dir)
    try:
        states = aggregator.refresh_counts()
        infos = {i.id: i for i in aggregator.registry.list_sources()}
    finally:
        conn.close()

    if not states:
        console.print("No sources found.", style="yellow")
        return

    table = Table(title="Sources")
    table.add_column("id")
    table.add_column("label")
    table.add_column("category")
    table.add_column("enabled")
    table.add_column("entities", justify="right")
    table.add_column("error")
    for st in states:
        info = infos[st.source]
        table.add_row(
            Text(st.source),
            Text(info.label),
            Text(info.category),
            Text("yes" if st.enabled else "no"),
            Text("-" if st.entity_count is None else str(st.entity_count)),
            Text("unavailable" if not st.available else ("" if st.error is None else str(st.error))),
        )
    console.print(table)


def _set_source(source_id: str, enabled: bool | None, db: Path | None, sources_dir: Path | None) -> None:
    conn, aggregator = _open(db, sources_dir)
    try:
        if source_id not in aggregator.registry:
            raise typer.BadParameter(f"Unknown source: {source_id}")
        now = aggregator.toggle_source(source_id, enabled)
    finally:
        conn.close()
    state = "enabled" if source_id in now else "disabled"
    console.print(f"{source_id}: {state}", markup=False)


@sources_app.command("enable")
def sources_enable(
    source_id: str = typer.Argument(...),
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Enable a source."""
    _set_source(source_id, True, db, sources_dir)


@sources_app.command("disable")
def sources_disable(
    source_id: str = typer.Argument(...),
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Disable a source."""
    _set_source(source_id, False, db, sources_dir)


@sources_app.command("toggle")
def sources_toggle(
    source_id: str = typer.Argument(...),
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Flip a source between enabled and disabled."""
    _set_source(source_id, None, db, sources_dir)


@sources_app.command("enable-all")
def sources_enable_all(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Enable every discovered source."""
    conn, aggregator = _open(db, sources_dir)
    try:
        ids = aggregator.enable_all()
    finally:
        conn.close()
    console.print(f"Enabled {len(ids)} source(s)")


@sources_app.command("disable-all")
def sources_disable_all(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Disable every source."""
    conn, aggregator = _open(db, sources_dir)
    try:
        aggregator.disable_all()
    finally:
        conn.close()
    console.print("Disabled all sources")


@app.command()
def load(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
    save: bool = typer.Option(False, "--save", help="Also persist the graph to the relationship store"),
):
    """Aggregate the enabled sources and print what was loaded."""
    conn, aggregator = _open(db, sources_dir)
    try:
        state = aggregator.load()
        saved = aggregator.relationship_store.save_state(state) if save else None
    except StoreError as e:
        console.print(str(e), style="red", markup=False)
        raise typer.Exit(code=2)
    finally:
        conn.close()

    console.print(f"Nodes: {len(state.nodes)}")
    console.print(f"Edges: {len(state.edges)}")
    for k, v in aggregator.last_stats.items():
        console.print(f"{k}: {v}", markup=False)
    if saved is not None:
        console.print(f"Saved {saved['nodes_written']} nodes and {saved['edges_added']} new edges to the store")
    if state.error is not None:
        console.print("Some sources failed:", style="yellow")
        _print_source_errors(state)


@app.command()
def stats(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Show graph stats for the aggregated graph."""
    state, _ = _load(db, sources_dir)
    st = get_graph_stats(state.node_list(), state.edge_list())

    table = Table(title="Graph Stats")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Nodes", str(st.total_nodes))
    table.add_row("Edges", str(st.total_edges))
    table.add_row("Components", str(st.connected_components))
    table.add_row("Largest component", str(st.largest_component_size))
    console.print(table)

    if st.nodes_by_type:
        t2 = Table(title="Nodes by Type")
        t2.add_column("entity_type")
        t2.add_column("count")
        for k, v in sorted(st.nodes_by_type.items()):
            t2.add_row(Text(k), str(v))
        console.print(t2)

    if st.edges_by_type:
        t3 = Table(title="Edges by Type")
        t3.add_column("relation_type")
        t3.add_column("count")
        for k, v in sorted(st.edges_by_type.items()):
            t3.add_row(Text(k), str(v))
        console.print(t3)


@app.command()
def components(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
    limit: int = typer.Option(20, help="Max components to show"),
):
    """List connected components, largest first."""
    state, _ = _load(db, sources_dir)
    comps = find_connected_components(state.node_list(), state.edge_list())
    console.print(f"Components: {len(comps)}")
    if not comps:
        return

    table = Table(title="Connected Components")
    table.add_column("#", justify="right", width=4)
    table.add_column("size", justify="right", width=6)
    table.add_column("members")
    ordered = sorted(comps, key=len, reverse=True)
    for i, comp in enumerate(ordered[: int(limit)], start=1):
        members = ", ".join(comp[:8]) + (" ..." if len(comp) > 8 else "")
        table.add_row(Text(str(i)), Text(str(len(comp))), Text(members))
    console.print(table)


@app.command()
def ego(
    center: str = typer.Argument(..., help="Node id at the centre"),
    hops: int = typer.Option(2, help="Max hops from the centre"),
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Show the ego network around a node."""
    if hops < 0:
        raise typer.BadParameter("--hops must be >= 0")
    state, _ = _load(db, sources_dir)
    if center not in state.nodes:
        console.print(f"Node not in graph: {center}", style="red", markup=False)
        raise typer.Exit(code=2)

    res = extract_ego_network(state.node_list(), state.edge_list(), center, hops=hops)
    console.print(f"Nodes: {len(res.nodes)}")
    console.print(f"Edges: {len(res.edges)}")

    table = Table(title=f"Ego network of {center} ({hops} hops)")
    table.add_column("id")
    table.add_column("type")
    table.add_column("label")
    for n in res.nodes:
        table.add_row(Text(n.id), Text(n.entity_type), Text(n.label))
    console.print(table)


@app.command()
def trim(
    kind: TrimKind = typer.Argument(..., help="Which nodes to remove"),
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
    out: Path | None = typer.Option(None, "--out", help="Write the trimmed graph as JSON"),
):
    """Run a single trim pass over the aggregated graph."""
    state, _ = _load(db, sources_dir)
    res = _TRIMS[kind](state.node_list(), state.edge_list())

    console.print(f"Removed: {res.removed_count}")
    console.print(f"Remaining nodes: {len(res.nodes)}")
    console.print(f"Remaining edges: {len(res.edges)}")

    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(res.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        console.print(f"Wrote {out}", markup=False)


@app.command()
def export(
    out: Path = typer.Option(..., "--out", help="Output JSON path"),
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
):
    """Write the aggregated graph (nodes, edges, source states) as JSON."""
    state, stats_ = _load(db, sources_dir)
    out.parent.mkdir(parents=True, exist_ok=True)
    data = {**state.to_dict(), "stats": stats_}
    out.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(f"Wrote {len(state.nodes)} nodes and {len(state.edges)} edges to {out}", markup=False)


@store_app.command("import")
def store_import(
    path: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False),
    db: Path | None = DbOption,
    clear: bool = typer.Option(False, "--clear/--no-clear", help="Clear the store first"),
):
    """Import nodes and edges from a JSON export into the relationship store."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        nodes = [GraphNode.from_dict(d) for d in (data.get("nodes") or [])]
        edges = [GraphEdge.from_dict(d) for d in (data.get("edges") or [])]
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        raise typer.BadParameter(f"Not a graph export: {path} ({e})")

    settings = Settings()
    conn = sqlite_store.connect(db or Path(settings.db_path))
    try:
        store = RelationshipStore(conn)
        state = GraphState()
        state.replace(nodes, edges)
        res = store.save_state(state, clear=bool(clear))
    except StoreError as e:
        console.print(str(e), style="red", markup=False)
        raise typer.Exit(code=2)
    finally:
        conn.close()

    console.print(f"Nodes written: {res['nodes_written']}")
    console.print(f"Edges added: {res['edges_added']}")


@store_app.command("stats")
def store_stats(
    db: Path | None = DbOption,
):
    """Show relationship store row counts."""
    settings = Settings()
    conn = sqlite_store.connect(db or Path(settings.db_path))
    try:
        counts = RelationshipStore(conn).stats()
    finally:
        conn.close()

    table = Table(title="Relationship Store")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Nodes", str(counts["nodes"]))
    table.add_row("Edges", str(counts["edges"]))
    console.print(table)


@app.command()
def serve(
    db: Path | None = DbOption,
    sources_dir: Path | None = SourcesOption,
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes (dev only)"),
):
    """Run the JSON API server (FastAPI)."""
    try:
        import uvicorn
    except Exception:
        console.print("Missing web dependencies. Install: `pip install -e '.[web]'`", style="red")
        raise typer.Exit(code=2)

    from .web.server import create_app

    app_ = create_app(
        default_db_path=(str(db) if db is not None else None),
        sources_dir=(str(sources_dir) if sources_dir is not None else None),
    )
    uvicorn.run(app_, host=host, port=int(port), reload=bool(reload))


if __name__ == "__main__":
    app()
