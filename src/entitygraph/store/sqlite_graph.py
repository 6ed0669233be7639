from __future__ import annotations

import json
import sqlite3
import time
from typing import Iterable

from ..errors import StoreError
from ..models import EntityAttributes, GraphEdge, GraphNode, GraphState, edge_key


def init_graph(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS graph_nodes (
          node_id TEXT PRIMARY KEY,
          entity_type TEXT NOT NULL,
          label TEXT NOT NULL,
          x REAL NOT NULL DEFAULT 0,
          y REAL NOT NULL DEFAULT 0,
          attributes_json TEXT NOT NULL,
          updated_at INTEGER NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS graph_edges (
          edge_id TEXT PRIMARY KEY,
          source_id TEXT NOT NULL,
          target_id TEXT NOT NULL,
          relation_type TEXT NOT NULL,
          weight REAL NOT NULL,
          score REAL,
          author_position TEXT,
          is_corresponding INTEGER,
          is_open_access INTEGER
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_graph_edges_source ON graph_edges(source_id);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_graph_edges_target ON graph_edges(target_id);")
    conn.commit()


def clear_graph(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM graph_edges;")
    conn.execute("DELETE FROM graph_nodes;")
    conn.commit()


def upsert_node(conn: sqlite3.Connection, node: GraphNode) -> None:
    conn.execute(
        """
        INSERT INTO graph_nodes(node_id, entity_type, label, x, y, attributes_json, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(node_id) DO UPDATE SET
          entity_type = excluded.entity_type,
          label = excluded.label,
          attributes_json = excluded.attributes_json,
          updated_at = excluded.updated_at
        """,
        (
            node.id,
            node.entity_type,
            node.label,
            float(node.x),
            float(node.y),
            json.dumps(node.attributes.to_dict(), ensure_ascii=True, default=str),
            int(time.time()),
        ),
    )


def upsert_edge(conn: sqlite3.Connection, edge: GraphEdge) -> bool:
    """Insert an edge unless it, or its reverse, is already stored.

    Rows are keyed by ``source-target-type``; a caller-supplied id is ignored.
    """
    key = edge_key(edge.source, edge.target, edge.relation_type)
    rev = edge_key(edge.target, edge.source, edge.relation_type)
    row = conn.execute(
        "SELECT edge_id FROM graph_edges WHERE edge_id IN (?, ?)",
        (key, rev),
    ).fetchone()
    if row is not None:
        return False

    conn.execute(
        """
        INSERT INTO graph_edges(
          edge_id, source_id, target_id, relation_type, weight,
          score, author_position, is_corresponding, is_open_access
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            key,
            edge.source,
            edge.target,
            edge.relation_type,
            float(edge.weight),
            edge.score,
            edge.author_position,
            _opt_bool_in(edge.is_corresponding),
            _opt_bool_in(edge.is_open_access),
        ),
    )
    return True


def get_all_nodes(conn: sqlite3.Connection) -> list[GraphNode]:
    rows = conn.execute(
        "SELECT node_id, entity_type, label, x, y, attributes_json FROM graph_nodes ORDER BY rowid"
    ).fetchall()
    return [
        GraphNode(
            id=str(r["node_id"]),
            entity_type=str(r["entity_type"]),
            label=str(r["label"]),
            x=float(r["x"]),
            y=float(r["y"]),
            attributes=EntityAttributes.from_dict(json.loads(r["attributes_json"])),
        )
        for r in rows
    ]


def get_all_edges(conn: sqlite3.Connection) -> list[GraphEdge]:
    rows = conn.execute(
        """
        SELECT edge_id, source_id, target_id, relation_type, weight,
               score, author_position, is_corresponding, is_open_access
        FROM graph_edges ORDER BY rowid
        """
    ).fetchall()
    return [_edge_from_row(r) for r in rows]


def get_neighbors(conn: sqlite3.Connection, node_id: str, *, limit: int = 50) -> list[sqlite3.Row]:
    # Edges are stored once per undirected pair; query both sides.
    return conn.execute(
        """
        SELECT
          CASE
            WHEN source_id = ? THEN target_id
            ELSE source_id
          END AS neighbor_id,
          relation_type,
          weight
        FROM graph_edges
        WHERE source_id = ? OR target_id = ?
        ORDER BY weight DESC, neighbor_id ASC
        LIMIT ?
        """,
        (node_id, node_id, node_id, int(limit)),
    ).fetchall()


def count_rows(conn: sqlite3.Connection) -> dict[str, int]:
    return {
        "nodes": int(conn.execute("SELECT COUNT(*) AS n FROM graph_nodes").fetchone()["n"]),
        "edges": int(conn.execute("SELECT COUNT(*) AS n FROM graph_edges").fetchone()["n"]),
    }


class RelationshipStore:
    """Persistent relationship store over the graph tables.

    Aggregation reads it only to overlay extra edges between nodes that are
    already in the working set.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        init_graph(conn)

    def get_all_nodes(self) -> list[GraphNode]:
        return get_all_nodes(self.conn)

    def get_all_edges(self) -> list[GraphEdge]:
        return get_all_edges(self.conn)

    def get_neighbors(self, node_id: str, *, limit: int = 50) -> list[sqlite3.Row]:
        return get_neighbors(self.conn, node_id, limit=limit)

    def add(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> dict[str, int]:
        nodes_written = 0
        edges_added = 0
        try:
            for n in nodes:
                upsert_node(self.conn, n)
                nodes_written += 1
            for e in edges:
                if upsert_edge(self.conn, e):
                    edges_added += 1
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise StoreError(f"Failed to write to the relationship store: {e}") from e
        return {"nodes_written": nodes_written, "edges_added": edges_added}

    def save_state(self, state: GraphState, *, clear: bool = False) -> dict[str, int]:
        if clear:
            clear_graph(self.conn)
        return self.add(state.nodes.values(), state.edges.values())

    def stats(self) -> dict[str, int]:
        return count_rows(self.conn)


def _opt_bool_in(v: bool | None) -> int | None:
    return None if v is None else int(bool(v))


def _opt_bool_out(v: int | None) -> bool | None:
    return None if v is None else bool(v)


def _edge_from_row(r: sqlite3.Row) -> GraphEdge:
    return GraphEdge(
        id=str(r["edge_id"]),
        source=str(r["source_id"]),
        target=str(r["target_id"]),
        relation_type=str(r["relation_type"]),
        weight=float(r["weight"]),
        score=(float(r["score"]) if r["score"] is not None else None),
        author_position=r["author_position"],
        is_corresponding=_opt_bool_out(r["is_corresponding"]),
        is_open_access=_opt_bool_out(r["is_open_access"]),
    )
