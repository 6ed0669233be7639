import sqlite3
import unittest

from entitygraph.models import EntityAttributes, GraphEdge, GraphNode, GraphState
from entitygraph.store import sqlite_store
from entitygraph.store.sqlite_graph import RelationshipStore


def _conn() -> sqlite3.Connection:
    conn = sqlite_store.connect(":memory:")
    sqlite_store.init_db(conn)
    return conn


class TestToggleStore(unittest.TestCase):
    def test_default_when_missing(self):
        store = sqlite_store.ToggleStore(_conn(), default={"catalogue:bookmarks"})
        self.assertEqual(store.load(), {"catalogue:bookmarks"})

    def test_save_and_load(self):
        conn = _conn()
        store = sqlite_store.ToggleStore(conn, default={"catalogue:bookmarks"})
        store.save({"cache:memory", "catalogue:history"})
        self.assertEqual(
            sqlite_store.get_meta(conn, sqlite_store.ENABLED_SOURCES_KEY),
            '["cache:memory", "catalogue:history"]',
        )
        self.assertEqual(store.load(), {"cache:memory", "catalogue:history"})

        store.save([])
        self.assertEqual(store.load(), set())

    def test_corrupt_values_fall_back_to_default(self):
        conn = _conn()
        store = sqlite_store.ToggleStore(conn, default={"catalogue:bookmarks"})
        for raw in ("not json", '{"a": 1}', "[1, 2]"):
            sqlite_store.set_meta(conn, sqlite_store.ENABLED_SOURCES_KEY, raw)
            with self.assertLogs("entitygraph.store.sqlite_store", level="WARNING"):
                self.assertEqual(store.load(), {"catalogue:bookmarks"})

    def test_database_errors_never_raise(self):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        # No meta table.
        store = sqlite_store.ToggleStore(conn, default={"catalogue:bookmarks"})
        self.assertEqual(store.load(), {"catalogue:bookmarks"})
        store.save({"cache:memory"})


class TestRelationshipStore(unittest.TestCase):
    def setUp(self):
        self.store = RelationshipStore(_conn())
        self.nodes = [
            GraphNode(id="W1", entity_type="works", label="Paper", x=1.0, y=2.0, attributes=EntityAttributes(year=2020)),
            GraphNode(id="A1", entity_type="authors", label="Ada"),
        ]

    def test_add_dedups_reverse_edges(self):
        res = self.store.add(
            self.nodes,
            [
                GraphEdge.create("W1", "A1", "authored", is_corresponding=True),
                GraphEdge.create("A1", "W1", "authored"),
                GraphEdge.create("A1", "W1", "related_to"),
            ],
        )
        self.assertEqual(res, {"nodes_written": 2, "edges_added": 2})
        self.assertEqual(self.store.stats(), {"nodes": 2, "edges": 2})

        edges = self.store.get_all_edges()
        self.assertEqual([e.id for e in edges], ["W1-A1-authored", "A1-W1-related_to"])
        self.assertIs(edges[0].is_corresponding, True)
        self.assertIsNone(edges[1].is_corresponding)

    def test_caller_ids_do_not_decide_identity(self):
        res = self.store.add(
            self.nodes,
            [
                GraphEdge(id="e1", source="W1", target="A1", relation_type="authored"),
                GraphEdge.create("A1", "W1", "authored"),
                GraphEdge(id="row", source="W1", target="A1", relation_type="related_to"),
                GraphEdge(id="row", source="W2", target="A1", relation_type="related_to"),
            ],
        )
        self.assertEqual(res["edges_added"], 3)
        self.assertEqual(
            [e.id for e in self.store.get_all_edges()],
            ["W1-A1-authored", "W1-A1-related_to", "W2-A1-related_to"],
        )

    def test_nodes_round_trip(self):
        self.store.add(self.nodes, [])
        got = {n.id: n for n in self.store.get_all_nodes()}
        self.assertEqual(got["W1"].label, "Paper")
        self.assertEqual(got["W1"].year, 2020)
        self.assertEqual((got["W1"].x, got["W1"].y), (1.0, 2.0))

    def test_neighbors_cover_both_directions(self):
        self.store.add(self.nodes, [GraphEdge.create("W1", "A1", "authored")])
        self.assertEqual([r["neighbor_id"] for r in self.store.get_neighbors("A1")], ["W1"])
        self.assertEqual([r["neighbor_id"] for r in self.store.get_neighbors("W1")], ["A1"])

    def test_save_state_with_clear(self):
        self.store.add(self.nodes, [GraphEdge.create("W1", "A1", "authored")])
        state = GraphState()
        state.replace([GraphNode(id="W9", entity_type="works", label="Other")], [])
        self.store.save_state(state, clear=True)
        self.assertEqual(self.store.stats(), {"nodes": 1, "edges": 0})


if __name__ == "__main__":
    unittest.main()
