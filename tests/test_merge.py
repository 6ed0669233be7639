import unittest

from entitygraph.aggregate.merge import (
    add_discovered_edges,
    add_nodes_and_edges,
    find_unresolved_nodes,
    update_node_labels,
)
from entitygraph.layout import fixed_layout
from entitygraph.models import GraphEdge, GraphNode, GraphState


def _node(nid, label=None, x=0.0, y=0.0):
    return GraphNode(id=nid, entity_type="works", label=label or nid, x=x, y=y)


class TestMerge(unittest.TestCase):
    def setUp(self):
        self.state = GraphState()
        self.state.replace([_node("W1", "Paper one", x=10, y=20), _node("A1")], [])
        self.layout = fixed_layout(5, 5)

    def test_new_nodes_get_positions(self):
        res = add_nodes_and_edges(self.state, [_node("W2", "Paper two"), _node("W2", "dup")], [], layout=self.layout)
        self.assertEqual(res.nodes_added, 1)
        self.assertEqual((self.state.nodes["W2"].x, self.state.nodes["W2"].y), (5.0, 5.0))
        self.assertEqual(list(self.state.nodes), ["W1", "A1", "W2"])

    def test_idempotent(self):
        nodes = [_node("W2", "Paper two"), _node("A1", "Ada Lovelace")]
        edges = [GraphEdge.create("W2", "A1", "authored")]
        first = add_nodes_and_edges(self.state, nodes, edges, layout=self.layout)
        self.assertTrue(first.changed)
        snapshot = self.state.to_dict()

        second = add_nodes_and_edges(self.state, nodes, edges, layout=self.layout)
        self.assertFalse(second.changed)
        self.assertEqual(self.state.to_dict(), snapshot)

    def test_label_only_upgrades(self):
        res = add_nodes_and_edges(self.state, [_node("A1", "Ada Lovelace", x=99, y=99)], [], layout=self.layout)
        self.assertEqual(res.labels_upgraded, 1)
        a1 = self.state.nodes["A1"]
        self.assertEqual(a1.label, "Ada Lovelace")
        self.assertEqual((a1.x, a1.y), (0.0, 0.0))

        # Resolved labels are never replaced, not even by another resolved one.
        add_nodes_and_edges(self.state, [_node("A1", "A1"), _node("A1", "Someone else")], [], layout=self.layout)
        self.assertEqual(self.state.nodes["A1"].label, "Ada Lovelace")

        add_nodes_and_edges(self.state, [_node("W1", "W1")], [], layout=self.layout)
        self.assertEqual(self.state.nodes["W1"].label, "Paper one")

    def test_edges_need_endpoints_and_skip_reverse(self):
        self.state.edges["W1-A1-authored"] = GraphEdge.create("W1", "A1", "authored")
        res = add_nodes_and_edges(
            self.state,
            [],
            [
                GraphEdge.create("A1", "W1", "authored"),
                GraphEdge.create("W1", "W404", "references"),
                GraphEdge.create("A1", "W1", "related_to"),
            ],
            layout=self.layout,
        )
        self.assertEqual(res.edges_added, 1)
        self.assertEqual(list(self.state.edges), ["W1-A1-authored", "A1-W1-related_to"])

    def test_edges_keyed_by_endpoints_and_type(self):
        add_nodes_and_edges(
            self.state,
            [_node("W2")],
            [GraphEdge.from_dict({"id": "e1", "source": "W1", "target": "A1", "relationType": "authored"})],
            layout=self.layout,
        )
        res = add_discovered_edges(self.state, [GraphEdge.create("A1", "W1", "authored")])
        self.assertEqual(res.edges_added, 0)
        self.assertEqual(list(self.state.edges), ["W1-A1-authored"])
        self.assertEqual(self.state.edges["W1-A1-authored"].id, "W1-A1-authored")

        res = add_discovered_edges(
            self.state,
            [
                GraphEdge(id="row", source="W1", target="A1", relation_type="related_to"),
                GraphEdge(id="row", source="W2", target="A1", relation_type="related_to"),
            ],
        )
        self.assertEqual(res.edges_added, 2)
        self.assertEqual(len(self.state.edges), 3)

    def test_inputs_are_not_aliased(self):
        cand = _node("W2", "Paper two")
        add_nodes_and_edges(self.state, [cand], [], layout=self.layout)
        self.assertIsNot(self.state.nodes["W2"], cand)
        self.assertEqual((cand.x, cand.y), (0.0, 0.0))

    def test_update_node_labels(self):
        res = update_node_labels(self.state, {"W1": "Renamed", "A1": "A1", "W404": "Ghost"})
        self.assertEqual(res.labels_updated, 1)
        self.assertEqual(self.state.nodes["W1"].label, "Renamed")
        self.assertNotIn("W404", self.state.nodes)

    def test_add_discovered_edges_never_creates_nodes(self):
        res = add_discovered_edges(
            self.state,
            [GraphEdge.create("W1", "A1", "authored"), GraphEdge.create("W1", "W2", "references")],
        )
        self.assertEqual(res.edges_added, 1)
        self.assertEqual(set(self.state.nodes), {"W1", "A1"})

    def test_find_unresolved_nodes(self):
        self.assertEqual(find_unresolved_nodes(self.state), ["A1"])


if __name__ == "__main__":
    unittest.main()
