import unittest

from entitygraph.analysis.extraction import (
    extract_induced_subgraph,
    extract_multi_source_ego_network,
    extract_reachability_subgraph,
    filter_subgraph,
    find_shortest_path,
)
from entitygraph.analysis.patterns import detect_star_patterns, detect_triangles
from entitygraph.analysis.utilities import (
    OPERATIONS,
    apply_result,
    extract_ego_network,
    filter_by_publication_year,
    find_connected_components,
    get_graph_stats,
    get_largest_connected_component,
    remove_isolated_nodes,
    trim_degree1_nodes,
    trim_leaf_nodes,
    trim_root_nodes,
)
from entitygraph.models import EntityAttributes, GraphEdge, GraphNode, GraphState


def _n(nid, etype="works", year=None):
    return GraphNode(id=nid, entity_type=etype, label=nid, attributes=EntityAttributes(year=year))


def _e(a, b, rtype="related_to"):
    return GraphEdge.create(a, b, rtype)


def _ids(items):
    return [x.id for x in items]


class TestTrims(unittest.TestCase):
    def test_path_trim_leaves_middle(self):
        nodes = [_n("A"), _n("B"), _n("C")]
        edges = [_e("A", "B"), _e("B", "C")]
        res = trim_leaf_nodes(nodes, edges)
        self.assertEqual(_ids(res.nodes), ["B"])
        self.assertEqual(res.edges, [])
        self.assertEqual(res.removed_count, 2)
        self.assertEqual(res.operation, "trimLeafNodes")

    def test_trim_leaf_keeps_isolated_pairs(self):
        # A lone A-B edge: both ends have degree 1 but neither hangs off a hub.
        res = trim_leaf_nodes([_n("A"), _n("B")], [_e("A", "B")])
        self.assertEqual(res.removed_count, 0)

    def test_trim_leaf_is_single_pass(self):
        nodes = [_n(x) for x in "ABCD"]
        edges = [_e("A", "B"), _e("B", "C"), _e("C", "D")]
        once = trim_leaf_nodes(nodes, edges)
        self.assertEqual(_ids(once.nodes), ["B", "C"])
        twice = trim_leaf_nodes(once.nodes, once.edges)
        self.assertEqual(twice.removed_count, 0)

    def test_self_loop_counts_twice(self):
        res = trim_degree1_nodes([_n("A"), _n("B")], [_e("A", "A"), _e("A", "B")])
        self.assertEqual(_ids(res.nodes), ["A"])

    def test_parallel_relations_each_count_toward_degree(self):
        nodes = [_n("A"), _n("B"), _n("C")]
        edges = [_e("A", "B", "references"), _e("A", "B", "related_to"), _e("B", "C")]
        res = trim_degree1_nodes(nodes, edges)
        self.assertEqual(_ids(res.nodes), ["A", "B"])

    def test_trim_root_only_removes_sources(self):
        nodes = [_n("R"), _n("H"), _n("L"), _n("X")]
        edges = [_e("R", "H"), _e("H", "L"), _e("H", "X")]
        res = trim_root_nodes(nodes, edges)
        self.assertEqual(_ids(res.nodes), ["H", "L", "X"])
        self.assertEqual(res.removed_count, 1)

    def test_trim_degree1(self):
        nodes = [_n("A"), _n("B"), _n("C")]
        res = trim_degree1_nodes(nodes, [_e("A", "B")])
        self.assertEqual(_ids(res.nodes), ["C"])

    def test_remove_isolated(self):
        nodes = [_n("A"), _n("B"), _n("C")]
        res = remove_isolated_nodes(nodes, [_e("A", "B"), _e("A", "Z")])
        self.assertEqual(_ids(res.nodes), ["A", "B"])
        self.assertEqual(_ids(res.edges), ["A-B-related_to"])

    def test_inputs_untouched_and_deterministic(self):
        nodes = [_n("A"), _n("B"), _n("C")]
        edges = [_e("A", "B"), _e("B", "C")]
        a = trim_leaf_nodes(nodes, edges)
        b = trim_leaf_nodes(nodes, edges)
        self.assertEqual(len(nodes), 3)
        self.assertEqual(a.to_dict(), b.to_dict())


class TestFiltersAndEgo(unittest.TestCase):
    def test_year_filter(self):
        nodes = [_n("W1", year=2001), _n("W2", year=2010), _n("A1", "authors")]
        edges = [_e("W1", "W2"), _e("A1", "W2")]
        res = filter_by_publication_year(nodes, edges, 2005, 2015)
        self.assertEqual(_ids(res.nodes), ["W2"])
        self.assertEqual(res.edges, [])
        with self.assertRaises(ValueError):
            filter_by_publication_year(nodes, edges, 2020, 2000)

    def test_ego_network_star(self):
        nodes = [_n(x) for x in ("H", "N1", "N2", "N3", "F")]
        edges = [_e("H", "N1"), _e("N2", "H"), _e("H", "N3"), _e("N1", "F")]
        res = extract_ego_network(nodes, edges, "H", 1)
        self.assertEqual(set(_ids(res.nodes)), {"H", "N1", "N2", "N3"})
        self.assertEqual(res.removed_count, 1)

        self.assertEqual(len(extract_ego_network(nodes, edges, "H", 2).nodes), 5)
        self.assertEqual(_ids(extract_ego_network(nodes, edges, "H", 0).nodes), ["H"])
        self.assertEqual(extract_ego_network(nodes, edges, "missing", 2).nodes, [])
        with self.assertRaises(ValueError):
            extract_ego_network(nodes, edges, "H", -1)


class TestComponentsAndStats(unittest.TestCase):
    def setUp(self):
        self.nodes = [_n("W1"), _n("A1", "authors"), _n("W2")]
        self.edges = [_e("A1", "W1", "authored")]

    def test_components(self):
        comps = find_connected_components(self.nodes, self.edges)
        self.assertEqual(sorted(len(c) for c in comps), [1, 2])
        self.assertEqual(comps[0], ["W1", "A1"])

        largest = get_largest_connected_component(self.nodes, self.edges)
        self.assertEqual(_ids(largest.nodes), ["W1", "A1"])
        self.assertEqual(largest.removed_count, 1)

    def test_largest_tie_goes_to_first(self):
        nodes = [_n(x) for x in "ABCD"]
        res = get_largest_connected_component(nodes, [_e("C", "D"), _e("A", "B")])
        self.assertEqual(_ids(res.nodes), ["A", "B"])

    def test_stats(self):
        st = get_graph_stats(self.nodes, self.edges)
        self.assertEqual(st.total_nodes, 3)
        self.assertEqual(st.total_edges, 1)
        self.assertEqual(st.connected_components, 2)
        self.assertEqual(st.largest_component_size, 2)
        self.assertEqual(st.nodes_by_type, {"works": 2, "authors": 1})
        self.assertEqual(st.edges_by_type, {"authored": 1})

    def test_empty_graph(self):
        st = get_graph_stats([], [])
        self.assertEqual(
            st.to_dict(),
            {
                "totalNodes": 0,
                "totalEdges": 0,
                "connectedComponents": 0,
                "largestComponentSize": 0,
                "nodesByType": {},
                "edgesByType": {},
            },
        )
        self.assertEqual(find_connected_components([], []), [])
        self.assertEqual(get_largest_connected_component([], []).nodes, [])
        for name, op in OPERATIONS.items():
            if name in ("filterByPublicationYear", "extractEgoNetwork"):
                continue
            self.assertEqual(op([], []).removed_count, 0, name)

    def test_apply_result_keeps_node_objects(self):
        state = GraphState()
        state.replace(self.nodes, self.edges)
        w1 = state.nodes["W1"]
        apply_result(state, get_largest_connected_component(state.node_list(), state.edge_list()))
        self.assertEqual(list(state.nodes), ["W1", "A1"])
        self.assertIs(state.nodes["W1"], w1)


class TestExtraction(unittest.TestCase):
    def setUp(self):
        self.nodes = [_n(x) for x in ("W1", "W2", "W3", "W4", "A1")]
        self.edges = [
            _e("W1", "W2", "references"),
            _e("W2", "W3", "references"),
            _e("A1", "W1", "authored"),
        ]

    def test_induced_subgraph(self):
        res = extract_induced_subgraph(self.nodes, self.edges, ["W1", "W2", "W4"])
        self.assertEqual(_ids(res.nodes), ["W1", "W2", "W4"])
        self.assertEqual(_ids(res.edges), ["W1-W2-references"])

    def test_filter_subgraph_and_or(self):
        works = lambda n: n.id.startswith("W")
        authored = lambda e: e.relation_type == "authored"

        both = filter_subgraph(self.nodes, self.edges, node_filter=works, edge_filter=authored)
        self.assertEqual(_ids(both.nodes), ["W1", "W2", "W3", "W4"])
        self.assertEqual(both.edges, [])

        either = filter_subgraph(self.nodes, self.edges, node_filter=works, edge_filter=authored, combinator="OR")
        self.assertEqual(_ids(either.nodes), ["W1", "W2", "W3", "W4", "A1"])
        self.assertEqual(len(either.edges), 3)

        with self.assertRaises(ValueError):
            filter_subgraph(self.nodes, self.edges, combinator="xor")

    def test_multi_seed_ego(self):
        res = extract_multi_source_ego_network(self.nodes, self.edges, ["A1", "W3"], hops=1)
        self.assertEqual(_ids(res.nodes), ["W1", "W2", "W3", "A1"])
        with self.assertRaises(ValueError):
            extract_multi_source_ego_network(self.nodes, self.edges, [], hops=1)

    def test_multi_seed_ego_overlapping_seeds(self):
        # W1 lies inside A1's radius but still contributes its own neighbourhood.
        res = extract_multi_source_ego_network(self.nodes, self.edges, ["A1", "W1"], hops=1)
        self.assertEqual(_ids(res.nodes), ["W1", "W2", "A1"])

    def test_reachability(self):
        fwd = extract_reachability_subgraph(self.nodes, self.edges, ["W1"])
        self.assertEqual(_ids(fwd.nodes), ["W1", "W2", "W3"])
        back = extract_reachability_subgraph(self.nodes, self.edges, ["W2"], direction="backward")
        self.assertEqual(_ids(back.nodes), ["W1", "W2", "A1"])
        with self.assertRaises(ValueError):
            extract_reachability_subgraph(self.nodes, self.edges, ["W1"], direction="sideways")

    def test_shortest_path(self):
        path = find_shortest_path(self.nodes, self.edges, "A1", "W3")
        self.assertEqual(path.nodes, ["A1", "W1", "W2", "W3"])
        self.assertEqual(path.edges, ["A1-W1-authored", "W1-W2-references", "W2-W3-references"])
        self.assertEqual(path.length, 3)

        self.assertIsNone(find_shortest_path(self.nodes, self.edges, "W3", "A1", directed=True))
        self.assertIsNone(find_shortest_path(self.nodes, self.edges, "W1", "W4"))
        self.assertEqual(find_shortest_path(self.nodes, self.edges, "W1", "W1").length, 0)


    def test_shortest_path_ties_resolve_by_id(self):
        nodes = [_n(x) for x in ("S", "Y", "X", "T")]
        edges = [_e("S", "Y"), _e("Y", "T"), _e("S", "X"), _e("X", "T")]
        path = find_shortest_path(nodes, edges, "S", "T")
        self.assertEqual(path.nodes, ["S", "X", "T"])
        self.assertEqual(path.edges, ["S-X-related_to", "X-T-related_to"])

class TestPatterns(unittest.TestCase):
    def test_triangles(self):
        nodes = [_n(x) for x in "ABCD"]
        edges = [_e("A", "B"), _e("C", "B"), _e("A", "C"), _e("C", "D")]
        self.assertEqual(detect_triangles(nodes, edges), [("A", "B", "C")])
        self.assertEqual(detect_triangles(nodes, edges[:2]), [])

        noisy = edges + [_e("A", "A"), _e("B", "A", "references")]
        self.assertEqual(detect_triangles(nodes, noisy), [("A", "B", "C")])

    def test_star_patterns(self):
        nodes = [_n(x) for x in ("H", "L1", "L2", "L3", "C", "S")]
        edges = [
            _e("L1", "H", "references"),
            _e("L2", "H", "references"),
            _e("L3", "H", "references"),
            _e("C", "L1"),
            _e("C", "L2"),
            _e("S", "C"),
        ]
        stars = detect_star_patterns(nodes, edges)
        self.assertEqual([(s.hub_id, s.kind) for s in stars], [("C", "mixed"), ("H", "in")])
        self.assertEqual(stars[1].leaf_ids, ("L1", "L2", "L3"))
        self.assertEqual(detect_star_patterns(nodes, edges, min_degree=4), [])
        with self.assertRaises(ValueError):
            detect_star_patterns(nodes, edges, min_degree=0)


if __name__ == "__main__":
    unittest.main()
