"""Tests for the chart mappers."""

import json
import random

import pytest

from graph.mapper import (
    ChartKind,
    to_bubble_graph,
    to_chart,
    to_linked_nodes,
    to_tree_graph,
)
from graph.model import DependencyGraph, EdgeKind, GraphEdge, GraphNode, NodeKind, TypeKey


def _graph(edges, extra=(), kinds=None, modules=None, files=None):
    """Build a graph from (source, target[, kind]) tuples."""
    kinds = kinds or {}
    modules = modules or {}
    files = files or {}
    names = set(extra)
    built = []
    for edge in edges:
        source, target = edge[0], edge[1]
        kind = edge[2] if len(edge) > 2 else EdgeKind.INJECTS
        names.update((source, target))
        built.append(GraphEdge(TypeKey(source), TypeKey(target), kind))
    nodes = [
        GraphNode(
            TypeKey(name),
            kinds.get(name, NodeKind.BINDING),
            files=files.get(name, ("Sample.java",)),
            module=modules.get(name),
        )
        for name in names
    ]
    return DependencyGraph(nodes, built)


def _tree_names(tree):
    """Return every name in the tree, depth-first."""
    names = [tree["name"]]
    for child in tree["children"]:
        names.extend(_tree_names(child))
    return names


def _assert_valid_tree(tree, graph):
    """Each graph node appears once, and every entry has a children list."""
    names = _tree_names(tree)
    node_names = [n.id for n in graph.nodes]
    placed = [name for name in names if name in node_names]
    assert sorted(placed) == sorted(node_names)
    assert len(placed) == len(set(placed))


class TestLinkedNodes:
    """Tests for the linked-nodes projection."""

    def test_empty_graph(self):
        """Test an empty graph."""
        assert to_linked_nodes(DependencyGraph()) == {"nodes": [], "links": []}

    def test_link_count_matches_edge_count(self):
        """Test that every edge, including cycles, becomes one link."""
        graph = _graph([
            ("A", "B"),
            ("B", "A"),
            ("A", "B", EdgeKind.INSTALLS),
            ("C", "C", EdgeKind.PROVIDES),
        ])

        document = to_linked_nodes(graph)

        assert len(document["links"]) == len(graph.edges) == 4
        assert {"from": "C", "to": "C", "kind": "provides"} in document["links"]
        json.dumps(document)

    def test_flags_only_when_set(self):
        """Test that unresolved/ambiguous flags are emitted only when true."""
        nodes = [
            GraphNode(TypeKey("A"), NodeKind.CONSUMER),
            GraphNode(TypeKey("Foo"), NodeKind.BINDING),
            GraphNode(TypeKey("unresolved:Bar"), NodeKind.UNRESOLVED),
        ]
        edges = [
            GraphEdge(TypeKey("Foo"), TypeKey("A"), EdgeKind.INJECTS, ambiguous=True),
            GraphEdge(TypeKey("A"), TypeKey("unresolved:Bar"), EdgeKind.INJECTS, unresolved=True),
        ]

        links = to_linked_nodes(DependencyGraph(nodes, edges))["links"]

        assert links == [
            {"from": "A", "to": "unresolved:Bar", "kind": "injects", "unresolved": True},
            {"from": "Foo", "to": "A", "kind": "injects", "ambiguous": True},
        ]


class TestTreeGraph:
    """Tests for the single-rooted tree reduction."""

    def test_empty_graph(self):
        """Test that an empty graph gives an empty synthetic root."""
        assert to_tree_graph(DependencyGraph()) == {"name": "root", "children": []}

    def test_single_root_reaching_everything(self):
        """Test that the root node is the document root when it reaches all nodes."""
        graph = _graph([("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])

        tree = to_tree_graph(graph)

        assert tree == {
            "name": "A",
            "children": [
                {"name": "B", "children": [{"name": "D", "children": []}]},
                {"name": "C", "children": []},
            ],
        }

    def test_cycle_is_broken_at_first_visit(self):
        """Test that a cycle below the root is cut where it closes."""
        graph = _graph([("A", "B"), ("B", "C"), ("C", "B")])

        tree = to_tree_graph(graph)

        assert tree == {
            "name": "A",
            "children": [{"name": "B", "children": [{"name": "C", "children": []}]}],
        }

    def test_fully_cyclic_graph_uses_synthetic_root(self):
        """Test the fallback when every node has an incoming edge."""
        graph = _graph([("A", "B"), ("B", "C"), ("C", "A")])

        tree = to_tree_graph(graph)

        assert tree == {
            "name": "root",
            "children": [
                {"name": "A", "children": []},
                {"name": "B", "children": []},
                {"name": "C", "children": []},
            ],
        }

    def test_unreachable_nodes_are_kept(self):
        """Test that nodes the first root cannot reach hang off the synthetic root."""
        graph = _graph([("A", "B"), ("C", "D"), ("X", "Y"), ("Y", "X")])

        tree = to_tree_graph(graph)

        assert tree["name"] == "root"
        assert [child["name"] for child in tree["children"]] == ["A", "C", "X"]
        _assert_valid_tree(tree, graph)

    def test_installs_edges_do_not_block_roots(self):
        """Test that a module reached only by installs can still be a root."""
        graph = _graph(
            [("AppComponent", "NetworkModule", EdgeKind.INSTALLS), ("HttpClient", "AppComponent")],
            kinds={"AppComponent": NodeKind.COMPONENT, "NetworkModule": NodeKind.MODULE},
        )

        tree = to_tree_graph(graph)

        assert tree == {
            "name": "HttpClient",
            "children": [
                {"name": "AppComponent", "children": [{"name": "NetworkModule", "children": []}]},
            ],
        }

    def test_random_graphs_give_valid_trees(self):
        """Test tree validity over random graphs with cycles and shared nodes."""
        rng = random.Random(1234)
        names = [f"N{i}" for i in range(12)]
        for _ in range(50):
            edges = [
                (rng.choice(names), rng.choice(names), rng.choice(list(EdgeKind)))
                for _ in range(rng.randint(0, 30))
            ]
            graph = _graph(edges, extra=rng.sample(names, 3))

            tree = to_tree_graph(graph)

            _assert_valid_tree(tree, graph)
            assert tree == to_tree_graph(graph)


class TestBubbleGraph:
    """Tests for the module-nested bubble layout."""

    def test_empty_graph(self):
        """Test an empty graph."""
        assert to_bubble_graph(DependencyGraph()) == {"name": "root", "value": 0, "children": []}

    def test_bindings_nest_under_their_module(self):
        """Test grouping by declaring module and out-degree values."""
        graph = _graph(
            [
                ("AppComponent", "NetworkModule", EdgeKind.INSTALLS),
                ("HttpClient", "Repository"),
                ("HttpClient", "AppComponent"),
                ("Retrofit", "Repository"),
            ],
            kinds={"AppComponent": NodeKind.COMPONENT, "NetworkModule": NodeKind.MODULE},
            modules={"HttpClient": "NetworkModule", "Retrofit": "NetworkModule"},
        )

        bubble = to_bubble_graph(graph)

        assert bubble == {
            "name": "root",
            "value": 0,
            "children": [
                {"name": "AppComponent", "value": 1},
                {
                    "name": "NetworkModule",
                    "value": 0,
                    "children": [
                        {"name": "HttpClient", "value": 2},
                        {"name": "Retrofit", "value": 1},
                    ],
                },
                {"name": "Repository", "value": 0},
            ],
        }

    def test_undeclared_module_is_a_leaf(self):
        """Test that a referenced module with no source file is not a group."""
        graph = _graph(
            [("AppComponent", "ExternalModule", EdgeKind.INSTALLS)],
            kinds={"AppComponent": NodeKind.COMPONENT, "ExternalModule": NodeKind.MODULE},
            files={"ExternalModule": ()},
        )

        bubble = to_bubble_graph(graph)

        assert {"name": "ExternalModule", "value": 0} in bubble["children"]

    def test_each_node_appears_once(self):
        """Test that every node is placed exactly once."""
        graph = _graph(
            [("A", "B"), ("B", "A"), ("M", "A", EdgeKind.INSTALLS)],
            kinds={"M": NodeKind.MODULE},
            modules={"A": "M", "B": "M"},
        )

        bubble = to_bubble_graph(graph)
        names = []

        def walk(entry):
            names.append(entry["name"])
            for child in entry.get("children", []):
                walk(child)

        walk(bubble)
        assert sorted(names) == ["A", "B", "M", "root"]


class TestChartDispatch:
    """Tests for chart kind dispatch."""

    def test_each_kind(self):
        """Test that each chart kind maps to its transform."""
        graph = _graph([("A", "B")])

        assert to_chart(graph, ChartKind.BUBBLE) == to_bubble_graph(graph)
        assert to_chart(graph, ChartKind.TREE) == to_tree_graph(graph)
        assert to_chart(graph, ChartKind.LINKED_NODES) == to_linked_nodes(graph)
        assert to_chart(graph, "tree") == to_tree_graph(graph)

    def test_unknown_kind(self):
        """Test that an unknown chart kind raises ValueError."""
        with pytest.raises(ValueError):
            to_chart(_graph([]), "pie")

    def test_mappers_do_not_mutate_graph(self):
        """Test that mapping leaves the graph unchanged."""
        graph = _graph([("A", "B"), ("B", "A")])
        before = (graph.nodes, graph.edges)

        for kind in ChartKind:
            to_chart(graph, kind)

        assert (graph.nodes, graph.edges) == before
