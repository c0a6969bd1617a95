"""Transforms from a DependencyGraph to JSON-ready chart documents."""

from collections import deque
from enum import Enum
from typing import Any, Dict, List, Set

from .model import DependencyGraph, NodeKind, TypeKey


ROOT_NAME = "root"


class ChartKind(str, Enum):
    BUBBLE = "bubble"
    TREE = "tree"
    LINKED_NODES = "linked_nodes"


def _label(key: TypeKey) -> str:
    return key.label


def to_linked_nodes(graph: DependencyGraph) -> Dict[str, Any]:
    """
    Project the graph onto a flat ``{nodes, links}`` document.

    Every edge becomes exactly one link, so cycles survive as plain
    from/to pairs. The ``unresolved`` and ``ambiguous`` flags are only
    present on links where they are set.

    Args:
        graph: The dependency graph.

    Returns:
        Dict with ``nodes`` (id, kind, files) and ``links`` (from, to, kind).
    """
    nodes = [
        {"id": node.id, "kind": node.kind.value, "files": list(node.files)}
        for node in graph.nodes
    ]
    links: List[Dict[str, Any]] = []
    for edge in graph.edges:
        link: Dict[str, Any] = {
            "from": edge.source.label,
            "to": edge.target.label,
            "kind": edge.kind.value,
        }
        if edge.unresolved:
            link["unresolved"] = True
        if edge.ambiguous:
            link["ambiguous"] = True
        links.append(link)
    return {"nodes": nodes, "links": links}


def to_bubble_graph(graph: DependencyGraph) -> Dict[str, Any]:
    """
    Nest nodes by the module that declares them.

    Each declared module becomes a group holding its bindings. Every other
    node is a leaf under the synthetic root. ``value`` is the node's
    out-degree.
    """
    groups: Dict[str, Dict[str, Any]] = {}
    for node in graph.nodes:
        if node.kind == NodeKind.MODULE and node.files:
            groups[node.key.name] = {
                "name": node.id,
                "value": graph.out_degree(node.key),
                "children": [],
            }

    children: List[Dict[str, Any]] = []
    for node in graph.nodes:
        if node.kind == NodeKind.MODULE and node.files:
            children.append(groups[node.key.name])
            continue
        leaf = {"name": node.id, "value": graph.out_degree(node.key)}
        if node.module in groups:
            groups[node.module]["children"].append(leaf)
        else:
            children.append(leaf)

    return {"name": ROOT_NAME, "value": 0, "children": children}


def _grow(graph: DependencyGraph, start: TypeKey, placed: Set[TypeKey]) -> Dict[str, Any]:
    """Breadth-first subtree from ``start``; nodes already placed are skipped."""
    top: Dict[str, Any] = {"name": start.label, "children": []}
    placed.add(start)
    queue = deque([(start, top)])
    while queue:
        key, entry = queue.popleft()
        for target in sorted(graph.get_targets(key), key=_label):
            if target in placed:
                continue
            placed.add(target)
            child: Dict[str, Any] = {"name": target.label, "children": []}
            entry["children"].append(child)
            queue.append((target, child))
    return top


def to_tree_graph(graph: DependencyGraph) -> Dict[str, Any]:
    """
    Reduce the graph to a single-rooted tree.

    The first node (by identity) with no incoming ``injects``/``provides``
    edge is the root, and the tree is grown breadth-first along outgoing
    edges. A node reached a second time is not inserted again, which breaks
    cycles and drops extra parents. This is lossy but always gives the same
    tree for the same graph.

    Nodes the root cannot reach are placed under a synthetic ``root`` next
    to the root's subtree. When every node has an incoming edge the
    synthetic root lists all nodes as direct children.

    Args:
        graph: The dependency graph.

    Returns:
        Nested ``{name, children}`` dict.
    """
    keys = [node.key for node in graph.nodes]
    if not keys:
        return {"name": ROOT_NAME, "children": []}

    roots = graph.get_roots()
    if not roots:
        return {
            "name": ROOT_NAME,
            "children": [{"name": key.label, "children": []} for key in keys],
        }

    placed: Set[TypeKey] = set()
    first = _grow(graph, roots[0], placed)
    if len(placed) == len(keys):
        return first

    children = [first]
    for key in roots[1:] + keys:
        if key not in placed:
            children.append(_grow(graph, key, placed))
    return {"name": ROOT_NAME, "children": children}


def to_chart(graph: DependencyGraph, kind: ChartKind) -> Dict[str, Any]:
    """Build the document for one chart kind."""
    kind = ChartKind(kind)
    if kind == ChartKind.BUBBLE:
        return to_bubble_graph(graph)
    elif kind == ChartKind.TREE:
        return to_tree_graph(graph)
    elif kind == ChartKind.LINKED_NODES:
        return to_linked_nodes(graph)
    raise ValueError(f"Unsupported chart kind: {kind}")
