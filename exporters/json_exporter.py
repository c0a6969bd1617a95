"""JSON exporter for dependency graphs (machine-friendly format)."""

import json
from typing import Any, Dict, List

from graph.model import DependencyGraph, GraphNode


JSON_FILE_NAME = "dependency.json"


def _node_dict(node: GraphNode) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": node.id,
        "name": node.key.name,
        "kind": node.kind.value,
        "files": list(node.files),
    }
    if node.key.qualifier:
        data["qualifier"] = node.key.qualifier
    if node.module:
        data["module"] = node.module
    if node.scope:
        data["scope"] = node.scope
    return data


def to_graph_dict(graph: DependencyGraph) -> Dict[str, Any]:
    """
    Convert a dependency graph to a JSON-serializable dict.

    Args:
        graph: The dependency graph to export.

    Returns:
        Dict with ``components``, ``nodes``, ``edges``, ``ambiguities`` and ``diagnostics``.
    """
    edges: List[Dict[str, Any]] = []
    for edge in graph.edges:
        entry: Dict[str, Any] = {
            "source": edge.source.label,
            "target": edge.target.label,
            "kind": edge.kind.value,
        }
        if edge.unresolved:
            entry["unresolved"] = True
        if edge.ambiguous:
            entry["ambiguous"] = True
        if edge.origin:
            entry["origin"] = edge.origin
        edges.append(entry)

    return {
        "components": [_node_dict(node) for node in graph.components],
        "nodes": [_node_dict(node) for node in graph.nodes],
        "edges": edges,
        "ambiguities": [
            {
                "key": ambiguity.key.label,
                "chosen": ambiguity.chosen,
                "candidates": list(ambiguity.candidates),
            }
            for ambiguity in graph.ambiguities
        ],
        "diagnostics": [
            {
                "kind": diagnostic.kind.value,
                "message": diagnostic.message,
                "path": diagnostic.path,
                "line": diagnostic.line,
            }
            for diagnostic in graph.diagnostics
        ],
    }


def to_json(graph: DependencyGraph, indent: int = 2) -> str:
    """
    Convert a dependency graph to JSON format.

    Args:
        graph: The dependency graph to export.
        indent: JSON indentation level.

    Returns:
        JSON string representation of the graph.
    """
    return json.dumps(to_graph_dict(graph), indent=indent)
