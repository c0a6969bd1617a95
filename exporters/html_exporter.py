"""HTML exporter filling the bundled d3 chart templates."""

import json
from pathlib import Path

from graph.mapper import ChartKind, to_chart
from graph.model import DependencyGraph


TEMPLATES_DIR = Path(__file__).parent / "templates"
PLACEHOLDER = "JSON_PLACEHOLDER"

OUTPUT_FILE_NAMES = {
    ChartKind.BUBBLE: "dependency_bubble_graph.html",
    ChartKind.TREE: "dependency_tree_graph.html",
    ChartKind.LINKED_NODES: "dependency_linked_nodes_graph.html",
}


def template_path(kind: ChartKind) -> Path:
    return TEMPLATES_DIR / ChartKind(kind).value / "placeholder_index.html"


def to_html(graph: DependencyGraph, kind: ChartKind, indent: int = 2) -> str:
    """
    Render a chart page for the graph.

    Args:
        graph: The dependency graph to export.
        kind: Which chart to render.
        indent: JSON indentation level of the embedded document.

    Returns:
        The template text with its placeholder replaced by the chart JSON.
    """
    template = template_path(kind).read_text(encoding="utf-8")
    document = json.dumps(to_chart(graph, kind), indent=indent)
    return template.replace(PLACEHOLDER, document, 1)
