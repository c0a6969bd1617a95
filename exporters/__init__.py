"""Exporters for converting a dependency graph to output files."""

from .json_exporter import to_json, to_graph_dict, JSON_FILE_NAME
from .html_exporter import to_html, OUTPUT_FILE_NAMES

__all__ = ["to_json", "to_graph_dict", "JSON_FILE_NAME", "to_html", "OUTPUT_FILE_NAMES"]
