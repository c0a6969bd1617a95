"""Scanner module for source discovery, declaration parsing and graph building."""

from .discovery import iter_files, scan, SourceFile
from .parser import parse_source, collect_annotation_types
from .resolver import BindingIndex, binding_key
from .builder import build_graph, find_components, find_components_async
from .config import ScanConfig, load_config, find_config
from .errors import DaggerMapError, ScanFailure, FileReadFailure, ParseFailure, ConfigError

__all__ = [
    "iter_files",
    "scan",
    "SourceFile",
    "parse_source",
    "collect_annotation_types",
    "BindingIndex",
    "binding_key",
    "build_graph",
    "find_components",
    "find_components_async",
    "ScanConfig",
    "load_config",
    "find_config",
    "DaggerMapError",
    "ScanFailure",
    "FileReadFailure",
    "ParseFailure",
    "ConfigError",
]
