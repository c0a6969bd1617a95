#!/usr/bin/env python3
"""
daggermap CLI

A tool for scanning Gradle projects for Dagger/Hilt declarations and
generating dependency graph charts.
"""

import argparse
import logging
import sys
import webbrowser
from pathlib import Path

from graph.mapper import ChartKind
from scanner.builder import find_components
from scanner.config import ScanConfig, find_config, load_config, normalize_extensions
from scanner.discovery import DEFAULT_EXCLUDE_DIRS
from scanner.errors import ConfigError, DaggerMapError
from exporters import JSON_FILE_NAME, OUTPUT_FILE_NAMES, to_html, to_json


GRADLE_MARKERS = ("build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts")

CHART_FORMATS = {
    "bubble": ChartKind.BUBBLE,
    "tree": ChartKind.TREE,
    "linked": ChartKind.LINKED_NODES,
}

NO_COMPONENTS_MESSAGE = "Couldn't find any components, are you sure this project is using Dagger?"


def parse_args(args=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="daggermap",
        description="Scan a Gradle project for Dagger/Hilt declarations and chart its dependency graph.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  daggermap .                        # Bubble chart in build/dependency_bubble_graph.html
  daggermap ./app -f tree --open     # Tree chart, opened in the browser
  daggermap . -f linked -o charts    # Linked-nodes chart written to charts/
  daggermap . -f json --stdout       # Raw graph data on stdout
  daggermap . --exclude-dir samples  # Skip an extra directory
        """,
    )

    # Positional arguments
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root directory (default: current directory)",
    )

    # Output options
    parser.add_argument(
        "-f", "--format",
        choices=["bubble", "tree", "linked", "json"],
        default="bubble",
        help="Chart type, or raw json data (default: bubble)",
    )

    parser.add_argument(
        "-o", "--output-dir",
        type=str,
        default="build",
        help="Directory the output file is written to (default: build)",
    )

    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the output instead of writing a file",
    )

    parser.add_argument(
        "--open",
        action="store_true",
        help="Open the written file in a web browser",
    )

    # Scanning options
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file (default: daggermap.yaml in the project root, if present)",
    )

    parser.add_argument(
        "--include-ext",
        nargs="+",
        default=None,
        help="File extensions to include (e.g., .java .kt)",
    )

    parser.add_argument(
        "--exclude-dir",
        nargs="+",
        default=None,
        help="Directory names to exclude",
    )

    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum directory depth to scan",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of threads reading and parsing files",
    )

    parser.add_argument(
        "--skip-gradle-check",
        action="store_true",
        help="Scan the directory even if it has no Gradle build file",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress information",
    )

    return parser.parse_args(args)


def is_gradle_project(root: Path) -> bool:
    """Check whether the directory holds a Gradle build or settings file."""
    return any((root / name).is_file() for name in GRADLE_MARKERS)


def build_config(parsed, root: Path) -> ScanConfig:
    """
    Combine the YAML config file with command line flags.

    Raises:
        ConfigError: If the config file is missing or invalid.
    """
    if parsed.config:
        config_path = Path(parsed.config)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config(root)
    config = load_config(config_path) if config_path else ScanConfig()

    if parsed.workers is not None and parsed.workers < 1:
        raise ConfigError("--workers must be at least 1")

    return config.merged(
        extensions=normalize_extensions(parsed.include_ext) if parsed.include_ext else None,
        exclude_dirs=set(parsed.exclude_dir) | DEFAULT_EXCLUDE_DIRS if parsed.exclude_dir else None,
        max_depth=parsed.max_depth,
        workers=parsed.workers,
    )


def main(args=None):
    """Main entry point."""
    parsed = parse_args(args)

    logging.basicConfig(
        level=logging.INFO if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # Resolve paths
    root = Path(parsed.root).resolve()
    if not root.is_dir():
        print(f"Error: '{parsed.root}' is not a directory", file=sys.stderr)
        return 1

    if not parsed.skip_gradle_check and not is_gradle_project(root):
        print("Error: This is not a gradle folder", file=sys.stderr)
        return 1

    # Build the graph
    try:
        config = build_config(parsed, root)
        graph = find_components(root, config)
    except DaggerMapError as e:
        print(f"Error scanning project: {e}", file=sys.stderr)
        return 1

    if not graph.components:
        print(f"Error: {NO_COMPONENTS_MESSAGE}", file=sys.stderr)
        return 1

    # Generate output
    if parsed.format == "json":
        output = to_json(graph)
        file_name = JSON_FILE_NAME
    else:
        kind = CHART_FORMATS[parsed.format]
        output = to_html(graph, kind)
        file_name = OUTPUT_FILE_NAMES[kind]

    if parsed.stdout:
        print(output)
        return 0

    # Write output
    output_path = Path(parsed.output_dir) / file_name
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output, encoding="utf-8")
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1
    print(f"Output written to: {output_path}", file=sys.stderr)

    if parsed.open:
        webbrowser.open(output_path.resolve().as_uri())

    return 0


if __name__ == "__main__":
    sys.exit(main())
