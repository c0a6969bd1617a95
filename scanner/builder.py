"""Graph builder that orchestrates scanning, parsing and graph construction."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from graph.model import (
    NODE_KIND_PRECEDENCE,
    Ambiguity,
    DeclarationKind,
    DeclarationRecord,
    DependencyGraph,
    EdgeKind,
    GraphEdge,
    GraphNode,
    NodeKind,
    TypeKey,
)
from .config import ScanConfig
from .discovery import SourceFile, get_relative_path, read_source, scan
from .errors import Diagnostic, DiagnosticKind, FileReadFailure
from .parser import collect_annotation_types, parse_source
from .resolver import BindingIndex, Resolution, binding_key

logger = logging.getLogger(__name__)

UNRESOLVED_PREFIX = "unresolved:"


def unresolved_key(requested: TypeKey) -> TypeKey:
    """Key of the synthetic node standing in for a missing binding."""
    return TypeKey(UNRESOLVED_PREFIX + binding_key(requested).name, requested.qualifier)


class _NodeDraft:
    """Mutable accumulator for one node while records are merged."""

    def __init__(self, key: TypeKey, kind: NodeKind):
        self.key = key
        self.kind = kind
        self.files: Set[str] = set()
        self.module: Optional[str] = None
        self.scope: Optional[str] = None

    def merge(self, kind: NodeKind, file: Optional[str] = None,
              module: Optional[str] = None, scope: Optional[str] = None) -> None:
        if NODE_KIND_PRECEDENCE.index(kind) < NODE_KIND_PRECEDENCE.index(self.kind):
            self.kind = kind
        if file:
            self.files.add(file)
        self.module = self.module or module
        self.scope = self.scope or scope

    def freeze(self) -> GraphNode:
        return GraphNode(
            key=self.key,
            kind=self.kind,
            files=tuple(sorted(self.files)),
            module=self.module,
            scope=self.scope,
        )


class _GraphAssembly:
    """Single-threaded merge of declaration records into one graph."""

    def __init__(self, records: Iterable[DeclarationRecord], root: Optional[Path] = None):
        self.root = root
        self.records = sorted(records, key=lambda r: (r.file_path.parts, r.position))
        self.nodes: Dict[TypeKey, _NodeDraft] = {}
        self.edges: List[GraphEdge] = []
        self.ambiguities: Dict[TypeKey, Ambiguity] = {}
        self.diagnostics: List[Diagnostic] = []
        self.index = BindingIndex()
        self.module_names = {
            r.type_name for r in self.records if r.kind == DeclarationKind.MODULE
        }

    def _file(self, record: DeclarationRecord) -> str:
        if self.root is None:
            return record.file_path.as_posix()
        return get_relative_path(record.file_path, self.root).as_posix()

    def _site(self, record: DeclarationRecord) -> str:
        return f"{self._file(record)}:{record.line}"

    def _node(self, key: TypeKey, kind: NodeKind, record: Optional[DeclarationRecord] = None,
              module: Optional[str] = None, scope: Optional[str] = None) -> None:
        draft = self.nodes.get(key)
        if draft is None:
            draft = self.nodes[key] = _NodeDraft(key, kind)
        draft.merge(kind, self._file(record) if record else None, module, scope)

    # ------------------------------------------------------------------
    # node pass

    def add_nodes(self) -> None:
        for record in self.records:
            if record.kind == DeclarationKind.COMPONENT:
                self._node(record.key, NodeKind.COMPONENT, record, scope=record.scope)
            elif record.kind == DeclarationKind.MODULE:
                self._node(record.key, NodeKind.MODULE, record)
            elif record.kind == DeclarationKind.BINDING:
                module = record.enclosing if record.enclosing in self.module_names else None
                self._node(record.key, NodeKind.BINDING, record, module=module, scope=record.scope)
                self.index.add(record.key, record)
            elif record.injectable:
                self._node(record.key, NodeKind.BINDING, record, scope=record.scope)
                self.index.add(record.key, record)
            else:
                self._node(record.key, NodeKind.CONSUMER, record)

    # ------------------------------------------------------------------
    # edge pass

    def _installs(self, source: TypeKey, target: TypeKey, target_kind: NodeKind,
                  record: DeclarationRecord) -> None:
        self._node(target, target_kind)
        self.edges.append(GraphEdge(source, target, EdgeKind.INSTALLS, origin=self._site(record)))

    def _requirement(self, record: DeclarationRecord, requested: TypeKey, kind: EdgeKind) -> None:
        resolution = self.index.resolve(requested)
        site = self._site(record)
        if resolution.unresolved:
            missing = unresolved_key(requested)
            self._node(missing, NodeKind.UNRESOLVED)
            self.edges.append(GraphEdge(record.key, missing, kind, unresolved=True, origin=site))
            message = f"No binding for {requested.label} required by {record.key.label}"
            logger.warning("%s: %s", site, message)
            self.diagnostics.append(Diagnostic(
                DiagnosticKind.UNRESOLVED, message, path=self._file(record), line=record.line,
            ))
            return

        provider = resolution.provider
        ambiguous = resolution.ambiguous
        if ambiguous:
            self._ambiguity(resolution)
        self.edges.append(GraphEdge(provider.key, record.key, kind, ambiguous=ambiguous, origin=site))

    def _ambiguity(self, resolution: Resolution) -> None:
        key = binding_key(resolution.provider.key)
        if key in self.ambiguities:
            return
        chosen = self._site(resolution.provider)
        candidates = tuple(self._site(c) for c in resolution.candidates)
        self.ambiguities[key] = Ambiguity(key, chosen, candidates)
        message = f"{key.label} is bound {len(candidates)} times; using {chosen}"
        logger.warning("%s", message)
        self.diagnostics.append(Diagnostic(DiagnosticKind.AMBIGUOUS, message))

    def add_edges(self) -> None:
        for record in self.records:
            if record.kind in (DeclarationKind.COMPONENT, DeclarationKind.MODULE):
                for ref in record.references:
                    self._installs(record.key, ref, NodeKind.MODULE, record)
                for name in record.components:
                    self._installs(record.key, TypeKey(name), NodeKind.COMPONENT, record)
                for component in record.installed_in:
                    self._node(TypeKey(component), NodeKind.COMPONENT)
                    self.edges.append(GraphEdge(
                        TypeKey(component), record.key, EdgeKind.INSTALLS, origin=self._site(record),
                    ))
            elif record.kind == DeclarationKind.BINDING:
                for requested in record.references:
                    self._requirement(record, requested, EdgeKind.PROVIDES)
            else:
                for requested in record.references:
                    self._requirement(record, requested, EdgeKind.INJECTS)

    def _relative(self, diagnostic: Diagnostic) -> Diagnostic:
        if self.root is None or diagnostic.path is None:
            return diagnostic
        return replace(diagnostic, path=get_relative_path(Path(diagnostic.path), self.root).as_posix())

    def build(self, diagnostics: Iterable[Diagnostic] = ()) -> DependencyGraph:
        self.add_nodes()
        self.add_edges()
        return DependencyGraph(
            nodes=(draft.freeze() for draft in self.nodes.values()),
            edges=self.edges,
            ambiguities=sorted(self.ambiguities.values(), key=lambda a: a.key.label),
            diagnostics=[self._relative(d) for d in diagnostics] + self.diagnostics,
        )


def build_graph(
    records: Iterable[DeclarationRecord],
    diagnostics: Iterable[Diagnostic] = (),
    root: Optional[Path] = None,
) -> DependencyGraph:
    """
    Merge declaration records from any number of files into one graph.

    Records are sorted by file path and declaration order first, so the
    result is the same whatever order the files were parsed in. Missing
    bindings become ``unresolved:<T>`` nodes and duplicate bindings resolve
    to the first declaration in that order.

    Args:
        records: Declaration records from every parsed file.
        diagnostics: Diagnostics collected while scanning and parsing.
        root: Project root; node files are reported relative to it.

    Returns:
        The immutable DependencyGraph.
    """
    return _GraphAssembly(records, root=root).build(diagnostics)


def _read(path: Path) -> Union[SourceFile, Diagnostic]:
    try:
        return read_source(path)
    except FileReadFailure as e:
        logger.warning("%s", e)
        return Diagnostic(DiagnosticKind.FILE_READ, e.reason, path=str(path))


def find_components(root: Path, config: Optional[ScanConfig] = None) -> DependencyGraph:
    """
    Scan a project and build its dependency graph.

    Files are read and parsed on a bounded thread pool; results are gathered
    in path order and merged on the calling thread, so the graph does not
    depend on the number of workers.

    Args:
        root: Project root directory.
        config: Scan options. Defaults to ScanConfig().

    Returns:
        DependencyGraph; a graph with no components is a valid result.

    Raises:
        ScanFailure: If the root does not exist or cannot be read.
    """
    config = config or ScanConfig()
    source_scan = scan(
        Path(root),
        include_ext=config.extensions,
        exclude_dirs=config.exclude_dirs,
        max_depth=config.max_depth,
    )
    paths = list(source_scan.paths())
    diagnostics: List[Diagnostic] = list(source_scan.warnings)
    logger.debug("Found %d source files under %s", len(paths), source_scan.root)

    with ThreadPoolExecutor(max_workers=max(1, config.workers)) as executor:
        sources: List[SourceFile] = []
        for loaded in executor.map(_read, paths):
            if isinstance(loaded, Diagnostic):
                diagnostics.append(loaded)
            else:
                sources.append(loaded)

        qualifiers = set(config.qualifiers)
        scopes = set(config.scopes)
        for declared_qualifiers, declared_scopes in executor.map(collect_annotation_types, sources):
            qualifiers |= declared_qualifiers
            scopes |= declared_scopes

        parse = partial(parse_source, qualifiers=qualifiers, scopes=scopes)
        results = list(executor.map(parse, sources))

    records: List[DeclarationRecord] = []
    for result in results:
        records.extend(result.records)
        diagnostics.extend(result.diagnostics)
    logger.debug("Parsed %d declarations from %d files", len(records), len(sources))

    graph = build_graph(records, diagnostics, root=source_scan.root)
    logger.info("Built %r", graph)
    return graph


async def find_components_async(root: Path, config: Optional[ScanConfig] = None) -> DependencyGraph:
    """Run find_components on a worker thread."""
    return await asyncio.to_thread(find_components, root, config)
