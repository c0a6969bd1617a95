"""Graph data model for storing dependency-injection relationships."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple


class TypeKey(NamedTuple):
    """Canonical identity of an injectable type: its name plus an optional qualifier."""

    name: str
    qualifier: Optional[str] = None

    @property
    def label(self) -> str:
        if self.qualifier:
            return f"@{self.qualifier} {self.name}"
        return self.name


class DeclarationKind(str, Enum):
    COMPONENT = "component"
    MODULE = "module"
    BINDING = "binding"
    INJECTION_POINT = "injection_point"


class NodeKind(str, Enum):
    COMPONENT = "component"
    MODULE = "module"
    BINDING = "binding"
    CONSUMER = "consumer"
    UNRESOLVED = "unresolved"


class EdgeKind(str, Enum):
    PROVIDES = "provides"
    INJECTS = "injects"
    INSTALLS = "installs"


# When several declarations land on the same node, the earliest kind wins
NODE_KIND_PRECEDENCE = (
    NodeKind.COMPONENT,
    NodeKind.MODULE,
    NodeKind.BINDING,
    NodeKind.CONSUMER,
    NodeKind.UNRESOLVED,
)


@dataclass(frozen=True)
class DeclarationRecord:
    """
    One declaration extracted from a source file.

    For components and modules ``references`` are the installed or included
    modules and ``components`` the component dependencies or subcomponents
    they name; for bindings and injection points ``references`` are the
    required types.
    """

    kind: DeclarationKind
    key: TypeKey
    file_path: Path
    line: int = 0
    position: int = 0
    references: Tuple[TypeKey, ...] = ()
    scope: Optional[str] = None
    enclosing: Optional[str] = None
    installed_in: Tuple[str, ...] = ()
    components: Tuple[str, ...] = ()
    injectable: bool = False
    multibinding: bool = False

    @property
    def type_name(self) -> str:
        return self.key.name

    @property
    def qualifier(self) -> Optional[str]:
        return self.key.qualifier


@dataclass(frozen=True)
class GraphNode:
    key: TypeKey
    kind: NodeKind
    files: Tuple[str, ...] = ()
    module: Optional[str] = None
    scope: Optional[str] = None

    @property
    def id(self) -> str:
        return self.key.label


@dataclass(frozen=True)
class GraphEdge:
    """A directed edge from provider to consumer, or from installer to installed module."""

    source: TypeKey
    target: TypeKey
    kind: EdgeKind
    unresolved: bool = False
    ambiguous: bool = False
    origin: Optional[str] = None


@dataclass(frozen=True)
class Ambiguity:
    key: TypeKey
    chosen: str
    candidates: Tuple[str, ...] = field(default_factory=tuple)


class DependencyGraph:
    """
    An immutable directed graph of components, modules and injectable types.

    Edges point from provider to consumer (``provides``/``injects``) or from a
    component or module to the module it installs (``installs``). Cycles are
    allowed. Every edge endpoint must be a node of the graph.
    """

    def __init__(
        self,
        nodes: Iterable[GraphNode] = (),
        edges: Iterable[GraphEdge] = (),
        ambiguities: Iterable[Ambiguity] = (),
        diagnostics: Iterable = (),
    ):
        self._nodes: Dict[TypeKey, GraphNode] = {}
        for node in sorted(nodes, key=lambda n: n.id):
            if node.key in self._nodes:
                raise ValueError(f"Duplicate node identity: {node.id}")
            self._nodes[node.key] = node

        unique: Dict[Tuple[TypeKey, TypeKey, EdgeKind], GraphEdge] = {}
        for edge in edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._nodes:
                    raise ValueError(
                        f"Edge {edge.source.label} -> {edge.target.label} "
                        f"references unknown node {endpoint.label}"
                    )
            unique.setdefault((edge.source, edge.target, edge.kind), edge)
        self._edges: Tuple[GraphEdge, ...] = tuple(
            sorted(unique.values(), key=lambda e: (e.source.label, e.target.label, e.kind.value))
        )

        self._targets: Dict[TypeKey, Set[TypeKey]] = {}
        for edge in self._edges:
            self._targets.setdefault(edge.source, set()).add(edge.target)

        self._ambiguities: Tuple[Ambiguity, ...] = tuple(ambiguities)
        self._diagnostics: Tuple = tuple(diagnostics)

    @property
    def nodes(self) -> Tuple[GraphNode, ...]:
        """Return all nodes, sorted by identity."""
        return tuple(self._nodes.values())

    @property
    def edges(self) -> Tuple[GraphEdge, ...]:
        """Return all edges, sorted by (source, target, kind)."""
        return self._edges

    @property
    def components(self) -> Tuple[GraphNode, ...]:
        """Return the declared components."""
        return tuple(n for n in self._nodes.values() if n.kind == NodeKind.COMPONENT and n.files)

    @property
    def ambiguities(self) -> Tuple[Ambiguity, ...]:
        return self._ambiguities

    @property
    def diagnostics(self) -> Tuple:
        return self._diagnostics

    def get_node(self, key: TypeKey) -> Optional[GraphNode]:
        return self._nodes.get(key)

    def get_targets(self, key: TypeKey) -> Set[TypeKey]:
        """Get all nodes the given node has an edge to."""
        return self._targets.get(key, set()).copy()

    def out_degree(self, key: TypeKey) -> int:
        """Number of distinct nodes reachable through one outgoing edge."""
        return len(self._targets.get(key, ()))

    def iter_edges(self, kinds: Optional[Iterable[EdgeKind]] = None) -> Iterator[GraphEdge]:
        """Iterate over edges, optionally restricted to some edge kinds."""
        wanted = set(kinds) if kinds is not None else None
        for edge in self._edges:
            if wanted is None or edge.kind in wanted:
                yield edge

    def get_roots(self, kinds: Iterable[EdgeKind] = (EdgeKind.INJECTS, EdgeKind.PROVIDES)) -> List[TypeKey]:
        """
        Get nodes with no incoming edge of the given kinds, sorted by identity.

        Installs edges are ignored by default so that installed modules can
        still start a dependency tree.
        """
        targeted = {edge.target for edge in self.iter_edges(kinds)}
        return [key for key in self._nodes if key not in targeted]

    def __len__(self) -> int:
        """Return the number of nodes in the graph."""
        return len(self._nodes)

    def __contains__(self, key: TypeKey) -> bool:
        return key in self._nodes

    def __repr__(self) -> str:
        unresolved = sum(1 for e in self._edges if e.unresolved)
        return (
            f"DependencyGraph(nodes={len(self._nodes)}, edges={len(self._edges)}, "
            f"unresolved={unresolved}, ambiguous={len(self._ambiguities)})"
        )
