"""Binding resolution: mapping a required type to the declaration that provides it."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from graph.model import DeclarationRecord, TypeKey


# Framework wrappers that request the wrapped binding rather than a binding of their own
FRAMEWORK_WRAPPERS = {"Provider", "Lazy", "Producer", "Produced"}

_WRAPPED_RE = re.compile(r"^(?P<wrapper>\w+)<(?P<inner>.+)>$")
_WILDCARD_RE = re.compile(r"^(?:\? extends |out )")


def binding_key(key: TypeKey) -> TypeKey:
    """
    Normalize a requested key to the key of the binding that satisfies it.

    ``Provider<Foo>``, ``Lazy<Foo>`` and Kotlin ``Foo?`` all request ``Foo``.
    The qualifier is kept as is.

    Args:
        key: The requested type and qualifier.

    Returns:
        The key to look up among provided bindings.
    """
    name = key.name.strip()
    while True:
        if name.endswith("?"):
            name = name[:-1]
            continue
        match = _WRAPPED_RE.match(name)
        if match and match.group("wrapper") in FRAMEWORK_WRAPPERS:
            name = _WILDCARD_RE.sub("", match.group("inner").strip())
            continue
        break
    return TypeKey(name, key.qualifier)


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one requirement."""

    requested: TypeKey
    provider: Optional[DeclarationRecord] = None
    candidates: Tuple[DeclarationRecord, ...] = ()

    @property
    def unresolved(self) -> bool:
        return self.provider is None

    @property
    def ambiguous(self) -> bool:
        contributions = [c for c in self.candidates if not c.multibinding]
        return len(contributions) > 1


class BindingIndex:
    """
    Index of provided keys built from declaration records.

    Records must be added in sorted scan order; the first candidate for a key
    is the one chosen when the key is ambiguous.
    """

    def __init__(self):
        self._providers: Dict[TypeKey, List[DeclarationRecord]] = {}

    def add(self, key: TypeKey, record: DeclarationRecord) -> None:
        self._providers.setdefault(binding_key(key), []).append(record)

    def resolve(self, requested: TypeKey) -> Resolution:
        """
        Resolve a requirement to its provider.

        A qualifier present on only one side never matches, so an unqualified
        ``Foo`` is not satisfied by ``@Named("x") Foo`` and vice versa.

        Args:
            requested: The required type and qualifier.

        Returns:
            Resolution with the chosen provider (None when unresolved) and all candidates.
        """
        candidates = tuple(self._providers.get(binding_key(requested), ()))
        if not candidates:
            return Resolution(requested)
        return Resolution(requested, provider=candidates[0], candidates=candidates)

    def __contains__(self, key: TypeKey) -> bool:
        return binding_key(key) in self._providers

    def __len__(self) -> int:
        return len(self._providers)
