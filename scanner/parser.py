"""Parsers for extracting dependency-injection declarations from Java and Kotlin sources."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from graph.model import DeclarationKind, DeclarationRecord, TypeKey
from .discovery import SourceFile, SourceKind
from .errors import Diagnostic, DiagnosticKind, ParseFailure

logger = logging.getLogger(__name__)


COMPONENT_MARKERS = {"Component", "Subcomponent", "ProductionComponent", "ProductionSubcomponent"}
MODULE_MARKERS = {"Module", "ProducerModule"}
BINDING_MARKERS = {"Provides", "Produces", "Binds", "BindsOptionalOf"}
INJECT_MARKERS = {"Inject", "AssistedInject"}
BINDS_INSTANCE = "BindsInstance"
MULTIBINDING_MARKERS = {"IntoSet", "IntoMap", "ElementsIntoSet"}
MARKERS = COMPONENT_MARKERS | MODULE_MARKERS | BINDING_MARKERS | INJECT_MARKERS | {BINDS_INSTANCE}

# Annotation attributes whose class literals name installed modules or other components
MODULE_REFERENCE_ATTRS = {"modules", "includes"}
COMPONENT_REFERENCE_ATTRS = {"dependencies", "subcomponents"}

DEFAULT_QUALIFIERS = {"Named"}
DEFAULT_SCOPES = {"Singleton", "Reusable"}
SCOPE_SUFFIXES = ("Scope", "Scoped")

CLASS_KEYWORDS = {"class", "interface", "object", "enum", "record"}
MODIFIERS = {
    "public", "protected", "private", "internal",
    "static", "final", "abstract", "open", "override", "default",
    "lateinit", "const", "suspend", "inline", "external", "operator", "infix", "tailrec",
    "data", "sealed", "inner", "value", "annotation", "companion",
    "synchronized", "transient", "volatile", "native", "strictfp",
    "expect", "actual", "vararg", "noinline", "crossinline",
}
RESERVED = CLASS_KEYWORDS | MODIFIERS | {"fun", "val", "var", "constructor", "extends", "implements"}
USE_SITE_TARGETS = {"field", "get", "set", "param", "property", "setparam", "delegate", "receiver"}
BUILDER_TYPES = {"Builder", "Factory"}
VOID_TYPES = {"void", "Unit"}

_TOKEN_RE = re.compile(
    "|".join([
        r"(?P<comment>//[^\n]*|/\*.*?(?:\*/|\Z))",
        r'(?P<string>"""(?:.*?)(?:"""|\Z)|"(?:\\.|[^"\\\n])*"?|\'(?:\\.|[^\'\\\n])*\'?)',
        r"(?P<ident>[A-Za-z_$][\w$]*)",
        r"(?P<number>\d[\w.]*)",
        r"(?P<op>::|->|\.\.\.|[^\s\w])",
        r"(?P<space>\s+)",
    ]),
    re.DOTALL,
)


class Token(NamedTuple):
    kind: str
    text: str
    line: int
    offset: int


@dataclass(frozen=True)
class Annotation:
    name: str
    args: Tuple[Token, ...] = ()
    line: int = 0

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class ParseResult:
    records: Tuple[DeclarationRecord, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()


@dataclass
class _ClassInfo:
    name: str
    keyword_index: int
    outer: Optional["_ClassInfo"] = None
    companion: bool = False
    body_start: int = -1
    body_end: int = -1
    scope: Optional[str] = None
    is_component: bool = False

    @property
    def module_name(self) -> str:
        # Members of a Kotlin companion object belong to the outer class
        if self.companion and self.outer is not None:
            return self.outer.name
        return self.name


@dataclass
class _Param:
    type_name: str
    qualifier: Optional[str] = None
    annotations: Set[str] = field(default_factory=set)


@dataclass
class _Member:
    kind: str
    name: str
    type_name: Optional[str]
    params: List[_Param]
    end: int
    line: int


def _nested_comment_end(text: str, start: int) -> int:
    """Offset just past a Kotlin block comment; ``/* */`` pairs nest inside it."""
    depth = 0
    i = start
    while i < len(text):
        pair = text[i:i + 2]
        if pair == "/*":
            depth += 1
            i += 2
        elif pair == "*/":
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return len(text)


def tokenize(text: str, nested_comments: bool = False) -> List[Token]:
    """
    Split Java or Kotlin source into tokens.

    Comments are dropped and string or char literals become single ``string``
    tokens, so annotation text inside them is never seen as an annotation.
    With ``nested_comments`` (Kotlin) a block comment ends at its matching
    ``*/`` rather than the first one.
    """
    tokens: List[Token] = []
    line = 1
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            pos += 1
            continue
        kind = match.lastgroup
        end = match.end()
        if kind == "comment" and nested_comments and text.startswith("/*", pos):
            end = _nested_comment_end(text, pos)
        value = text[pos:end]
        if kind not in ("comment", "space"):
            tokens.append(Token(kind, value, line, pos))
        line += value.count("\n")
        pos = end
    return tokens


def _render(tokens: Iterable[Token]) -> str:
    """Render type or argument tokens as compact source text without package prefixes."""
    tokens = list(tokens)
    out: List[str] = []
    prev: Optional[Token] = None
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if (
            tok.kind == "ident"
            and tok.text[:1].islower()
            and i + 2 < len(tokens)
            and tokens[i + 1].text == "."
            and tokens[i + 2].kind == "ident"
        ):
            i += 2
            continue
        if prev is not None:
            words = ("ident", "number", "string")
            if (
                (prev.kind in words and tok.kind in words)
                or (prev.text == "?" and tok.kind == "ident")
                or prev.text in (",", "->", "=")
                or tok.text in ("->", "=")
            ):
                out.append(" ")
        out.append(tok.text)
        prev = tok
        i += 1
    return "".join(out)


class _Parser:
    """Single-file declaration extractor working on the token stream."""

    def __init__(
        self,
        source: SourceFile,
        qualifiers: Optional[Iterable[str]] = None,
        scopes: Optional[Iterable[str]] = None,
    ):
        self.source = source
        self.kotlin = source.kind == SourceKind.KOTLIN
        self.tokens = tokenize(source.text, nested_comments=self.kotlin)
        self.qualifiers = DEFAULT_QUALIFIERS | set(qualifiers or ())
        self.scopes = DEFAULT_SCOPES | set(scopes or ())
        self.records: List[DeclarationRecord] = []
        self.diagnostics: List[Diagnostic] = []
        self.declared_qualifiers: Set[str] = set()
        self.declared_scopes: Set[str] = set()

        last_line = self.tokens[-1].line if self.tokens else 1
        self._eof = Token("eof", "", last_line, len(source.text))
        self._classes: Dict[int, _ClassInfo] = {}
        self._direct: List[Optional[_ClassInfo]] = []
        self._enclosing: List[Optional[_ClassInfo]] = []
        self._header: List[Optional[_ClassInfo]] = []
        self._index_structure()

    # ------------------------------------------------------------------
    # token helpers

    def _tok(self, i: int) -> Token:
        if 0 <= i < len(self.tokens):
            return self.tokens[i]
        return self._eof

    def _text(self, i: int) -> str:
        return self._tok(i).text

    def _error(self, message: str, i: int) -> ParseFailure:
        return ParseFailure(message, line=self._tok(i).line)

    def _is_declaration_keyword(self, i: int) -> bool:
        tok = self._tok(i)
        if tok.kind != "ident" or self._text(i - 1) in (".", "::"):
            return False
        return tok.text in ("class", "interface", "fun")

    def _is_annotation_start(self, i: int) -> bool:
        if self._text(i) != "@":
            return False
        nxt = self._tok(i + 1)
        if nxt.kind != "ident" or nxt.text == "interface":
            return False
        prev = self._tok(i - 1)
        # Kotlin labels such as this@Outer or return@forEach
        if prev.kind == "ident" and prev.offset + len(prev.text) == self._tok(i).offset:
            return False
        return True

    def _balanced_end(self, i: int, open_: str, close: str) -> int:
        """Return the index of the bracket closing the one at ``i``."""
        depth = 0
        j = i
        while j < len(self.tokens):
            text = self.tokens[j].text
            if text == open_:
                depth += 1
            elif text == close:
                depth -= 1
                if depth == 0:
                    return j
            elif text == ";" or self._is_declaration_keyword(j):
                raise self._error(f"Unterminated '{open_}' before '{text}'", i)
            j += 1
        raise self._error(f"Unterminated '{open_}'", i)

    # ------------------------------------------------------------------
    # structure

    def _class_name_at(self, i: int) -> Optional[Tuple[str, bool]]:
        keyword = self._text(i)
        nxt = self._tok(i + 1)
        if keyword == "enum" and nxt.text == "class":
            return None
        if keyword == "object" and self._text(i - 1) == "companion":
            if nxt.kind == "ident" and nxt.text not in RESERVED:
                return nxt.text, True
            return "Companion", True
        if nxt.kind != "ident" or nxt.text in RESERVED:
            return None
        if keyword == "record" and self._text(i + 2) not in ("(", "<"):
            return None
        return nxt.text, False

    def _index_structure(self) -> None:
        """Match braces to class bodies so every token knows its enclosing class."""
        stack: List[Optional[_ClassInfo]] = []
        enclosing: List[Optional[_ClassInfo]] = []
        pending: Optional[_ClassInfo] = None
        paren = 0

        for idx, tok in enumerate(self.tokens):
            self._direct.append(stack[-1] if stack else None)
            self._enclosing.append(enclosing[-1] if enclosing else None)
            self._header.append(pending)
            text = tok.text

            if tok.kind == "ident":
                if text in CLASS_KEYWORDS and self._text(idx - 1) not in (".", "::"):
                    found = self._class_name_at(idx)
                    if found is not None:
                        name, companion = found
                        pending = _ClassInfo(
                            name=name,
                            keyword_index=idx,
                            outer=enclosing[-1] if enclosing else None,
                            companion=companion,
                        )
                        self._classes[idx] = pending
                        paren = 0
                elif pending is not None and paren == 0 and text in ("fun", "val", "var", "init"):
                    pending = None
                continue

            if text in ("(", "["):
                paren += 1
            elif text in (")", "]"):
                paren = max(paren - 1, 0)
            elif text == "{":
                if pending is not None and paren == 0:
                    pending.body_start = idx
                    stack.append(pending)
                    enclosing.append(pending)
                    pending = None
                else:
                    stack.append(None)
                    enclosing.append(enclosing[-1] if enclosing else None)
            elif text == "}":
                if stack:
                    info = stack.pop()
                    enclosing.pop()
                    if info is not None:
                        info.body_end = idx
                pending = None
            elif text in (";", "=") and paren == 0:
                pending = None

    def _class_at(self, i: int) -> Optional[_ClassInfo]:
        text = self._text(i)
        nxt = self._text(i + 1)
        if (text == "@" and nxt == "interface") or (text in ("enum", "fun") and nxt in ("class", "interface")):
            return self._classes.get(i + 1)
        return self._classes.get(i)

    def _owner(self, i: int) -> Optional[_ClassInfo]:
        if i < len(self.tokens):
            return self._header[i] or self._enclosing[i]
        return None

    # ------------------------------------------------------------------
    # annotations

    def _read_annotation(self, i: int) -> Tuple[Annotation, int]:
        line = self._tok(i).line
        j = i + 1
        parts = [self._text(j)]
        if self._text(j + 1) == ":" and parts[0] in USE_SITE_TARGETS and self._tok(j + 2).kind == "ident":
            j += 2
            parts = [self._text(j)]
        while self._text(j + 1) == "." and self._tok(j + 2).kind == "ident":
            j += 2
            parts.append(self._text(j))
        j += 1
        args: Tuple[Token, ...] = ()
        if self._text(j) == "(":
            end = self._balanced_end(j, "(", ")")
            args = tuple(self.tokens[j + 1:end])
            j = end + 1
        return Annotation(".".join(parts), args, line), j

    def _read_annotations(self, i: int) -> Tuple[List[Annotation], int]:
        annotations: List[Annotation] = []
        while self._is_annotation_start(i):
            annotation, i = self._read_annotation(i)
            annotations.append(annotation)
        return annotations, i

    def _skip_modifiers(self, i: int) -> Tuple[List[Annotation], int]:
        """Skip modifiers and collect annotations interleaved with them."""
        annotations: List[Annotation] = []
        while True:
            if self._is_annotation_start(i):
                more, i = self._read_annotations(i)
                annotations.extend(more)
            elif self._text(i) in MODIFIERS and (self._tok(i + 1).kind == "ident" or self._text(i + 1) == "@"):
                i += 1
            else:
                return annotations, i

    def _qualifier_of(self, annotations: Iterable[Annotation]) -> Optional[str]:
        for annotation in annotations:
            if annotation.simple_name in self.qualifiers:
                args = list(annotation.args)
                if len(args) > 2 and args[0].text == "value" and args[1].text == "=":
                    args = args[2:]
                if args:
                    return f"{annotation.simple_name}({_render(args)})"
                return annotation.simple_name
        return None

    def _scope_of(self, annotations: Iterable[Annotation]) -> Optional[str]:
        for annotation in annotations:
            name = annotation.simple_name
            if name in self.scopes or (name.endswith(SCOPE_SUFFIXES) and name not in SCOPE_SUFFIXES):
                return name
        return None

    @staticmethod
    def _class_refs(annotation: Annotation, attrs: Optional[Set[str]] = None) -> List[str]:
        """Collect ``X.class`` / ``X::class`` literals, optionally only under some attributes."""
        args = annotation.args
        refs: List[str] = []
        current: Optional[str] = None
        depth = 0
        for idx, tok in enumerate(args):
            if tok.text in ("(", "[", "{"):
                depth += 1
            elif tok.text in (")", "]", "}"):
                depth -= 1
            elif depth == 0 and tok.kind == "ident" and idx + 1 < len(args) and args[idx + 1].text == "=":
                current = tok.text
            elif (
                tok.text == "class"
                and idx >= 2
                and args[idx - 1].text in (".", "::")
                and args[idx - 2].kind == "ident"
            ):
                if attrs is None or current in attrs:
                    refs.append(args[idx - 2].text)
        return refs

    # ------------------------------------------------------------------
    # types and members

    def _read_type(self, i: int) -> Tuple[str, int]:
        start = i
        if self._text(i) == "(":
            i = self._balanced_end(i, "(", ")") + 1
            if self._text(i) != "->":
                raise self._error("Expected a type", start)
            _, i = self._read_type(i + 1)
            return _render(self.tokens[start:i]), i
        if self._tok(i).kind != "ident" or self._text(i) in RESERVED:
            raise self._error(f"Expected a type, found '{self._text(i)}'", i)
        while self._text(i + 1) == "." and self._tok(i + 2).kind == "ident":
            i += 2
        i += 1
        if self._text(i) == "<":
            i = self._balanced_end(i, "<", ">") + 1
        while True:
            if self._text(i) == "[" and self._text(i + 1) == "]":
                i += 2
            elif self._text(i) in ("?", "..."):
                i += 1
            else:
                break
        return _render(self.tokens[start:i]), i

    def _read_params(self, i: int) -> Tuple[List[_Param], int]:
        """Parse the parameter list opening at ``i``; return params and the closing index."""
        close = self._balanced_end(i, "(", ")")
        params: List[_Param] = []
        seg_start = i + 1
        depth = 0
        for j in range(i + 1, close + 1):
            text = self._text(j)
            if j == close or (text == "," and depth == 0):
                if j > seg_start:
                    params.append(self._read_param(seg_start, j))
                seg_start = j + 1
            elif text in ("(", "<", "[", "{"):
                depth += 1
            elif text in (")", ">", "]", "}"):
                depth -= 1
        return params, close

    def _read_param(self, start: int, end: int) -> _Param:
        annotations, i = self._skip_modifiers(start)
        if self._text(i) in ("val", "var"):
            i += 1
        if self.kotlin:
            if self._tok(i).kind != "ident" or self._text(i + 1) != ":":
                raise self._error("Expected 'name: Type' parameter", i)
            type_name, i = self._read_type(i + 2)
        else:
            type_name, i = self._read_type(i)
        if i > end:
            raise self._error("Malformed parameter", start)
        return _Param(
            type_name=type_name,
            qualifier=self._qualifier_of(annotations),
            annotations={a.simple_name for a in annotations},
        )

    def _read_member(self, i: int) -> _Member:
        """Parse the method, constructor, field or parameter declared at ``i``."""
        tok = self._tok(i)
        if self.kotlin:
            return self._read_kotlin_member(i)

        j = i
        if self._text(j) == "<":
            j = self._balanced_end(j, "<", ">") + 1
        if self._tok(j).kind == "ident" and self._text(j + 1) == "(":
            params, close = self._read_params(j + 1)
            return _Member("constructor", self._text(j), None, params, close + 1, self._tok(j).line)
        type_name, j = self._read_type(j)
        name_tok = self._tok(j)
        if name_tok.kind != "ident" or name_tok.text in RESERVED:
            raise self._error(f"Expected a declaration name after '{type_name}'", j)
        j += 1
        if self._text(j) == "(":
            params, close = self._read_params(j)
            return _Member("method", name_tok.text, type_name, params, close + 1, name_tok.line)
        if self._text(j) in ("=", ";", ",", ")"):
            return _Member("field", name_tok.text, type_name, [], j, name_tok.line)
        raise self._error(f"Unrecognized declaration '{tok.text}'", i)

    def _read_kotlin_member(self, i: int) -> _Member:
        text = self._text(i)
        if text == "fun":
            j = i + 1
            if self._text(j) == "<":
                j = self._balanced_end(j, "<", ">") + 1
            if self._tok(j).kind != "ident":
                raise self._error("Expected a function name", j)
            while self._text(j + 1) == "." and self._tok(j + 2).kind == "ident":
                j += 2
            name_tok = self._tok(j)
            if self._text(j + 1) != "(":
                raise self._error(f"Expected '(' after function {name_tok.text}", j)
            params, close = self._read_params(j + 1)
            j = close + 1
            type_name = None
            if self._text(j) == ":":
                type_name, j = self._read_type(j + 1)
            return _Member("method", name_tok.text, type_name, params, j, name_tok.line)
        if text in ("val", "var"):
            name_tok = self._tok(i + 1)
            if name_tok.kind != "ident":
                raise self._error("Expected a property name", i + 1)
            j = i + 2
            type_name = None
            if self._text(j) == ":":
                type_name, j = self._read_type(j + 1)
            return _Member("field", name_tok.text, type_name, [], j, name_tok.line)
        if text == "constructor":
            if self._text(i + 1) != "(":
                raise self._error("Expected '(' after constructor", i)
            params, close = self._read_params(i + 1)
            return _Member("constructor", "constructor", None, params, close + 1, self._tok(i).line)
        if self._tok(i).kind == "ident" and self._text(i + 1) == ":":
            type_name, j = self._read_type(i + 2)
            return _Member("field", text, type_name, [], j, self._tok(i).line)
        raise self._error(f"Unrecognized declaration '{text}'", i)

    # ------------------------------------------------------------------
    # declarations

    def _emit(self, kind: DeclarationKind, key: TypeKey, line: int, **attrs) -> None:
        self.records.append(DeclarationRecord(
            kind=kind,
            key=key,
            file_path=self.source.path,
            line=line,
            position=len(self.records),
            **attrs,
        ))

    def _declaration(self, annotations: List[Annotation], i: int) -> int:
        more, i = self._skip_modifiers(i)
        annotations = annotations + more
        names = {a.simple_name for a in annotations}

        info = self._class_at(i)
        if info is not None:
            return self._type_declaration(annotations, info)
        if not names & MARKERS:
            return i
        if self._tok(i).kind == "eof":
            raise self._error("Annotation is not followed by a declaration", i - 1)
        if names & (COMPONENT_MARKERS | MODULE_MARKERS) and not names & (BINDING_MARKERS | INJECT_MARKERS):
            raise self._error(f"@{sorted(names & MARKERS)[0]} must annotate a type declaration", i)

        member = self._read_member(i)
        if names & BINDING_MARKERS:
            self._binding(annotations, names, member, i)
        elif names & INJECT_MARKERS:
            self._injection(annotations, names, member, i)
        else:
            self._binds_instance(annotations, member, i)
        return member.end

    def _type_declaration(self, annotations: List[Annotation], info: _ClassInfo) -> int:
        line = self._tok(info.keyword_index + 1).line
        info.scope = self._scope_of(annotations)

        for annotation in annotations:
            if annotation.simple_name in COMPONENT_MARKERS:
                info.is_component = True
                refs = self._class_refs(annotation, MODULE_REFERENCE_ATTRS)
                self._emit(
                    DeclarationKind.COMPONENT,
                    TypeKey(info.name),
                    line,
                    references=tuple(TypeKey(ref) for ref in refs),
                    components=tuple(self._class_refs(annotation, COMPONENT_REFERENCE_ATTRS)),
                    scope=info.scope,
                )
                self._provisions(info)
                break
            if annotation.simple_name in MODULE_MARKERS:
                refs = self._class_refs(annotation, MODULE_REFERENCE_ATTRS)
                installed_in: List[str] = []
                for other in annotations:
                    if other.simple_name == "InstallIn":
                        installed_in.extend(self._class_refs(other))
                self._emit(
                    DeclarationKind.MODULE,
                    TypeKey(info.name),
                    line,
                    references=tuple(TypeKey(ref) for ref in refs),
                    installed_in=tuple(installed_in),
                    components=tuple(self._class_refs(annotation, COMPONENT_REFERENCE_ATTRS)),
                )
                break
        # Continue right after the type name so that members are scanned too
        return info.keyword_index + 2

    def _provisions(self, info: _ClassInfo) -> None:
        """Emit an injection point for every provision method in a component body."""
        if info.body_start < 0 or info.body_end < 0:
            return
        i = info.body_start + 1
        while i < info.body_end:
            if self._direct[i] is not info or self._text(i) in (";", "}"):
                i += 1
                continue
            try:
                annotations, k = self._skip_modifiers(i)
                nested = self._class_at(k)
                if nested is not None:
                    i = nested.body_end + 1 if nested.body_end > 0 else k + 2
                    continue
                member = self._read_member(k)
            except ParseFailure:
                i += 1
                continue
            i = max(member.end, i + 1)
            if self._text(member.end) in ("{", "="):
                continue
            if member.kind == "method" and member.params:
                continue
            if member.kind not in ("method", "field") or not member.type_name:
                continue
            if member.kind == "field" and not self.kotlin:
                continue
            if member.type_name in VOID_TYPES or member.type_name.rsplit(".", 1)[-1] in BUILDER_TYPES:
                continue
            self._emit(
                DeclarationKind.INJECTION_POINT,
                TypeKey(info.name),
                member.line,
                references=(TypeKey(member.type_name, self._qualifier_of(annotations)),),
            )

    def _binding(self, annotations: List[Annotation], names: Set[str], member: _Member, i: int) -> None:
        if member.kind == "constructor":
            raise self._error("Binding annotation on a constructor", i)
        if not member.type_name:
            raise self._error(f"Binding '{member.name}' has no declared type", i)
        if member.type_name in VOID_TYPES:
            raise self._error(f"Binding '{member.name}' returns {member.type_name}", i)
        type_name = member.type_name
        if "BindsOptionalOf" in names:
            type_name = f"Optional<{type_name}>"
        if "IntoSet" in names:
            type_name = f"Set<{type_name}>"
        owner = self._owner(i)
        self._emit(
            DeclarationKind.BINDING,
            TypeKey(type_name, self._qualifier_of(annotations)),
            member.line,
            references=tuple(TypeKey(p.type_name, p.qualifier) for p in member.params),
            scope=self._scope_of(annotations),
            enclosing=owner.module_name if owner else None,
            multibinding=bool(names & MULTIBINDING_MARKERS),
        )

    def _injection(self, annotations: List[Annotation], names: Set[str], member: _Member, i: int) -> None:
        owner = self._owner(i)
        if owner is None:
            raise self._error("@Inject outside of a class", i)
        if member.kind == "constructor":
            self._emit(
                DeclarationKind.INJECTION_POINT,
                TypeKey(owner.name),
                member.line,
                references=tuple(
                    TypeKey(p.type_name, p.qualifier) for p in member.params if "Assisted" not in p.annotations
                ),
                scope=owner.scope,
                injectable=True,
            )
        elif member.kind == "method":
            self._emit(
                DeclarationKind.INJECTION_POINT,
                TypeKey(owner.name),
                member.line,
                references=tuple(TypeKey(p.type_name, p.qualifier) for p in member.params),
            )
        else:
            if not member.type_name:
                raise self._error(f"Injected property '{member.name}' has no declared type", i)
            self._emit(
                DeclarationKind.INJECTION_POINT,
                TypeKey(owner.name),
                member.line,
                references=(TypeKey(member.type_name, self._qualifier_of(annotations)),),
            )

    def _binds_instance(self, annotations: List[Annotation], member: _Member, i: int) -> None:
        if member.kind == "method":
            if not member.params:
                raise self._error(f"@BindsInstance method '{member.name}' has no parameter", i)
            param = member.params[0]
            key = TypeKey(param.type_name, param.qualifier or self._qualifier_of(annotations))
        elif member.type_name:
            key = TypeKey(member.type_name, self._qualifier_of(annotations))
        else:
            raise self._error("@BindsInstance without a type", i)
        owner = self._owner(i)
        component = owner
        while component is not None and not component.is_component:
            component = component.outer
        if component is None:
            component = owner.outer if owner is not None and owner.outer is not None else owner
        self._emit(
            DeclarationKind.BINDING,
            key,
            member.line,
            enclosing=component.name if component else None,
        )

    # ------------------------------------------------------------------
    # entry points

    def _warn(self, error: ParseFailure) -> None:
        path = str(self.source.path)
        logger.warning("%s:%d: skipped declaration: %s", path, error.line, error)
        self.diagnostics.append(Diagnostic(DiagnosticKind.PARSE, str(error), path=path, line=error.line))

    def parse(self) -> ParseResult:
        i = 0
        while i < len(self.tokens):
            if not self._is_annotation_start(i):
                i += 1
                continue
            start = i
            resume = start + 2
            try:
                annotations, resume = self._read_annotations(i)
                i = self._declaration(annotations, resume)
            except ParseFailure as e:
                self._warn(e)
                i = resume
            i = max(i, start + 1)
        return ParseResult(tuple(self.records), tuple(self.diagnostics))

    def annotation_types(self) -> Tuple[Set[str], Set[str]]:
        i = 0
        while i < len(self.tokens):
            if not self._is_annotation_start(i):
                i += 1
                continue
            start = i
            try:
                annotations, i = self._read_annotations(i)
                more, i = self._skip_modifiers(i)
            except ParseFailure:
                i = start + 2
                continue
            names = {a.simple_name for a in annotations + more}
            info = self._class_at(i)
            if info is not None:
                if "Qualifier" in names:
                    self.declared_qualifiers.add(info.name)
                if "Scope" in names:
                    self.declared_scopes.add(info.name)
            i = max(i, start + 1)
        return self.declared_qualifiers, self.declared_scopes


def parse_source(
    source: SourceFile,
    qualifiers: Optional[Iterable[str]] = None,
    scopes: Optional[Iterable[str]] = None,
) -> ParseResult:
    """
    Extract declaration records from one source file.

    Malformed declarations are skipped with a ``parse`` diagnostic; the rest
    of the file is still scanned.

    Args:
        source: The source file to parse.
        qualifiers: Extra qualifier annotation names (besides ``@Named``).
        scopes: Extra scope annotation names (besides ``@Singleton``/``@Reusable``).

    Returns:
        ParseResult with the records in declaration order and any diagnostics.
    """
    return _Parser(source, qualifiers=qualifiers, scopes=scopes).parse()


def collect_annotation_types(source: SourceFile) -> Tuple[Set[str], Set[str]]:
    """
    Find qualifier and scope annotations declared in a source file.

    Returns:
        Tuple of (qualifier names, scope names) declared with ``@Qualifier`` / ``@Scope``.
    """
    return _Parser(source).annotation_types()
