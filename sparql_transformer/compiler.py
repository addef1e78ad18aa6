"""
sparql_transformer.compiler — Compile a prototype document into a SPARQL query.

The compiler walks the prototype depth-first. Every directive leaf becomes a
projected variable and, for ``$path`` directives, a triple pattern joined to
the node's root variable. The result is a CompiledQuery: the query text plus
an annotated prototype (Node/Leaf tree) that the decoder and merger use to
rebuild objects from result rows.
"""

from __future__ import annotations

import copy
import logging
import textwrap
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from rdflib import Literal, URIRef

from sparql_transformer.directive import (
    BindMode,
    Directive,
    parse_directive,
    resolve_bestlang,
    sparql_var,
)
from sparql_transformer.errors import MalformedInputError

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "?id"
ROOT_PREFIX = "v"
ID_KEYS = ("@id", "id")
LIMIT_MODES = ("query", "library")


# ─── Annotated prototype ─────────────────────────────────────────────


@dataclass
class Leaf:
    """Decoding rule for one property bound to a query variable."""

    variable: str  # without the leading "?"
    accept: Optional[str] = None
    lang_tag: Optional[str] = None
    as_list: bool = False
    extra: tuple[str, ...] = ()

    def render(self) -> str:
        parts = [f"?{self.variable}"]
        if self.accept:
            parts.append(f"accept:{self.accept}")
        if self.lang_tag:
            parts.append(f"langTag:{self.lang_tag}")
        if self.as_list:
            parts.append("list")
        parts.extend(self.extra)
        return "$".join(parts)


@dataclass
class Node:
    """One object of the annotated prototype.

    properties maps each prototype key to a Leaf, a nested Node, or a
    literal that is copied as-is into every instance.
    """

    properties: dict[str, Any] = field(default_factory=dict)
    anchor: Optional[str] = None
    as_list: bool = False

    def child(self, key: str) -> Optional["Node"]:
        value = self.properties.get(key)
        return value if isinstance(value, Node) else None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        for key, value in self.properties.items():
            if isinstance(value, Node):
                d[key] = value.to_dict()
            elif isinstance(value, Leaf):
                d[key] = value.render()
            else:
                d[key] = value
        if self.anchor:
            d["$anchor"] = self.anchor
        if self.as_list:
            d["$list"] = True
        return d


# ─── Query modifiers ─────────────────────────────────────────────────


def as_list(value) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class QueryModifiers:
    """The top-level "$" keys of the input document."""

    where: list[str] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    distinct: bool = True
    orderby: list[str] = field(default_factory=list)
    groupby: list[str] = field(default_factory=list)
    having: list[str] = field(default_factory=list)
    prefixes: dict[str, str] = field(default_factory=dict)
    values: dict[str, list] = field(default_factory=dict)
    from_graphs: list[str] = field(default_factory=list)
    lang: Optional[str] = None
    lang_tag: Optional[str] = None
    limit_mode: str = "query"

    @classmethod
    def extract(cls, document: dict) -> "QueryModifiers":
        """Remove every "$" key from document and parse them."""
        raw = {
            k: document.pop(k)
            for k in [k for k in document if isinstance(k, str) and k.startswith("$")]
        }

        limit_mode = raw.pop("$limitMode", None) or "query"
        if limit_mode not in LIMIT_MODES:
            raise MalformedInputError(
                f"$limitMode must be one of {list(LIMIT_MODES)}, got {limit_mode!r}"
            )

        modifiers = cls(
            where=[str(w) for w in as_list(raw.pop("$where", None))],
            filters=[str(f) for f in as_list(raw.pop("$filter", None))],
            limit=_as_int("$limit", raw.pop("$limit", None)),
            offset=_as_int("$offset", raw.pop("$offset", None)),
            distinct=raw.pop("$distinct", True) is not False,
            orderby=[str(o) for o in as_list(raw.pop("$orderby", None))],
            groupby=[str(g) for g in as_list(raw.pop("$groupby", None))],
            having=[str(h) for h in as_list(raw.pop("$having", None))],
            prefixes=dict(raw.pop("$prefixes", None) or {}),
            values={
                k: as_list(v) for k, v in (raw.pop("$values", None) or {}).items()
            },
            from_graphs=[str(g) for g in as_list(raw.pop("$from", None))],
            lang=raw.pop("$lang", None) or None,
            lang_tag=raw.pop("$langTag", None) or None,
            limit_mode=limit_mode,
        )

        for key in raw:
            logger.warning("Ignoring unknown query modifier %s", key)

        return modifiers

    @property
    def library_limit(self) -> bool:
        return self.limit_mode == "library"

    def binds(self, *names: str) -> bool:
        """True if any of names (with or without "?") is fixed by $values."""
        bound = {k.lstrip("?") for k in self.values}
        return any(n.lstrip("?") in bound for n in names)


def _as_int(name: str, value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedInputError(f"{name} must be an integer, got {value!r}")


# ─── Compiled query ──────────────────────────────────────────────────


@dataclass(frozen=True)
class CompiledQuery:
    query: str
    prototype: Node
    projection: tuple[str, ...]
    modifiers: QueryModifiers
    graph: bool  # input used the @context/@graph convention
    context: Any = None

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "prototype": self.prototype.to_dict(),
            "projection": list(self.projection),
            "graph": self.graph,
        }


# ─── Compiler ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Level:
    """Context handed down to one node of the traversal."""

    prefix: str  # generated variables at this level are ?<prefix><index>
    prev_root: Optional[str]  # root variable of the enclosing node


class QueryCompiler:
    def __init__(self, modifiers: QueryModifiers):
        self.modifiers = modifiers
        self.projection: list[str] = []
        self.filters: list[str] = list(modifiers.filters)
        self.aggregates: list[str] = []

    def compile(self, proto: dict) -> tuple[Node, list[str]]:
        node, clauses, _ = self._compile_node(
            proto, _Level(prefix=ROOT_PREFIX, prev_root=None)
        )
        return node, clauses

    def _compile_node(
        self,
        proto: dict,
        level: _Level,
    ) -> tuple[Node, list[str], bool]:
        """Compile one prototype object.

        Returns the annotated node, its clauses (descendants included) and
        whether the node's anchor is mandatory for the enclosing block.
        """
        anchor_key, anchor = find_anchor(proto)
        root, block_required = self._root_variable(anchor, level)
        node = Node(anchor=anchor_key, as_list=bool(anchor and anchor.as_list))
        clauses: list[str] = []

        for index, (key, value) in enumerate(proto.items()):
            if isinstance(value, dict):
                child, child_clauses, child_required = self._compile_node(
                    value,
                    _Level(prefix=f"{level.prefix}{index}_", prev_root=root),
                )
                node.properties[key] = child
                if child_clauses:
                    body = join_clauses(child_clauses)
                    clauses.append(body if child_required else optional(body))
                continue

            directive = parse_directive(value)
            if directive is None:
                node.properties[key] = value
                continue

            leaf, clause = self._compile_leaf(
                key, directive, index, level, root, is_anchor=key == anchor_key
            )
            node.properties[key] = leaf
            if clause:
                clauses.append(clause)

        return node, clauses, block_required

    def _root_variable(
        self,
        anchor: Optional[Directive],
        level: _Level,
    ) -> tuple[str, bool]:
        if anchor is None:
            return level.prev_root or DEFAULT_ROOT, False
        required = anchor.required or anchor.mode == BindMode.EXISTING
        if anchor.variable:
            return anchor.variable, required
        return f"?{level.prefix}r", required

    def _compile_leaf(
        self,
        key: str,
        directive: Directive,
        index: int,
        level: _Level,
        root: str,
        is_anchor: bool,
    ) -> tuple[Leaf, Optional[str]]:
        if directive.variable:
            variable = directive.variable
        elif is_anchor:
            variable = root
        else:
            variable = f"?{level.prefix}{index}"
        name = variable[1:]

        accept = directive.accept
        if directive.bestlang is not None:
            lang = resolve_bestlang(directive, self.modifiers.lang)
            self._project(f'(sql:BEST_LANGMATCH({variable}, "{lang}", "en") AS {variable})')
            accept = "string"
        elif directive.aggregate:
            distinct = "DISTINCT " if directive.distinct else ""
            self._project(
                f"({directive.aggregate.upper()}({distinct}{variable}) AS {variable})"
            )
            self.aggregates.append(variable)
        else:
            self._project(variable)

        leaf = Leaf(
            variable=name,
            accept=accept,
            lang_tag=directive.lang_tag,
            as_list=directive.as_list,
            extra=directive.extra,
        )

        lang_filter = self._lang_filter(directive, variable, key)

        if not directive.emits_pattern:
            if lang_filter:
                self.filters.append(lang_filter)
            return leaf, None

        use_prev_root = variable == root or (directive.prev_root and level.prev_root)
        subject = (level.prev_root if use_prev_root else root) or DEFAULT_ROOT

        if directive.reverse:
            pattern = f"{variable} {directive.path} {subject}"
        else:
            pattern = f"{subject} {directive.path} {variable}"
        if lang_filter:
            pattern = f"{pattern} .\nFILTER({lang_filter})"

        required = (
            directive.required
            or is_anchor
            or self.modifiers.binds(name, key)
            or (directive.aggregate is not None and not use_prev_root)
        )
        return leaf, pattern if required else optional(pattern)

    def _lang_filter(
        self,
        directive: Directive,
        variable: str,
        key: str,
    ) -> Optional[str]:
        if directive.lang is None:
            return None
        lang = directive.lang or self.modifiers.lang
        if not lang:
            logger.warning(
                "Property %r asks for a language but none is declared; no filter added",
                key,
            )
            return None
        if self.modifiers.binds(variable, key):
            return None
        return f"lang({variable}) = '{lang}'"

    def _project(self, expression: str) -> None:
        if expression not in self.projection:
            self.projection.append(expression)


def find_anchor(proto: dict) -> tuple[Optional[str], Optional[Directive]]:
    """Pick the identity property of a prototype node.

    An explicit "$anchor" option wins, then "@id", then "id".
    """
    for key, value in proto.items():
        directive = parse_directive(value)
        if directive is not None and directive.anchor:
            return key, directive

    for key in ID_KEYS:
        directive = parse_directive(proto.get(key))
        if directive is not None:
            return key, directive

    return None, None


# ─── Query text ──────────────────────────────────────────────────────


def join_clauses(clauses: list[str]) -> str:
    return " .\n".join(clauses)


def optional(body: str) -> str:
    if "\n" in body:
        return "OPTIONAL {\n" + textwrap.indent(body, "  ") + "\n}"
    return f"OPTIONAL {{ {body} }}"


def sparql_term(value) -> str:
    """Render a $values or $from entry as a SPARQL term."""
    if not isinstance(value, str):
        return Literal(value).n3()
    if value.startswith("http"):
        return URIRef(value).n3()
    if value.startswith("<") or ":" in value:
        return value
    return Literal(value).n3()


def _strip_dot(clause: str) -> str:
    clause = clause.strip()
    if clause.endswith("."):
        clause = clause[:-1].rstrip()
    return clause


def render_query(
    modifiers: QueryModifiers,
    projection: list[str],
    clauses: list[str],
    filters: list[str],
) -> str:
    lines = [f"PREFIX {p}: <{iri}>" for p, iri in modifiers.prefixes.items()]

    select = "SELECT DISTINCT" if modifiers.distinct else "SELECT"
    lines.append(f"{select} {' '.join(projection) or '*'}")
    lines.extend(f"FROM {sparql_term(g)}" for g in modifiers.from_graphs)

    body = [
        f"VALUES {sparql_var(var)} {{{' '.join(sparql_term(v) for v in values)}}}"
        for var, values in modifiers.values.items()
    ]
    patterns = [c for c in (_strip_dot(c) for c in modifiers.where + clauses) if c]
    if patterns:
        body.append(join_clauses(patterns))
    body.extend(f"FILTER({f})" for f in filters)

    lines.append("WHERE {")
    if body:
        lines.append(textwrap.indent("\n".join(body), "  "))
    lines.append("}")

    if modifiers.groupby:
        lines.append(f"GROUP BY {' '.join(modifiers.groupby)}")
    if modifiers.having:
        lines.append(f"HAVING ({' && '.join(modifiers.having)})")
    if modifiers.orderby:
        lines.append(f"ORDER BY {' '.join(modifiers.orderby)}")
    if not modifiers.library_limit:
        if modifiers.limit is not None:
            lines.append(f"LIMIT {modifiers.limit}")
        if modifiers.offset is not None:
            lines.append(f"OFFSET {modifiers.offset}")

    return "\n".join(lines)


# ─── Entry point ─────────────────────────────────────────────────────


def extract_prototype(document: dict) -> tuple[dict, bool]:
    """Return the prototype of an input document and whether it uses @graph."""
    graph = "@graph" in document
    proto = document.get("@graph") if graph else document.get("proto")
    if isinstance(proto, list):
        proto = proto[0] if proto else None
    if not isinstance(proto, dict):
        raise MalformedInputError(
            "Input must carry a prototype object under 'proto' or '@graph'"
        )
    return proto, graph


def compile_document(document: Mapping) -> CompiledQuery:
    """Compile an input document into a CompiledQuery.

    The document is deep-copied first; the caller's object is never modified.
    """
    if not isinstance(document, Mapping):
        raise MalformedInputError("Input format not valid: expected a JSON object")

    document = copy.deepcopy(dict(document))
    proto, graph = extract_prototype(document)
    modifiers = QueryModifiers.extract(document)

    compiler = QueryCompiler(modifiers)
    node, clauses = compiler.compile(proto)

    if compiler.aggregates and not modifiers.groupby:
        # kept as-is: callers rely on the ungrouped form
        logger.warning(
            "Aggregates %s compiled without $groupby; results may mix grouped "
            "and ungrouped variables",
            ", ".join(compiler.aggregates),
        )

    query = render_query(modifiers, compiler.projection, clauses, compiler.filters)
    logger.debug("Compiled query:\n%s", query)

    return CompiledQuery(
        query=query,
        prototype=node,
        projection=tuple(compiler.projection),
        modifiers=modifiers,
        graph=graph,
        context=document.get("@context"),
    )
