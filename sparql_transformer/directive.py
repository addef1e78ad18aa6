"""
sparql_transformer.directive — Parse prototype value strings into directives.

A directive is a prototype leaf such as ``"$rdfs:label$required$lang:en"``:
a sigil, a property path, then ``$``-separated options. ``$`` asks for a new
triple pattern on a generated variable, ``?`` binds to a variable that the
query already names (typically in ``$where``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sparql_transformer.errors import LanguageResolutionError


# ─── Data types ──────────────────────────────────────────────────────


class BindMode(str, Enum):
    EXISTING = "existing"  # ?name
    GENERATE = "generate"  # $path


AGGREGATES = ("sample", "count", "sum", "min", "max", "avg")

_FLAGS = ("required", "distinct", "list", "prevRoot", "reverse", "anchor")


@dataclass(frozen=True)
class Directive:
    mode: BindMode
    path: Optional[str]  # None for EXISTING; may be "" for a bare "$"
    variable: Optional[str]  # "?"-prefixed; None means "generate one"
    required: bool = False
    aggregate: Optional[str] = None
    distinct: bool = False
    as_list: bool = False
    lang: Optional[str] = None  # "" for a bare "lang"
    lang_tag: Optional[str] = None
    accept: Optional[str] = None
    bestlang: Optional[str] = None  # "" for a bare "bestlang"
    prev_root: bool = False
    reverse: bool = False
    anchor: bool = False
    extra: tuple[str, ...] = field(default_factory=tuple)

    @property
    def emits_pattern(self) -> bool:
        return self.mode == BindMode.GENERATE and bool(self.path)

    def to_tuple(self) -> tuple:
        """The (bind mode, path, variable, flags) view of this directive."""
        flags = {
            "required": self.required,
            "aggregate": self.aggregate,
            "distinct": self.distinct,
            "list": self.as_list,
            "lang": self.lang,
            "langTag": self.lang_tag,
            "accept": self.accept,
            "bestlang": self.bestlang,
            "prevRoot": self.prev_root,
            "reverse": self.reverse,
            "anchor": self.anchor,
        }
        flags = {k: v for k, v in flags.items() if v not in (None, False)}
        if self.extra:
            flags["extra"] = list(self.extra)
        return (self.mode, self.path, self.variable, flags)


# ─── Parser ──────────────────────────────────────────────────────────


def is_directive(value) -> bool:
    return isinstance(value, str) and value[:1] in ("$", "?")


def sparql_var(name: str) -> str:
    """Add the leading "?" if absent."""
    return name if name.startswith("?") else f"?{name}"


def parse_directive(value) -> Optional[Directive]:
    """Parse a prototype value string.

    Returns None when the value is not a directive, in which case the
    caller passes it through untouched.
    """
    if not is_directive(value):
        return None

    sigil, body = value[0], value[1:]
    head, *options = body.split("$")

    if sigil == "?":
        mode = BindMode.EXISTING
        path = None
        variable = sparql_var(head) if head else None
    else:
        mode = BindMode.GENERATE
        path = head.strip()
        variable = None

    kwargs: dict = {}
    extra: list[str] = []

    for option in options:
        if not option:
            continue
        name, _, arg = option.partition(":")

        if name in _FLAGS and not arg:
            kwargs[_flag_field(name)] = True
        elif name in AGGREGATES and not arg:
            # mutually exclusive, first match wins
            kwargs.setdefault("aggregate", name)
        elif name == "var" and arg:
            variable = sparql_var(arg)
        elif name == "lang":
            kwargs["lang"] = arg
        elif name == "langTag" and arg:
            kwargs["lang_tag"] = arg
        elif name == "accept" and arg:
            kwargs["accept"] = arg
        elif name == "bestlang":
            kwargs["bestlang"] = arg
        else:
            extra.append(option)

    return Directive(
        mode=mode,
        path=path,
        variable=variable,
        extra=tuple(extra),
        **kwargs,
    )


def _flag_field(name: str) -> str:
    return {
        "list": "as_list",
        "prevRoot": "prev_root",
    }.get(name, name)


def resolve_bestlang(directive: Directive, main_lang: Optional[str]) -> str:
    """Language to match for a bestlang directive: inline, else the root $lang."""
    lang = directive.bestlang or main_lang
    if not lang:
        raise LanguageResolutionError(
            "bestlang requires a language declared inline or in the root $lang"
        )
    return lang
