"""
sparql_transformer.decoder — Turn one SPARQL result row into one instance.

The annotated prototype is applied to the row: leaves are replaced by their
bound values (typed according to their XSD datatype), leaves whose variable
is unbound in the row are dropped, and nested objects left without any bound
value are dropped as well.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from rdflib.namespace import XSD

from sparql_transformer.compiler import Leaf, Node

logger = logging.getLogger(__name__)


# ─── Vocabularies ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Vocabulary:
    id: str
    lang: str
    value: str


JSONLD = Vocabulary(id="@id", lang="@language", value="@value")
PROTO = Vocabulary(id="id", lang="language", value="value")


@dataclass(frozen=True)
class DecodeOptions:
    vocabulary: Vocabulary = PROTO
    lang_tag: str = "show"  # "hide" drops language tags from literals


# ─── XSD type mapping ────────────────────────────────────────────────

INTEGER_TYPES = frozenset(
    str(t)
    for t in (
        XSD.integer,
        XSD.nonPositiveInteger,
        XSD.negativeInteger,
        XSD.nonNegativeInteger,
        XSD.positiveInteger,
        XSD.long,
        XSD.int,
        XSD.short,
        XSD.byte,
        XSD.unsignedLong,
        XSD.unsignedInt,
        XSD.unsignedShort,
        XSD.unsignedByte,
    )
)

FLOAT_TYPES = frozenset(str(t) for t in (XSD.decimal, XSD.float, XSD.double))

BOOLEAN_TYPE = str(XSD.boolean)

_ACCEPT_TYPES = {
    "string": str,
    "number": (int, float),
    "boolean": bool,
}


# ─── Values ──────────────────────────────────────────────────────────


def to_value(
    binding: dict,
    accept: Optional[str] = None,
    lang_tag: str = "show",
    vocabulary: Vocabulary = PROTO,
) -> Any:
    """Convert a SPARQL JSON binding into a JSON value.

    Returns None when accept is set and the decoded value has another type.
    """
    value = binding.get("value")
    datatype = binding.get("datatype")

    if datatype == BOOLEAN_TYPE:
        value = value != "false" and not _is_zero(value)
    elif datatype in INTEGER_TYPES or datatype in FLOAT_TYPES:
        value = _to_number(value, datatype)

    if accept and not _accepts(value, accept):
        return None

    if not isinstance(value, str):
        return value

    lang = binding.get("xml:lang")
    if lang and lang_tag != "hide":
        return {vocabulary.lang: lang, vocabulary.value: value}
    return value


def _to_number(value: str, datatype: str):
    """Parse a numeric literal; an ill-typed lexical form stays a string."""
    try:
        if datatype in INTEGER_TYPES:
            return int(value)
        return float(value.replace("INF", "inf"))
    except (TypeError, ValueError):
        logger.debug("Keeping ill-typed literal %r (%s) as a string", value, datatype)
        return value


def _is_zero(value: str) -> bool:
    try:
        return float(value) == 0
    except (TypeError, ValueError):
        return False


def _accepts(value, accept: str) -> bool:
    expected = _ACCEPT_TYPES.get(accept)
    if expected is None:
        return type(value).__name__ == accept
    if accept == "number" and isinstance(value, bool):
        return False
    return isinstance(value, expected)


# ─── Rows ────────────────────────────────────────────────────────────


def decode_row(
    row: dict,
    node: Node,
    options: DecodeOptions = DecodeOptions(),
) -> dict:
    """Apply the annotated prototype to a single result row."""
    instance, _ = _decode_node(row, node, options)
    return instance


def _decode_node(row: dict, node: Node, options: DecodeOptions) -> tuple[dict, bool]:
    instance: dict[str, Any] = {}
    bound = False

    for key, rule in node.properties.items():
        if isinstance(rule, Node):
            sub, sub_bound = _decode_node(row, rule, options)
            if not sub_bound:
                continue
            instance[key] = [sub] if rule.as_list else sub
            bound = True

        elif isinstance(rule, Leaf):
            value = _decode_leaf(row, rule, options)
            if value is None:
                continue
            if rule.as_list and key != node.anchor:
                value = [value]
            instance[key] = value
            bound = True

        else:
            instance[key] = _copy_literal(rule)

    return instance, bound


def _decode_leaf(row: dict, leaf: Leaf, options: DecodeOptions) -> Any:
    binding = row.get(leaf.variable)
    if not binding:
        return None
    return to_value(
        binding,
        accept=leaf.accept,
        lang_tag=leaf.lang_tag or options.lang_tag,
        vocabulary=options.vocabulary,
    )


def _copy_literal(value):
    if isinstance(value, dict):
        return {k: _copy_literal(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_literal(v) for v in value]
    return value
