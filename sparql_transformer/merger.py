"""
sparql_transformer.merger — Fold decoded instances into a deduplicated list.

Rows of a SPARQL result repeat the same entity once per combination of its
multi-valued properties. Instances with equal anchor values are merged into
one entry; differing values of the same property are collected into a list,
and nested objects with equal anchors are merged recursively.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sparql_transformer.compiler import CompiledQuery, Node

logger = logging.getLogger(__name__)


def merge_instances(instances: Iterable[dict], node: Node) -> list[dict]:
    """Merge instances sharing the same top-level anchor value.

    Instances without an anchor value are never merged: each one becomes
    its own entry.
    """
    content: list[dict] = []
    anchor = node.anchor

    for instance in instances:
        key = instance.get(anchor) if anchor else None
        match = None
        if key is not None:
            match = next(
                (x for x in content if same_value(x.get(anchor), key)), None
            )

        if match is None:
            content.append(instance)
        else:
            merge_objects(match, instance, node)

    logger.debug("Merged %d entries", len(content))
    return content


def merge_objects(base: dict, addition: dict, node: Optional[Node]) -> dict:
    """Merge addition into base in place and return base."""
    for key, value in addition.items():
        child = node.child(key) if node is not None else None

        if key not in base:
            base[key] = value
            continue

        if isinstance(value, list):
            # forced lists hold one element per row; merge them one by one
            for item in value:
                _merge_value(base, key, item, child)
        else:
            _merge_value(base, key, value, child)

    return base


def _merge_value(base: dict, key: str, value: Any, child: Optional[Node]) -> None:
    current = base[key]
    anchor = child.anchor if child is not None else None

    if isinstance(current, list):
        identity = _anchor_value(value, anchor)
        if identity is not None:
            match = next(
                (x for x in current if same_value(_anchor_value(x, anchor), identity)),
                None,
            )
            if match is not None:
                merge_objects(match, value, child)
                return
        if not any(same_value(value, x) for x in current):
            current.append(value)
        return

    if same_value(value, current):
        return

    identity = _anchor_value(value, anchor)
    if identity is not None and same_value(identity, _anchor_value(current, anchor)):
        merge_objects(current, value, child)
    else:
        base[key] = [current, value]


def same_value(a: Any, b: Any) -> bool:
    """Structural equality that keeps booleans apart from numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(same_value(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(same_value(x, y) for x, y in zip(a, b))
    return a == b


def _anchor_value(value: Any, anchor: Optional[str]) -> Any:
    if anchor and isinstance(value, dict):
        return value.get(anchor)
    return None


# ─── Output ──────────────────────────────────────────────────────────


def paginate(content: list, limit: Optional[int], offset: Optional[int]) -> list:
    start = offset or 0
    if limit is None:
        return content[start:]
    return content[start:start + limit]


def build_output(content: list, compiled: CompiledQuery, context: Any = None):
    """Apply library-side pagination and the @graph envelope if needed."""
    modifiers = compiled.modifiers
    if modifiers.library_limit:
        content = paginate(content, modifiers.limit, modifiers.offset)

    if compiled.graph:
        return {"@context": context, "@graph": content}
    return content
