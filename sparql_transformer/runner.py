"""
sparql_transformer.runner — Run a prototype document against a SPARQL endpoint.

The runner compiles the document, hands the query to a query function
(the HTTP client by default), decodes each result row with the annotated
prototype and merges the rows into the output document.

Can also run in dry-run mode, returning the query without executing it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from sparql_transformer.clients import ResultSet
from sparql_transformer.compiler import CompiledQuery, compile_document
from sparql_transformer.config import DEFAULT_CONTEXT, Options
from sparql_transformer.decoder import JSONLD, PROTO, DecodeOptions, decode_row
from sparql_transformer.errors import MalformedInputError
from sparql_transformer.merger import build_output, merge_instances

logger = logging.getLogger(__name__)

__all__ = [
    "TransformReport",
    "compile_document",
    "dry_run",
    "execute",
    "load_document",
    "transform",
]


# ─── Report types ────────────────────────────────────────────────────


@dataclass
class TransformReport:
    generated_at: str
    endpoint: Optional[str]
    query: str
    row_count: int
    entry_count: int
    output: Any = field(default=None)

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at,
            "endpoint": self.endpoint,
            "query": self.query,
            "row_count": self.row_count,
            "entry_count": self.entry_count,
            "output": self.output,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ─── Input ───────────────────────────────────────────────────────────


def load_document(source: Union[Mapping, str, Path]) -> Mapping:
    """Accept a document, a JSON string, or the path of a JSON file."""
    if isinstance(source, Mapping):
        return source

    if isinstance(source, str) and source.lstrip().startswith("{"):
        text = source
    elif isinstance(source, (str, Path)):
        text = Path(source).read_text(encoding="utf-8")
    else:
        raise MalformedInputError(
            f"Input format not valid: {type(source).__name__}"
        )

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Input is not valid JSON: {e}") from e


# ─── Compile (dry-run) ───────────────────────────────────────────────


def dry_run(document) -> str:
    """Return the SPARQL query for a document without executing it."""
    return compile_document(load_document(document)).query


# ─── Execute ─────────────────────────────────────────────────────────


def _run_query(query: str, options: Options):
    params = options.params or None
    if options.query_function is not None:
        if params is None:
            return options.query_function(query)
        return options.query_function(query, params)

    from sparql_transformer.clients.http import SparqlClient
    with SparqlClient(options.endpoint) as client:
        return client.query(query, params)


def decode_results(
    result: ResultSet,
    compiled: CompiledQuery,
    options: Options,
    lang_tag: Optional[str] = None,
) -> list[dict]:
    """Decode every row and merge them into the list of entries."""
    decode_options = DecodeOptions(
        vocabulary=JSONLD if compiled.graph else PROTO,
        lang_tag=lang_tag or options.lang_tag,
    )
    instances = [decode_row(row, compiled.prototype, decode_options) for row in result.rows]
    return merge_instances(instances, compiled.prototype)


def execute(document, options: Optional[Options] = None) -> TransformReport:
    """Compile, execute and decode a document, returning a full report.

    Errors raised by the query function propagate unchanged.
    """
    options = options or Options()
    logger.debug("options: %s", options.to_dict())

    document = load_document(document)
    compiled = compile_document(document)

    result = ResultSet.from_json(_run_query(compiled.query, options))
    logger.debug("Endpoint returned %d rows", len(result.rows))

    content = decode_results(
        result, compiled, options, lang_tag=compiled.modifiers.lang_tag
    )
    context = options.context or compiled.context or DEFAULT_CONTEXT
    output = build_output(content, compiled, context=context)

    entries = output["@graph"] if compiled.graph else output
    return TransformReport(
        generated_at=datetime.now(timezone.utc).isoformat(),
        endpoint=None if options.query_function else options.endpoint,
        query=compiled.query,
        row_count=len(result.rows),
        entry_count=len(entries),
        output=output,
    )


def transform(document, options: Optional[Options] = None):
    """Run a prototype document and return the output document.

    Returns a list of entries for "proto" documents, or a
    {"@context", "@graph"} object for JSON-LD documents.
    """
    return execute(document, options).output
