"""
sparql_transformer.clients — Execution protocol for SPARQL endpoints.

The transformer never talks to the network itself. It calls a query
function and reads the SPARQL 1.1 JSON results it returns.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional, Protocol

from sparql_transformer.errors import MalformedResponseError


class QueryFunction(Protocol):
    """Interface every execution collaborator must implement."""

    def __call__(self, query: str, params: Optional[dict] = None) -> Mapping:
        """Execute query and return SPARQL 1.1 JSON results.

        MUST raise when the endpoint does not answer successfully; the
        transformer propagates the error unchanged.
        """
        ...


@dataclass
class ResultSet:
    variables: list[str] = field(default_factory=list)
    rows: list[dict] = field(default_factory=list)

    @classmethod
    def from_json(cls, data) -> "ResultSet":
        """Read {"head": {"vars": [...]}, "results": {"bindings": [...]}}."""
        if not isinstance(data, Mapping):
            raise MalformedResponseError(
                f"Expected SPARQL JSON results, got {type(data).__name__}"
            )
        results = data.get("results")
        if not isinstance(results, Mapping) or not isinstance(
            results.get("bindings"), list
        ):
            raise MalformedResponseError("SPARQL JSON results without results.bindings")
        head = data.get("head") or {}
        return cls(
            variables=list(head.get("vars", [])),
            rows=list(results["bindings"]),
        )
