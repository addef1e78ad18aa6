"""
sparql_transformer.clients.http — Minimal SPARQL-over-HTTP client.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from sparql_transformer.errors import (
    InvalidEndpointError,
    MalformedResponseError,
    QueryExecutionError,
)

logger = logging.getLogger(__name__)

RESULTS_JSON = "application/sparql-results+json"


def _valid_endpoint(endpoint: str) -> bool:
    try:
        url = httpx.URL(endpoint)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


class SparqlClient:
    """POST queries to a SPARQL endpoint and return the decoded JSON."""

    def __init__(
        self,
        endpoint: str,
        timeout: Optional[float] = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        if not endpoint or not _valid_endpoint(endpoint):
            raise InvalidEndpointError(f"Not valid endpoint: {endpoint}")
        self.endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)

    def query(self, query: str, params: Optional[dict] = None) -> dict:
        data = {**(params or {}), "query": query}
        logger.debug("POST %s", self.endpoint)
        response = self._client.post(
            self.endpoint,
            data=data,
            headers={"Accept": RESULTS_JSON},
        )
        if not response.is_success:
            raise QueryExecutionError(
                f"SPARQL endpoint answered {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"SPARQL endpoint answered with invalid JSON: {e}",
                status_code=response.status_code,
            ) from e

    __call__ = query

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SparqlClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
