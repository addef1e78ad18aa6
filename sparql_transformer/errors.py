"""
sparql_transformer.errors — Exceptions raised by the transformer pipeline.
"""

from __future__ import annotations

from typing import Optional


class TransformerError(Exception):
    """Base exception for all sparql_transformer errors."""
    pass


class MalformedInputError(TransformerError, ValueError):
    """Raised when the input document is not a mapping or has no prototype."""
    pass


class DirectiveError(TransformerError, ValueError):
    """Raised when a prototype directive cannot be compiled."""
    pass


class LanguageResolutionError(DirectiveError):
    """Raised when a bestlang directive has no language to match against."""
    pass


class InvalidEndpointError(TransformerError, ValueError):
    """Raised when a SPARQL endpoint URL is missing or not valid."""
    pass


class QueryExecutionError(TransformerError):
    """Raised when the SPARQL endpoint does not answer successfully."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(QueryExecutionError):
    """Raised when the endpoint answers with something that is not SPARQL JSON."""
    pass
