"""
sparql_transformer.config — Options for a transform call and logging setup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Optional

DEFAULT_CONTEXT = "http://schema.org/"
DEFAULT_ENDPOINT = "http://dbpedia.org/sparql"

# Level names accepted in DEBUG_LEVEL, least to most verbose
LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "log": logging.INFO,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "verbose": logging.DEBUG,
}


@dataclass
class Options:
    """Settings for one transform() call.

    query_function replaces the default HTTP client; it receives the query
    text and params and must return SPARQL 1.1 JSON results.
    """

    context: Optional[Any] = None
    endpoint: str = DEFAULT_ENDPOINT
    lang_tag: str = "show"
    log_level: Optional[str] = None
    debug: bool = False
    query_function: Optional[Callable[..., Mapping]] = None
    params: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls, env: Optional[Mapping] = None, **overrides) -> "Options":
        """Build options from DEBUG_LEVEL / SPARQL_ENDPOINT, then overrides."""
        env = os.environ if env is None else env
        values: dict[str, Any] = {}
        if env.get("DEBUG_LEVEL"):
            values["log_level"] = env["DEBUG_LEVEL"]
        if env.get("SPARQL_ENDPOINT"):
            values["endpoint"] = env["SPARQL_ENDPOINT"]
        values.update(overrides)
        return cls(**values)

    @property
    def level(self) -> int:
        if self.debug:
            return logging.DEBUG
        if self.log_level is None:
            return logging.INFO
        try:
            return LOG_LEVELS[self.log_level]
        except KeyError:
            raise ValueError(
                f"Unknown log level {self.log_level!r}, expected one of {list(LOG_LEVELS)}"
            )

    def to_dict(self) -> dict:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        if d["query_function"] is not None:
            d["query_function"] = getattr(
                d["query_function"], "__qualname__", repr(d["query_function"])
            )
        return d


def configure_logging(options: Options) -> logging.Logger:
    """Set the package logger level. Meant for applications, not the library."""
    logger = logging.getLogger("sparql_transformer")
    logger.setLevel(options.level)
    if not logging.getLogger().handlers and not logger.handlers:
        logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    return logger
