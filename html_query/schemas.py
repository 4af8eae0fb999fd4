"""
Pydantic schemas defining the contracts between modules.

FilterCall:      one step of a filter chain ("slice:0:10")
QueryDescriptor: the parsed form of a query string, from QueryParser to RuleEvaluator
QueryOptions:    configuration for document loading and parsing
CacheStats:      snapshot of the descriptor cache

Data flow:
  query string → QueryParser → QueryDescriptor (cached)
  QueryDescriptor + Scope → RuleEvaluator → extracted value(s) → filter chain
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .logger import resolve_level


# --- Query contract: QueryParser → RuleEvaluator ---
# Both models are frozen: descriptors are shared through the cache, so nothing
# downstream may change them.

class FilterCall(BaseModel):
    """A named filter plus its raw positional arguments."""
    model_config = ConfigDict(frozen=True)

    name: str
    args: tuple[str, ...] = ()   # Unparsed; coercion is the filter's job


class QueryDescriptor(BaseModel):
    """Structured form of one query string."""
    model_config = ConfigDict(frozen=True)

    selector: Optional[str] = None     # None → operate on the scope node itself
    attribute: Optional[str] = None    # None → "text"
    filters: tuple[FilterCall, ...] = ()
    get_all: bool = False              # Query was wrapped in [...]


# --- Configuration ---

# Tree builders BeautifulSoup knows how to use; "xml" needs lxml
SUPPORTED_PARSERS = ("html5lib", "lxml", "html.parser", "xml", "lxml-xml")


class QueryOptions(BaseModel):
    """Options for loading documents and evaluating rules."""
    parser: str = "html5lib"
    base_url: Optional[str] = None          # Rewrite relative links against this URL
    keep_relative_urls: bool = False
    cache_size: int = Field(default=1000, ge=0)
    log_level: Optional[int] = None        # None leaves logging as configured

    @classmethod
    def from_env(cls, **overrides) -> "QueryOptions":
        """
        Build options from HTML_QUERY_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        values = {}
        if os.getenv("HTML_QUERY_PARSER"):
            values["parser"] = os.getenv("HTML_QUERY_PARSER")
        if os.getenv("HTML_QUERY_CACHE_SIZE"):
            values["cache_size"] = int(os.getenv("HTML_QUERY_CACHE_SIZE"))
        if os.getenv("HTML_QUERY_LOG_LEVEL"):
            values["log_level"] = resolve_level(os.getenv("HTML_QUERY_LOG_LEVEL"))
        if os.getenv("HTML_QUERY_KEEP_RELATIVE_URLS"):
            values["keep_relative_urls"] = (
                os.getenv("HTML_QUERY_KEEP_RELATIVE_URLS").lower() in ("1", "true", "yes")
            )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class CacheStats(BaseModel):
    """Size report for the descriptor cache."""
    size: int
    max_size: int
