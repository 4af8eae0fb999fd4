"""
Query parser.

Converts one raw query string into a QueryDescriptor:

    "[.item a@href | trim | slice:0:10]"
     │ │         │      └────────────── filter chain (left to right)
     │ │         └───────────────────── attribute to extract (default: text)
     │ └─────────────────────────────── selector, handed to the CSS engine
     └───────────────────────────────── brackets: return every match as a list

Everything in the selector is passed through verbatim except two shorthand
rewrites: "li[.active]" → "li.active" and ":not-empty" → ":not(:empty)".
Parsed descriptors are cached by the trimmed query string.
"""

import re
from typing import Any, Optional

from .schemas import QueryDescriptor, CacheStats
from .filter_chain import split_filters, parse_filter_chain
from .query_cache import QueryCache, get_default_cache
from .exceptions import QueryParseError
from .logger import get_module_logger

logger = get_module_logger("query_parser")

MAX_QUERY_LENGTH = 1000

# Attribute names: word characters, "-", "_" and ":" (xlink:href, data-id)
ATTRIBUTE_NAME = re.compile(r"^[\w\-:]+$")

# --- Selector shorthands ---
# "div[.active]" is class-condition sugar for "div.active".
CLASS_CONDITION = re.compile(r"\[\s*\.([\w\-]+)\s*\]")
# ":not-empty" is not CSS; rewrite to the standard negation of ":empty".
NOT_EMPTY = re.compile(r":not-empty\b")


def normalize_selector(selector: str) -> str:
    """Apply the selector shorthands; everything else passes through."""
    selector = CLASS_CONDITION.sub(r".\1", selector)
    selector = NOT_EMPTY.sub(":not(:empty)", selector)
    return selector


def _find_attribute_marker(text: str) -> int:
    """
    Index of the last "@" outside brackets, parentheses and quotes, or -1.

    Skipping bracketed text keeps selectors like a[href^="mailto:x@y"] intact.
    """
    depth = 0
    quote = None
    marker = -1
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char in "[(":
            depth += 1
        elif char in ")]":
            depth = max(depth - 1, 0)
        elif char == "@" and depth == 0:
            marker = index
    return marker


def split_attribute(selector_part: str, query: str) -> tuple[Optional[str], Optional[str]]:
    """
    Split "selector@attribute" into its two halves.

    Returns:
        (selector or None, attribute or None)
    """
    marker = _find_attribute_marker(selector_part)
    if marker < 0:
        selector = selector_part.strip()
        return (selector or None), None

    selector = selector_part[:marker].strip()
    attribute = selector_part[marker + 1:].strip()
    if not ATTRIBUTE_NAME.match(attribute):
        raise QueryParseError(
            f"Invalid attribute name {attribute!r} after '@'",
            query,
            {"attribute": attribute}
        )
    return (selector or None), attribute


class QueryParser:
    """Parses query strings into cached QueryDescriptors."""

    def __init__(self, cache: Optional[QueryCache] = None):
        """
        Initialize parser.

        Args:
            cache: Descriptor cache. Defaults to the process-wide cache.
        """
        self.cache = cache if cache is not None else get_default_cache()

    def parse(self, query: Any) -> QueryDescriptor:
        """
        Parse a query string.

        Args:
            query: Raw query, e.g. "a@href", "[li | trim]", "@data-id"

        Returns:
            QueryDescriptor (shared, immutable)

        Raises:
            QueryParseError: non-string, empty, empty brackets, too long,
                or a malformed attribute suffix
        """
        text = self._validate(query)

        cached = self.cache.get(text)
        if cached is not None:
            return cached

        descriptor = self._parse(text)
        self.cache.put(text, descriptor)
        return descriptor

    def _validate(self, query: Any) -> str:
        if not isinstance(query, str):
            raise QueryParseError(
                f"Query must be a string, got {type(query).__name__}",
                query,
                {"reason": "not_a_string"}
            )

        text = query.strip()
        if not text:
            raise QueryParseError(
                "Query string cannot be empty", query, {"reason": "empty_query"}
            )
        if len(text) > MAX_QUERY_LENGTH:
            raise QueryParseError(
                f"Query string is too long (max {MAX_QUERY_LENGTH} characters)",
                query,
                {"reason": "too_long", "length": len(text)}
            )
        return text

    def _parse(self, text: str) -> QueryDescriptor:
        body = text
        get_all = False

        # Step 1: "[...]" asks for every match
        if body.startswith("[") and body.endswith("]"):
            get_all = True
            body = body[1:-1].strip()
            if not body:
                raise QueryParseError(
                    "Empty selector inside brackets", text, {"reason": "empty_brackets"}
                )

        # Step 2: split off the filter chain
        segments = split_filters(body)
        selector_part = segments[0]
        filters = parse_filter_chain("|".join(segments[1:]))

        # Step 3: shorthands, then the "@attribute" suffix
        selector, attribute = split_attribute(normalize_selector(selector_part), text)

        descriptor = QueryDescriptor(
            selector=selector,
            attribute=attribute,
            filters=filters,
            get_all=get_all,
        )
        logger.debug(f"Parsed query {text!r} -> {descriptor}")
        return descriptor

    def clear_cache(self) -> int:
        """Clear the descriptor cache. Returns the number of entries removed."""
        return self.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()


def parse_query(query: Any, cache: Optional[QueryCache] = None) -> QueryDescriptor:
    """Convenience function to parse one query string."""
    return QueryParser(cache=cache).parse(query)
