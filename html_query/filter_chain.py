"""
Filter-chain parser.

Turns the pipe-delimited tail of a query ("trim | slice:0:10 | upper") into
an ordered tuple of FilterCall objects.  Filter names are NOT checked here:
a chain can be parsed and cached before the filters it names are registered.
Existence is checked by the evaluator when the chain runs.
"""

import re

from .schemas import FilterCall

# A pipe splits filters, except "|=" which is a CSS attribute operator
# ([lang|=en]) that must reach the selector engine untouched.
FILTER_DELIMITER = re.compile(r"\s*\|(?!=)\s*")

ARG_SEPARATOR = ":"
QUOTES = ("'", '"')


def split_filters(text: str) -> list[str]:
    """Split on filter pipes, keeping "|=" intact."""
    return FILTER_DELIMITER.split(text)


def _split_args(segment: str) -> list[str]:
    """
    Split "name:arg:arg" on colons outside quotes.

    A quoted argument keeps its colons and loses its quotes:
    'replace:"a:b":c' → ["replace", "a:b", "c"].
    """
    parts = []
    current = []
    quote = None

    for char in segment:
        if quote:
            if char == quote:
                quote = None
            else:
                current.append(char)
        elif char in QUOTES and not current:
            quote = char
        elif char == ARG_SEPARATOR:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    parts.append("".join(current))
    return parts


def parse_filter_chain(text: str) -> tuple[FilterCall, ...]:
    """
    Parse a filter chain.

    Args:
        text: Everything after the first filter pipe, e.g. "trim | int:0"

    Returns:
        FilterCalls in application (left-to-right) order; empty for empty input
    """
    if not text or not text.strip():
        return ()

    calls = []
    for segment in split_filters(text.strip()):
        segment = segment.strip()
        if not segment:
            continue
        name, *args = _split_args(segment)
        calls.append(FilterCall(name=name.strip(), args=tuple(args)))
    return tuple(calls)
