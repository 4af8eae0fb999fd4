"""
Custom exceptions for the HTML Query framework.

Error philosophy:
  - ValidationError  → FAIL HARD: the rule or scope handed to evaluate() is unusable.
  - QueryParseError  → FAIL HARD: a query string cannot be turned into a descriptor.
  - FilterError      → FAIL HARD: unknown filter, or a filter raised while running.
  - SelectorError    → FAIL HARD: the CSS engine rejected the selector.

Soft failures inside filters (bad regex, unparsable size/date) are NOT raised:
they log a warning and hand back the original value, so a single odd field
doesn't sink a whole extraction.  Structural errors abort the evaluate() call
and no partial result is returned.
"""

from typing import Any, Optional


class HTMLQueryError(Exception):
    """Base exception for all HTML Query errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict:
        """Convert to a JSON-ready error payload."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": {k: _printable(v) for k, v in self.details.items()},
        }


def _printable(value: Any) -> Any:
    # Details may hold nodes, callables or other non-JSON values
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_printable(v) for v in value]
    return repr(value)


class ValidationError(HTMLQueryError):
    """Raised when the top-level input (rule or scope) is malformed."""

    def __init__(
        self,
        message: str,
        field: str,
        value: Any = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, {"field": field, "value": value, **(details or {})})
        self.field = field
        self.value = value


class QueryParseError(HTMLQueryError):
    """Raised when a query string cannot be parsed."""

    def __init__(self, message: str, query: Any, details: Optional[dict] = None):
        super().__init__(message, {"query": query, **(details or {})})
        self.query = query  # The raw, offending input


class FilterError(HTMLQueryError):
    """
    Raised when a filter is unknown or fails while being applied.

    Carries the filter name, the value it was applied to and the query the
    filter chain came from, so the failing rule can be pinpointed without
    re-running anything.
    """

    def __init__(
        self,
        message: str,
        filter_name: str,
        value: Any = None,
        query: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            message,
            {"filter_name": filter_name, "value": value, "query": query, **(details or {})}
        )
        self.filter_name = filter_name
        self.value = value
        self.query = query


class SelectorError(HTMLQueryError):
    """Raised when the document engine rejects a selector."""

    def __init__(self, message: str, selector: str, details: Optional[dict] = None):
        super().__init__(message, {"selector": selector, **(details or {})})
        self.selector = selector
