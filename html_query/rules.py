"""
Rule variants.

Callers write rules as plain data; normalize_rule() turns that data into one
of five explicit shapes so the evaluator can branch on type:

    "h1@text"                      → Literal("h1@text")
    lambda: 42                     → Computed(fn)
    {"title": "h1", ...}           → Fields({...})
    ["[.item]", {...}, fn, ...]    → Divided("[.item]", [{...}, fn, ...])
    ["h1", fn1, fn2]  or  ["h1"]   → Pipeline("h1", (fn1, fn2))

An array is "divided" when it has more than one element and its second
element is not callable.  Nested values are normalized lazily, one level per
evaluation step, so a nested rule that is never reached is never inspected.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Union

from .exceptions import ValidationError


@dataclass(frozen=True)
class Literal:
    """A query string evaluated against the current scope."""
    query: str


@dataclass(frozen=True)
class Computed:
    """A zero-argument callable evaluated in place."""
    fn: Callable[[], Any]


@dataclass(frozen=True)
class Fields:
    """A mapping of names to nested rules, all evaluated on the same scope."""
    rules: Mapping


@dataclass(frozen=True)
class Divided:
    """Select sub-scopes with divider, then evaluate rest inside each one."""
    divider: str
    rest: list


@dataclass(frozen=True)
class Pipeline:
    """Evaluate lead, then pass the value through each function in turn."""
    lead: Any
    functions: tuple


Rule = Union[Literal, Computed, Fields, Divided, Pipeline]


def is_divided(items: list) -> bool:
    return len(items) > 1 and not callable(items[1])


def normalize_rule(rule: Any) -> Rule:
    """
    Classify raw rule data.

    Raises:
        ValidationError: None, an empty array, a non-string divider, a
            non-callable pipeline step, or an unsupported type
    """
    if rule is None:
        raise ValidationError("Parse rule cannot be None", "rule", rule)

    if isinstance(rule, str):
        return Literal(rule)

    if isinstance(rule, Mapping):
        return Fields(rule)

    if isinstance(rule, (list, tuple)):
        items = list(rule)
        if not items:
            raise ValidationError("Array rule cannot be empty", "rule", rule)

        if is_divided(items):
            if not isinstance(items[0], str):
                raise ValidationError(
                    f"Divider must be a query string, got {type(items[0]).__name__}",
                    "rule",
                    rule
                )
            return Divided(items[0], items[1:])

        functions = tuple(items[1:])
        for position, fn in enumerate(functions, start=1):
            if not callable(fn):
                raise ValidationError(
                    f"Pipeline step {position} must be callable, got {type(fn).__name__}",
                    "rule",
                    rule
                )
        return Pipeline(items[0], functions)

    # Checked last: classes and callable objects are callables too
    if callable(rule):
        return Computed(rule)

    raise ValidationError(
        f"Unsupported rule type {type(rule).__name__}; "
        "expected str, callable, mapping or list",
        "rule",
        rule
    )
