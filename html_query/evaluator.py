"""
Rule evaluator: the recursive core.

Walks a rule (string / callable / mapping / array) against a document scope
and returns a value with the same shape as the rule:

    evaluate("h1", scope)                                  → "Title"
    evaluate("[li | trim]", scope)                         → ["A", "B", "C"]
    evaluate({"title": "h1", "links": "[a@href]"}, scope)  → {"title": ..., "links": [...]}
    evaluate(["[.item]", {"name": ".name"}], scope)        → [{"name": ...}, ...]
    evaluate(["h1", str.upper], scope)                     → "TITLE"

Missing data is not an error: a query that matches nothing yields None (or []
in get-all mode), and mappings keep every key.  Structural problems (bad rule
shape, unknown filter, a filter raising) abort the whole call.
"""

from typing import Any, Mapping, Optional

from bs4.element import Tag

from .rules import Literal, Computed, Fields, Divided, Pipeline, normalize_rule
from .filters import Filter, FilterRegistry
from .document import BaseScope, SoupScope
from .query_parser import QueryParser
from .schemas import QueryDescriptor
from .exceptions import FilterError, ValidationError
from .logger import get_module_logger

logger = get_module_logger("evaluator")


def as_scope(scope: Any) -> BaseScope:
    """Accept a scope, or a BeautifulSoup document/Tag to wrap in one."""
    if isinstance(scope, BaseScope):
        return scope
    if isinstance(scope, Tag):
        return SoupScope(scope)
    raise ValidationError(
        f"Scope must be a BaseScope or BeautifulSoup Tag, got {type(scope).__name__}",
        "scope",
        scope
    )


class RuleEvaluator:
    """Evaluates rules against document scopes."""

    def __init__(
        self,
        filters: Optional[Mapping[str, Filter]] = None,
        parser: Optional[QueryParser] = None
    ):
        """
        Initialize evaluator.

        Args:
            filters: Extra filters; same-named entries replace built-ins
            parser: QueryParser to use (its cache is shared across calls)
        """
        self.registry = FilterRegistry.merged(filters)
        self.parser = parser or QueryParser()

    def evaluate(self, rule: Any, scope: Any) -> Any:
        """
        Evaluate rule against scope.

        Raises:
            ValidationError: rule is None or malformed, or scope is unusable
            QueryParseError: a query string is malformed
            FilterError: unknown filter, or a filter raised
            SelectorError: the CSS engine rejected a selector
        """
        return self._evaluate(rule, as_scope(scope))

    def _evaluate(self, rule: Any, scope: BaseScope) -> Any:
        variant = normalize_rule(rule)

        if isinstance(variant, Literal):
            return self._evaluate_query(variant.query, scope)

        if isinstance(variant, Computed):
            return variant.fn()

        if isinstance(variant, Fields):
            # Every key is kept, even when its value comes back None
            return {key: self._evaluate(sub_rule, scope) for key, sub_rule in variant.rules.items()}

        if isinstance(variant, Divided):
            return self._evaluate_divided(variant, scope)

        if isinstance(variant, Pipeline):
            value = self._evaluate(variant.lead, scope)
            for fn in variant.functions:
                value = fn(value)
            return value

        raise ValidationError(f"Unhandled rule variant {variant!r}", "rule", rule)

    def _evaluate_divided(self, variant: Divided, scope: BaseScope) -> Any:
        """
        Evaluate the rest of a divided array inside each matched sub-scope.

        Get-all dividers give one result per match; otherwise only the first
        match is used and no match gives None.  Trailing functions belong to
        the rest of the array, so they run once per sub-scope.
        """
        descriptor = self.parser.parse(variant.divider)
        nodes = scope.select(descriptor.selector)

        if descriptor.get_all:
            return [self._evaluate(variant.rest, scope.scope_for(node)) for node in nodes]

        if not nodes:
            return None
        return self._evaluate(variant.rest, scope.scope_for(nodes[0]))

    def _evaluate_query(self, query: str, scope: BaseScope) -> Any:
        descriptor = self.parser.parse(query)
        nodes = scope.select(descriptor.selector)

        if descriptor.get_all:
            values = scope.extract_all(nodes, descriptor.attribute)
            return self._apply_filters(values, descriptor, query, each=True)

        value = scope.extract(nodes[0], descriptor.attribute) if nodes else None
        return self._apply_filters(value, descriptor, query, each=False)

    def _apply_filters(self, value: Any, descriptor: QueryDescriptor, query: str, each: bool) -> Any:
        """
        Run the filter chain.

        With each=True the value is a list and every filter is mapped over
        its items; one failing item fails the whole field.
        """
        # Resolve the whole chain first so an unknown name fails before any work
        chain = []
        for call in descriptor.filters:
            fn = self.registry.get(call.name)
            if fn is None:
                message = (
                    f"Unknown filter: {call.name}. "
                    f"Available filters: {', '.join(self.registry.names())}"
                )
                logger.error(f"{message} (query {query!r})")
                raise FilterError(message, call.name, value, query)
            chain.append((call, fn))

        for call, fn in chain:
            if each:
                value = [self._run_filter(fn, call.name, call.args, item, query) for item in value]
            else:
                value = self._run_filter(fn, call.name, call.args, value, query)
        return value

    def _run_filter(self, fn: Filter, name: str, args: tuple, value: Any, query: str) -> Any:
        try:
            return fn(value, *args)
        except Exception as e:
            message = f'Parse error in query "{query}" with filter "{name}": {e}'
            logger.error(message)
            raise FilterError(message, name, value, query) from e


def evaluate(
    rule: Any,
    scope: Any,
    filters: Optional[Mapping[str, Filter]] = None,
    parser: Optional[QueryParser] = None
) -> Any:
    """Convenience function to evaluate one rule with an optional filter overlay."""
    return RuleEvaluator(filters=filters, parser=parser).evaluate(rule, scope)
