"""
Main orchestrator for the HTML Query framework.

Wires document loading and rule evaluation together:
  markup (string/bytes/file) → load_document() → SoupScope
  rule + SoupScope → RuleEvaluator → result with the rule's shape
Options (parser, base URL, cache size) come from QueryOptions.
"""

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .document import SoupScope, load_document, detect_charset_from_bytes
from .evaluator import RuleEvaluator
from .filters import Filter
from .query_cache import QueryCache, get_default_cache
from .query_parser import QueryParser
from .schemas import QueryOptions
from .logger import get_module_logger, setup_logger

logger = get_module_logger("main")


class HTMLQuery:
    """
    Main entry point for rule-based extraction.

    One instance owns a descriptor cache sized by its options, so queries
    parsed for one document are reused for the next.
    """

    def __init__(
        self,
        options: Optional[QueryOptions] = None,
        filters: Optional[Mapping[str, Filter]] = None,
        cache: Optional[QueryCache] = None
    ):
        self.options = options or QueryOptions()
        if self.options.log_level is not None:
            setup_logger(level=self.options.log_level)

        self.filters = dict(filters or {})
        self.parser = QueryParser(cache=cache if cache is not None else QueryCache(self.options.cache_size))

        logger.debug(f"HTMLQuery initialized (parser={self.options.parser})")

    def load(self, html: Union[str, bytes], base_url: Optional[str] = None) -> SoupScope:
        """Parse markup into a scope using the configured tree builder."""
        return load_document(
            html,
            base_url=base_url or self.options.base_url,
            parser=self.options.parser,
            keep_relative_urls=self.options.keep_relative_urls,
        )

    def evaluate(
        self,
        rule: Any,
        scope: Any,
        filters: Optional[Mapping[str, Filter]] = None
    ) -> Any:
        """
        Evaluate a rule against an already-loaded scope.

        Per-call filters are layered over the instance filters, which are
        layered over the built-ins.
        """
        evaluator = RuleEvaluator(filters={**self.filters, **(filters or {})}, parser=self.parser)
        return evaluator.evaluate(rule, scope)

    def parse(
        self,
        html: Union[str, bytes],
        rule: Any,
        base_url: Optional[str] = None,
        filters: Optional[Mapping[str, Filter]] = None
    ) -> Any:
        """
        Load markup and evaluate a rule against it.

        Args:
            html: Markup string or bytes
            rule: Query string, mapping, array or callable
            base_url: URL the markup came from (for absolute links)
            filters: Extra filters for this call

        Returns:
            The extracted value, shaped like the rule
        """
        scope = self.load(html, base_url=base_url)
        return self.evaluate(rule, scope, filters=filters)

    def parse_file(
        self,
        file_path: Union[str, Path],
        rule: Any,
        base_url: Optional[str] = None,
        filters: Optional[Mapping[str, Filter]] = None
    ) -> Any:
        """Load an HTML file and evaluate a rule against it."""
        file_path = Path(file_path)

        # Decode with the charset the page declares, not blindly as UTF-8
        raw_bytes = file_path.read_bytes()
        declared_charset = detect_charset_from_bytes(raw_bytes)
        html = raw_bytes.decode(declared_charset, errors='replace')
        logger.debug(f"Loaded {file_path.name} ({declared_charset})")

        return self.parse(html, rule, base_url=base_url, filters=filters)

    def clear_cache(self) -> int:
        return self.parser.clear_cache()


def query_html(
    html: Union[str, bytes],
    rule: Any,
    filters: Optional[Mapping[str, Filter]] = None,
    base_url: Optional[str] = None
) -> Any:
    """Convenience function to run one rule over markup."""
    return HTMLQuery(filters=filters, cache=get_default_cache()).parse(html, rule, base_url=base_url)


def query_file(
    file_path: Union[str, Path],
    rule: Any,
    filters: Optional[Mapping[str, Filter]] = None
) -> Any:
    """Convenience function to run one rule over an HTML file."""
    return HTMLQuery(filters=filters, cache=get_default_cache()).parse_file(file_path, rule)
