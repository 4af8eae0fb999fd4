"""
HTML Query Framework

A declarative micro-language for pulling structured data out of HTML/XML.
Rules are plain data (strings, dicts, lists, callables); query strings say
what to select, which attribute to read and how to post-process it:

    evaluate({"title": "h1 | trim", "links": "[a@href]"}, scope)

Public API surface:
  Evaluation      : evaluate, RuleEvaluator, HTMLQuery, query_html, query_file
  Query language  : parse_query, QueryParser, QueryDescriptor, FilterCall
  Documents       : load_document, SoupScope, BaseScope
  Filters         : BUILTIN_FILTERS, FilterRegistry
  Configuration   : QueryOptions
  Caching         : QueryCache, get_default_cache
  Error types     : HTMLQueryError and subclasses
"""

# --- Evaluation ---
from .evaluator import RuleEvaluator, evaluate
from .main import HTMLQuery, query_html, query_file

# --- Query language ---
from .query_parser import QueryParser, parse_query
from .filter_chain import parse_filter_chain
from .schemas import QueryDescriptor, FilterCall, QueryOptions

# --- Documents and filters ---
from .document import BaseScope, SoupScope, load_document
from .filters import BUILTIN_FILTERS, FilterRegistry

# --- Cache ---
from .query_cache import QueryCache, get_default_cache

# --- Exceptions (callers should catch these for error handling) ---
from .exceptions import (
    HTMLQueryError,
    ValidationError,
    QueryParseError,
    FilterError,
    SelectorError,
)

__version__ = "0.3.0"
__all__ = [
    "RuleEvaluator",
    "evaluate",
    "HTMLQuery",
    "query_html",
    "query_file",
    "QueryParser",
    "parse_query",
    "parse_filter_chain",
    "QueryDescriptor",
    "FilterCall",
    "QueryOptions",
    "BaseScope",
    "SoupScope",
    "load_document",
    "BUILTIN_FILTERS",
    "FilterRegistry",
    "QueryCache",
    "get_default_cache",
    "HTMLQueryError",
    "ValidationError",
    "QueryParseError",
    "FilterError",
    "SelectorError",
]
