"""
Tests for the recursive rule evaluator.

Each test builds or reuses a small document and checks that the result keeps
the shape of the rule: strings give scalars, brackets give lists, mappings
give dicts with every key, divided arrays give one result per sub-scope.
"""

import math

import pytest
from bs4 import BeautifulSoup

from html_query import filters as builtin
from html_query.document import load_document
from html_query.evaluator import RuleEvaluator, evaluate
from html_query.filters import BUILTIN_FILTERS
from html_query.query_cache import QueryCache
from html_query.query_parser import QueryParser
from html_query.rules import (
    Computed, Divided, Fields, Literal, Pipeline, normalize_rule,
)
from html_query.exceptions import (
    FilterError, QueryParseError, SelectorError, ValidationError,
)


# --- Rule normalization ---

def test_normalize_rule_variants():
    fn = lambda: 1
    assert normalize_rule("h1") == Literal("h1")
    assert normalize_rule(fn) == Computed(fn)
    assert isinstance(normalize_rule({"a": "h1"}), Fields)
    assert normalize_rule(["[.item]", {"a": "h1"}]) == Divided("[.item]", [{"a": "h1"}])
    assert normalize_rule(["h1", str.upper]) == Pipeline("h1", (str.upper,))
    assert normalize_rule(("h1",)) == Pipeline("h1", ())


@pytest.mark.parametrize("rule", [None, [], 42, 1.5, {"h1"}])
def test_normalize_rule_rejects_bad_shapes(rule):
    with pytest.raises(ValidationError):
        normalize_rule(rule)


def test_normalize_rule_rejects_non_string_divider():
    with pytest.raises(ValidationError, match="Divider must be a query string"):
        normalize_rule([{"a": "h1"}, {"b": "h2"}])


def test_normalize_rule_rejects_non_callable_pipeline_step():
    with pytest.raises(ValidationError, match="Pipeline step 2"):
        normalize_rule(["h1", str.upper, "h2"])


# --- String rules ---

def test_attribute_of_first_match():
    scope = load_document('<a href="/x">link</a>')
    assert evaluate("a@href", scope) == "/x"


def test_no_match_gives_none():
    scope = load_document("<p>no links</p>")
    assert evaluate("a@href", scope) is None


def test_get_all_text():
    scope = load_document("<ul><li>A</li><li>B</li><li>C</li></ul>")
    assert evaluate("[li]", scope) == ["A", "B", "C"]
    assert evaluate("[dd]", scope) == []


def test_filter_chain_applied_in_order(page):
    assert evaluate("span.price | trim | int", page) == 42
    assert evaluate("h1 | trim | upper", page) == "HELLO THERE!"


def test_get_all_maps_filters_over_items(page):
    assert evaluate("[#number li | int]", page) == [123, 8989, 344]
    assert evaluate("[.item .size | size]", page) == [1572864, 274877906944, 1024]


def test_filter_sees_none_when_nothing_matches(page):
    assert math.isnan(evaluate(".missing | int", page))
    assert evaluate(".missing | trim", page) is None


def test_self_selection_reads_the_scope_node():
    soup = BeautifulSoup('<div data-id="7">seven</div>', "html.parser")
    div = soup.find("div")
    assert evaluate("@data-id", div) == "7"
    assert evaluate("| upper", div) == "SEVEN"


def test_plain_beautifulsoup_scope_is_accepted(page):
    soup = BeautifulSoup("<h1>Title</h1>", "html.parser")
    assert evaluate("h1", soup) == "Title"


def test_date_filter_through_query(page):
    result = evaluate(".meta b@nextNode | date", page)
    assert (result.year, result.month, result.day) == (2024, 1, 15)


# --- Function rules ---

def test_computed_rule_is_called(page):
    assert evaluate(lambda: 42, page) == 42
    assert evaluate({"fixed": lambda: "x", "title": "title"}, page) == {
        "fixed": "x",
        "title": "Sample page",
    }


def test_pipeline_applies_functions_left_to_right(page):
    assert evaluate(["title", str.upper, len], page) == len("SAMPLE PAGE")
    assert evaluate(["title"], page) == "Sample page"
    assert evaluate([{"t": "title"}, lambda d: d["t"]], page) == "Sample page"


# --- Object rules ---

def test_object_rule_keeps_every_key(page):
    result = evaluate({"a": ".missing", "b": "title"}, page)
    assert result == {"a": None, "b": "Sample page"}
    assert list(result) == ["a", "b"]


def test_nested_object_rules(page):
    rule = {
        "title": "title",
        "list": {"ids": "[#number li@data-id]", "first": "#number li | int"},
    }
    result = evaluate(rule, page)
    assert result["list"] == {"ids": ["1", "2", "3"], "first": 123}


# --- Divided arrays ---

def test_divided_get_all_gives_one_result_per_match(page):
    result = evaluate(["[.item]", {"name": ".name"}], page)
    assert result == [{"name": "Alpha"}, {"name": "Beta"}, {"name": "Gamma"}]


def test_divided_first_match_only(page):
    assert evaluate([".item", {"name": ".name"}], page) == {"name": "Alpha"}
    assert evaluate([".nothing", {"name": ".name"}], page) is None
    assert evaluate(["[.nothing]", {"name": ".name"}], page) == []


def test_divided_sub_scope_self_selection(page):
    result = evaluate(["[#number li]", {"text": "@text", "id": "@data-id | int"}], page)
    assert result == [
        {"text": "123", "id": 1},
        {"text": "8989", "id": 2},
        {"text": "344", "id": 3},
    ]


def test_divided_trailing_functions_run_per_sub_scope(page):
    assert evaluate(["[.item]", ".name", str.upper], page) == ["ALPHA", "BETA", "GAMMA"]


def test_divided_nests(page):
    scope = load_document(
        '<div class="g"><i>1</i><i>2</i></div><div class="g"><i>3</i></div>'
    )
    assert evaluate(["[.g]", "[i]", {"n": "@text | int"}], scope) == [
        [{"n": 1}, {"n": 2}],
        [{"n": 3}],
    ]


def test_divided_inside_object(page):
    result = evaluate({
        "title": "h1 | trim",
        "items": ["[.item]", {"name": ".name", "bytes": ".size | size"}],
    }, page)
    assert result["title"] == "Hello there!"
    assert result["items"][1] == {"name": "Beta", "bytes": 274877906944}


# --- Filters overlay ---

def test_custom_filters_are_layered_over_builtins(page):
    shout = lambda value, mark="!": value.upper() + mark
    assert evaluate("title | shout", page, {"shout": shout}) == "SAMPLE PAGE!"
    assert evaluate("title | shout:?", page, {"shout": shout}) == "SAMPLE PAGE?"


def test_custom_filters_do_not_leak_between_calls(page):
    evaluate("h1 | trim", page, {"trim": lambda v: "overridden"})
    assert BUILTIN_FILTERS["trim"] is builtin.trim
    assert evaluate("h1 | trim", page) == "Hello there!"


# --- Errors ---

def test_unknown_filter_scalar_path(page):
    with pytest.raises(FilterError, match="nope") as exc_info:
        evaluate("div | nope", page)
    error = exc_info.value
    assert error.filter_name == "nope"
    assert error.query == "div | nope"
    assert "Available filters" in error.message


def test_unknown_filter_get_all_path(page):
    with pytest.raises(FilterError, match="nope"):
        evaluate("[li | trim | nope]", page)


def test_filter_exception_is_wrapped(page):
    def explode(value):
        raise RuntimeError("boom")

    with pytest.raises(FilterError, match="boom") as exc_info:
        evaluate("title | explode", page, {"explode": explode})
    assert exc_info.value.value == "Sample page"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_one_bad_item_fails_the_whole_field(page):
    def only_small(value):
        if int(value) > 1000:
            raise ValueError("too big")
        return value

    with pytest.raises(FilterError, match="too big"):
        evaluate({"n": "[#number li | only_small]"}, page, {"only_small": only_small})


def test_bad_filter_argument_is_a_filter_error(page):
    with pytest.raises(FilterError):
        evaluate("title | slice:one", page)


def test_unrepresentable_timestamp_is_a_soft_date_failure():
    scope = load_document("<span>99999999999999999</span>")
    assert evaluate({"when": "span | int | date", "raw": "span"}, scope) == {
        "when": None,
        "raw": "99999999999999999",
    }


def test_error_discards_partial_object(page):
    with pytest.raises(FilterError):
        evaluate({"ok": "title", "bad": "title | nope"}, page)


def test_none_rule_is_rejected(page):
    with pytest.raises(ValidationError):
        evaluate(None, page)
    with pytest.raises(ValidationError):
        evaluate({"a": None}, page)


def test_invalid_scope_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        evaluate("h1", "<h1>not parsed</h1>")
    assert exc_info.value.field == "scope"


def test_bad_query_and_selector_errors(page):
    with pytest.raises(QueryParseError):
        evaluate({"a": "[]"}, page)
    with pytest.raises(SelectorError):
        evaluate("div[", page)


def test_error_response_payload(page):
    with pytest.raises(FilterError) as exc_info:
        evaluate("div | nope", page)
    payload = exc_info.value.to_response()
    assert payload["error"] == "FilterError"
    assert payload["details"]["filter_name"] == "nope"


# --- Evaluator instances ---

def test_evaluator_reuses_its_parser_cache(page):
    cache = QueryCache()
    evaluator = RuleEvaluator(parser=QueryParser(cache=cache))
    evaluator.evaluate({"a": "title", "b": "h1 | trim"}, page)
    evaluator.evaluate({"a": "title"}, page)
    assert len(cache) == 2


def test_evaluation_does_not_mutate_the_document(page):
    before = str(page.node)
    evaluate(["[.item]", {"name": ".name | upper", "html": "@outerHtml"}], page)
    assert str(page.node) == before
