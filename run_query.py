#!/usr/bin/env python3
"""
CLI script to run an extraction rule over HTML files.

The rule is JSON: a query string, an object of named queries, or an array
(divider form). Functions can't be written in JSON, so pipeline arrays with
callables are only available from Python.

Usage:
    python run_query.py '"h1 | trim"' page.html
    python run_query.py '{"title": "h1", "links": "[a@href]"}' page1.html page2.html
    python run_query.py rules.json pages/*.html --base-url https://example.com/ -o out.json
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

from html_query.main import HTMLQuery
from html_query.schemas import QueryOptions
from html_query.exceptions import HTMLQueryError


def load_rule(text: str):
    """Read a rule from a JSON file path or an inline JSON string."""
    path = Path(text)
    if path.suffix == ".json" and path.exists():
        return json.loads(path.read_text())
    return json.loads(text)


def _json_default(value):
    # date filter results
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Extract structured data from HTML files")
    parser.add_argument("rule", help="Rule as inline JSON or a path to a .json file")
    parser.add_argument("files", nargs="+", help="HTML files to process")
    parser.add_argument("--base-url", "-b", help="Resolve relative links against this URL")
    parser.add_argument("--parser", "-p", help="Tree builder: html5lib, lxml, html.parser, xml")
    parser.add_argument("--output", "-o", help="Output JSON file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    try:
        rule = load_rule(args.rule)
    except json.JSONDecodeError as e:
        print(f"✗ Rule is not valid JSON: {e}", file=sys.stderr)
        return 2

    options = QueryOptions.from_env(
        parser=args.parser,
        base_url=args.base_url,
        log_level=logging.DEBUG if args.verbose else None,
    )
    query = HTMLQuery(options=options)

    results = []

    for filepath in args.files:
        path = Path(filepath)
        print(f"Querying: {path.name}", file=sys.stderr)

        try:
            result = query.parse_file(path, rule)
            results.append({
                "file": path.name,
                "status": "success",
                "result": result
            })
            print("  ✓ done", file=sys.stderr)

        except HTMLQueryError as e:
            results.append({
                "file": path.name,
                "status": "error",
                **e.to_response()
            })
            print(f"  ✗ {type(e).__name__}: {e.message}", file=sys.stderr)

        except OSError as e:
            results.append({
                "file": path.name,
                "status": "error",
                "error": str(e)
            })
            print(f"  ✗ Error: {e}", file=sys.stderr)

    # ensure_ascii=False keeps non-ASCII text readable
    output = json.dumps(results, indent=2, ensure_ascii=False, default=_json_default)

    if args.output:
        Path(args.output).write_text(output)
        print(f"\nSaved to: {args.output}", file=sys.stderr)
    else:
        print(output)

    return 0 if all(r["status"] == "success" for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
