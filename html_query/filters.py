"""
Built-in filters and the filter registry.

A filter is a plain function ``(value, *args) -> value``.  Arguments arrive as
the raw strings written in the query ("slice:0:10" passes "0" and "10"), so
each filter coerces what it needs.  Filters never raise for odd input: values
they do not apply to pass through unchanged, and soft failures (bad regex,
unparsable size or date) log a warning and return the original value.
"""

import math
import re
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from dateutil import parser as date_parser

from .logger import get_module_logger

logger = get_module_logger("filters")

Filter = Callable[..., Any]

NAN = float("nan")

# First run of digits anywhere in the value ("Price: 42px" → "42")
DIGITS = re.compile(r"\d+")
# First signed decimal ("-3.5 kg" → "-3.5", ".5" → ".5")
DECIMAL = re.compile(r"[+-]?(\d*[.])?\d+")
# Leading integer / float the way a lenient number parser reads a prefix
INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
# Words for title(): a word character followed by anything up to whitespace
WORD = re.compile(r"\w\S*")
# YYYY MM DD [HH:MM[:SS]] with any separators, e.g. "2024年01月15日 08:30"
LOOSE_DATE = re.compile(r"(\d{4})\D*(\d{2})\D*(\d{2})\D*(\d{2}:\d{2}(:\d{2})?)?")
# Amount then unit: "1.5MB", "256 GB", "1,5 KiB"
SIZE = re.compile(r".*?([0-9.,]+)(?:\s*)?(\w*).*")

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,  # str patterns are always unicode
    "g": 0,  # handled by the caller (all matches / replace all)
}


# --- Coercion helpers ---

def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_int_prefix(value: Any) -> Any:
    """Leading integer of str(value), or NaN."""
    if _is_number(value) and math.isfinite(value):
        return int(value)
    match = INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else NAN


def _parse_float_prefix(value: Any) -> float:
    """Leading float of str(value), or NaN."""
    if _is_number(value):
        return float(value)
    match = FLOAT_PREFIX.match(str(value))
    return float(match.group(1)) if match else NAN


def _to_int(arg: Any, default: Optional[int] = None) -> Optional[int]:
    """Coerce a filter argument ("3", "-1", "") to int."""
    if arg is None or arg == "":
        return default
    if isinstance(arg, int):
        return arg
    return int(str(arg).strip())


def _compile(pattern: str, flags: Optional[str]) -> re.Pattern:
    compiled_flags = 0
    for flag in flags or "":
        if flag not in REGEX_FLAGS:
            raise re.error(f"invalid flag {flag!r}")
        compiled_flags |= REGEX_FLAGS[flag]
    return re.compile(pattern, compiled_flags)


def _js_replacement(replacement: str) -> str:
    """Translate $1 / $& back-references to Python's \\g<n> form."""
    replacement = replacement.replace("\\", "\\\\")
    replacement = re.sub(r"\$(\d+)", r"\\g<\1>", replacement)
    return replacement.replace("$&", r"\g<0>")


def is_falsy(value: Any) -> bool:
    """Empty string, 0, NaN, None and False are falsy; everything else is truthy."""
    if value is None or value is False:
        return True
    if _is_number(value):
        return value == 0 or _is_nan(value)
    return isinstance(value, str) and value == ""


# --- Numeric coercion ---

def to_int(value, default=None):
    """
    First run of digits in the value, as an int.

    int("Price: 42px") → 42; int("n/a", "0") → 0; int("n/a") → NaN.
    """
    fallback = value if default is None else default
    match = DIGITS.search(str(value))
    return _parse_int_prefix(match.group(0) if match else fallback)


def to_float(value, default=None):
    """
    First signed decimal in the value, as a float.

    float("-3.5 kg") → -3.5; float("n/a", "0.0") → 0.0; float("n/a") → NaN.
    """
    match = DECIMAL.search(str(value))
    if match:
        return float(match.group(0))
    return _parse_float_prefix(value if default is None else default)


def to_bool(value):
    return not is_falsy(value)


def number(value, decimals="2"):
    """Format as a fixed-decimal string: number("3.14159", "2") → "3.14"."""
    num = _parse_float_prefix(value)
    if _is_nan(num):
        return value
    return f"{num:.{_to_int(decimals, 2)}f}"


# --- Strings ---

def trim(value):
    return value.strip() if isinstance(value, str) else value


def slice_(value, start=None, end=None):
    if isinstance(value, (str, list, tuple)):
        return value[_to_int(start, 0):_to_int(end)]
    return value


def reverse(value):
    return value[::-1] if isinstance(value, str) else value


def regex(value, pattern, flags=None):
    """Every match of pattern in the value, as a list ([] when none match)."""
    if not isinstance(value, str):
        return value
    try:
        compiled = _compile(pattern, flags)
    except re.error as e:
        logger.warning(f"Invalid regex pattern {pattern!r}: {e}")
        return value
    return [match.group(0) for match in compiled.finditer(value)]


def replace(value, search, replacement="", flags=None):
    """
    Replace text.

    Without flags the search is literal and only the first occurrence is
    replaced.  With flags the search is a pattern; "g" replaces every match.
    """
    if not isinstance(value, str):
        return value
    if not flags:
        return value.replace(search, replacement, 1)
    try:
        compiled = _compile(search, flags)
        count = 0 if "g" in flags else 1
        return compiled.sub(_js_replacement(replacement), value, count=count)
    except re.error as e:
        logger.warning(f"Invalid replace pattern {search!r}: {e}")
        return value


def split(value, separator=None, limit=None):
    """Split a string; limit caps the number of pieces returned."""
    if not isinstance(value, str):
        return value
    if separator is None:
        parts = [value]
    elif separator == "":
        parts = list(value)
    else:
        parts = value.split(separator)
    limit = _to_int(limit)
    return parts if limit is None else parts[:max(limit, 0)]


def join(value, separator=","):
    if isinstance(value, (list, tuple)):
        return separator.join("" if item is None else str(item) for item in value)
    return value


def capitalize(value):
    if not isinstance(value, str):
        return value
    return value[:1].upper() + value[1:].lower()


def upper(value):
    return value.upper() if isinstance(value, str) else value


def lower(value):
    return value.lower() if isinstance(value, str) else value


def title(value):
    """Capitalize every whitespace-delimited word."""
    if not isinstance(value, str):
        return value
    return WORD.sub(lambda m: capitalize(m.group(0)), value)


# --- Sequences ---

def length(value):
    if isinstance(value, (str, list, tuple)):
        return len(value)
    return value


def first(value):
    if isinstance(value, (str, list, tuple)):
        return value[0] if value else None
    return value


def last(value):
    if isinstance(value, (str, list, tuple)):
        return value[-1] if value else None
    return value


def unique(value):
    """De-duplicate, keeping the first occurrence of each item."""
    if not isinstance(value, (list, tuple)):
        return value
    result = []
    for item in value:
        if item not in result:
            result.append(item)
    return result


def _sort_key(item: Any) -> tuple:
    # Numbers, then strings, then anything else by its text; None sorts last
    if item is None:
        return (3, "")
    if isinstance(item, (int, float)):
        return (0, item)
    if isinstance(item, str):
        return (1, item)
    return (2, str(item))


def sort(value, order="asc"):
    """Stable sort; any order other than "asc" sorts descending."""
    if not isinstance(value, (list, tuple)):
        return value
    return sorted(value, key=_sort_key, reverse=order != "asc")


def compact(value):
    """Drop None, "", 0 and NaN entries (False is kept)."""
    if not isinstance(value, (list, tuple)):
        return value
    return [
        item for item in value
        if not (item is None or item == "" or _is_nan(item)
                or (_is_number(item) and item == 0))
    ]


# --- Dates and sizes ---

# Two defaults that differ only in the year: a text whose year is missing
# parses differently against each and is rejected.
DATE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 1, 1))


def _native_date(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    try:
        first, second = (date_parser.parse(value, default=d) for d in DATE_DEFAULTS)
    except (ValueError, OverflowError):
        return None
    return first if first == second else None


def _from_epoch_millis(value: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        logger.warning(f"Timestamp {value!r} is out of range for a date")
        return None


def date(value, append=None):
    """
    Parse a date.

    Tries ISO / free-form parsing first, then falls back to pulling
    YYYY MM DD [HH:MM[:SS]] out of the text and re-parsing that with the
    suffix (e.g. a timezone) appended.  Numbers are epoch milliseconds.
    Text without a year is not a date.

    Returns:
        datetime, or None (with a warning) when nothing parses
    """
    if isinstance(value, datetime):
        return value
    if _is_number(value):
        if _is_nan(value):
            logger.warning("Can't interpret NaN as a date")
            return None
        return _from_epoch_millis(value)
    if value is None:
        logger.warning("Can't interpret an empty value as a date")
        return None

    text = str(value)
    if append and isinstance(value, str):
        text += append

    result = _native_date(text.strip())
    if result is None:
        match = LOOSE_DATE.search(str(value))
        if match:
            # A time has to sit between the date and a timezone suffix
            clock = match.group(4) or "00:00"
            rebuilt = f"{match.group(1)}-{match.group(2)}-{match.group(3)} {clock} {append or ''}"
            result = _native_date(rebuilt.strip())

    if result is None:
        logger.warning(f"Can't interpret {value!r} as a date")
    return result


# Unit aliases → bytes.  Lowercase-b "Kb"/"Mb"/... forms are bits.
SIZE_UNITS = [
    (("b", "bit", "bits"), 1 / 8),
    (("B", "Byte", "Bytes", "bytes"), 1),
    (("Kb",), 128),
    (("k", "K", "kb", "KB", "KiB", "Ki", "ki"), 1024),
    (("Mb",), 131072),
    (("m", "M", "mb", "MB", "MiB", "Mi", "mi"), 1024 ** 2),
    (("Gb",), 1.342e8),
    (("g", "G", "gb", "GB", "GiB", "Gi", "gi"), 1024 ** 3),
    (("Tb",), 1.374e11),
    (("t", "T", "tb", "TB", "TiB", "Ti", "ti"), 1024 ** 4),
    (("Pb",), 1.407e14),
    (("p", "P", "pb", "PB", "PiB", "Pi", "pi"), 1024 ** 5),
    (("Eb",), 1.441e17),
    (("e", "E", "eb", "EB", "EiB", "Ei", "ei"), 1024 ** 6),
]


def _round_half_up(amount: float) -> int:
    return int(math.floor(amount + 0.5))


def size(value):
    """
    Parse a human size into bytes.

    size("1.5MB") → 1572864; size("256 GB") → 274877906944; size("1024") → 1024.
    Unknown units and unparsable amounts return the input unchanged.
    """
    if not isinstance(value, str):
        return value

    parsed = SIZE.match(value)
    if not parsed:
        logger.warning(f"Can't interpret {value!r} as a size")
        return value

    amount_text = parsed.group(1).replace(",", ".", 1)
    unit = parsed.group(2)
    try:
        amount = float(amount_text)
    except ValueError:
        amount = None
    if amount is None or not math.isfinite(amount) or any(c.isdigit() for c in unit):
        logger.warning(f"Can't interpret {value or 'a blank string'!r} as a size")
        return value

    if unit == "":
        return _round_half_up(amount)

    for aliases, multiplier in SIZE_UNITS:
        if unit in aliases:
            return _round_half_up(amount * multiplier)

    logger.warning(f"{unit!r} doesn't appear to be a valid size unit")
    return value


BUILTIN_FILTERS: Mapping[str, Filter] = MappingProxyType({
    "int": to_int,
    "float": to_float,
    "bool": to_bool,
    "trim": trim,
    "slice": slice_,
    "reverse": reverse,
    "regex": regex,
    "replace": replace,
    "split": split,
    "join": join,
    "capitalize": capitalize,
    "upper": upper,
    "lower": lower,
    "title": title,
    "length": length,
    "first": first,
    "last": last,
    "unique": unique,
    "sort": sort,
    "compact": compact,
    "number": number,
    "date": date,
    "size": size,
})


class FilterRegistry:
    """
    Read-only table of named filters.

    Built once per top-level evaluation as built-ins overlaid with the
    caller's overrides; the built-in table itself is never modified.
    """

    def __init__(self, filters: Mapping[str, Filter]):
        self._filters = MappingProxyType(dict(filters))

    @classmethod
    def merged(cls, overrides: Optional[Mapping[str, Filter]] = None) -> "FilterRegistry":
        """Built-in filters with overrides layered on top."""
        return cls({**BUILTIN_FILTERS, **(overrides or {})})

    def get(self, name: str) -> Optional[Filter]:
        return self._filters.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def __iter__(self):
        return iter(self._filters)

    def names(self) -> list[str]:
        return list(self._filters)
