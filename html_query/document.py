"""
Document scopes over BeautifulSoup trees.

A scope is the current root for selection: the whole document, or one
previously matched element treated as a sub-root.  The evaluator only needs
four things from it:

    select(selector)         → ordered list of nodes (None → the scope node itself)
    extract(node, attr)      → one value from one node
    extract_all(nodes, attr) → parallel list of values
    scope_for(node)          → a fresh scope rooted at node

Pseudo-attributes understood by extract():
    text      all descendant text (default)
    html      inner markup
    outerHtml markup including the node itself
    string    the node's own text children only, no descendant markup
    nextNode  trimmed text of the next non-blank sibling text node
Anything else is looked up as a literal markup attribute.
"""

import codecs
import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString
from bs4.element import PreformattedString, Tag
from soupsieve import SelectorSyntaxError

from .schemas import SUPPORTED_PARSERS
from .exceptions import SelectorError, ValidationError
from .logger import get_module_logger

logger = get_module_logger("document")

DEFAULT_ATTRIBUTE = "text"

# Link-bearing attributes rewritten to absolute URLs when a base URL is known
URL_ATTRIBUTES = [
    ("a", "href"),
    ("img", "src"),
    ("link", "href"),
    ("script", "src"),
]

# WHATWG encoding spec: browsers silently remap these charsets.
# https://encoding.spec.whatwg.org/#names-and-labels
WHATWG_CHARSET_MAP = {
    'iso-8859-1': 'windows-1252',
    'iso8859-1': 'windows-1252',
    'iso88591': 'windows-1252',
    'latin-1': 'windows-1252',
    'latin1': 'windows-1252',
    'us-ascii': 'windows-1252',
    'ascii': 'windows-1252',
    'iso-8859-9': 'windows-1254',
    'iso-8859-11': 'cp874',
}


def detect_charset_from_bytes(raw_bytes: bytes) -> str:
    """
    Detect charset from raw HTML bytes by scanning the first 2048 bytes
    for <meta charset=...> or <meta http-equiv="Content-Type" content="...; charset=...">.

    Applies WHATWG browser charset mapping (e.g. iso-8859-1 → windows-1252)
    so that decoded text matches what a browser displays.

    Returns the browser-equivalent charset, or 'utf-8' when none is declared
    or the declared one is not a known codec.
    """
    # Charset declarations must appear within the first 1024 bytes
    head_str = raw_bytes[:2048].decode('ascii', errors='ignore')

    charset = None

    # Modern form first: <meta charset="...">
    m = re.search(r'<meta[^>]+charset=["\']?\s*([^\s"\';>]+)', head_str, re.IGNORECASE)
    if m:
        charset = m.group(1).strip().lower()

    # Legacy: <meta http-equiv="Content-Type" content="...; charset=...">
    if not charset:
        m = re.search(
            r'<meta[^>]+content=["\'][^"\']*charset=([^\s"\';>]+)',
            head_str, re.IGNORECASE
        )
        if m:
            charset = m.group(1).strip().lower()

    if not charset:
        return 'utf-8'

    charset = WHATWG_CHARSET_MAP.get(charset, charset)
    try:
        codecs.lookup(charset)
    except LookupError:
        logger.warning(f"Unknown charset {charset!r} declared, decoding as utf-8")
        return 'utf-8'
    return charset


def _is_text(node) -> bool:
    # Comments, CDATA, doctypes etc. are NavigableStrings too; skip them
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


class BaseScope(ABC):
    """Abstract selection scope the evaluator runs against."""

    @abstractmethod
    def select(self, selector: Optional[str]) -> list:
        """Nodes matching selector in document order; None → [scope node]."""
        pass

    @abstractmethod
    def extract(self, node, attribute: Optional[str] = None) -> Any:
        """Extract one value (pseudo-attribute or markup attribute) from node."""
        pass

    def extract_all(self, nodes: list, attribute: Optional[str] = None) -> list:
        """Extract attribute from every node, preserving order."""
        return [self.extract(node, attribute) for node in nodes]

    @abstractmethod
    def scope_for(self, node) -> "BaseScope":
        """A new scope rooted at node, for nested selection."""
        pass

    def parse(self, rule, filters=None):
        """Evaluate a rule against this scope."""
        # Imported here: evaluator depends on this module
        from .evaluator import evaluate
        return evaluate(rule, self, filters)


class SoupScope(BaseScope):
    """Scope backed by a BeautifulSoup document or Tag."""

    def __init__(self, node: Tag):
        if not isinstance(node, Tag):
            raise ValidationError(
                f"Scope root must be a BeautifulSoup Tag, got {type(node).__name__}",
                "scope",
                node
            )
        self.node = node

    def select(self, selector: Optional[str]) -> list:
        if selector is None:
            return [self.node]
        try:
            return self.node.select(selector)
        except SelectorSyntaxError as e:
            logger.error(f"Invalid CSS '{selector}': {e}")
            raise SelectorError(f"Invalid selector {selector!r}: {e}", selector) from e

    def extract(self, node, attribute: Optional[str] = None) -> Any:
        if node is None:
            return None
        attribute = attribute or DEFAULT_ATTRIBUTE

        if attribute == "text":
            return node.get_text()
        if attribute == "html":
            return node.decode_contents()
        if attribute == "outerHtml":
            return str(node)
        if attribute == "string":
            return "".join(str(child) for child in node.children if _is_text(child))
        if attribute == "nextNode":
            return self._next_text(node)

        value = node.get(attribute)
        # Multi-valued attributes (class, rel) come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return value

    def _next_text(self, node) -> Optional[str]:
        sibling = node.next_sibling
        while sibling is not None:
            if _is_text(sibling) and sibling.strip():
                return sibling.strip()
            sibling = sibling.next_sibling
        return None

    def scope_for(self, node) -> "SoupScope":
        return SoupScope(node)

    def __repr__(self) -> str:
        name = getattr(self.node, "name", None)
        return f"SoupScope(<{name}>)"


def make_absolute_urls(soup: BeautifulSoup, base_url: str) -> int:
    """
    Rewrite link attributes to absolute URLs against base_url.

    Returns the number of attributes rewritten.
    """
    count = 0
    for tag_name, attribute in URL_ATTRIBUTES:
        for elem in soup.find_all(tag_name):
            value = elem.get(attribute)
            if isinstance(value, str):
                elem[attribute] = urljoin(base_url, value)
                count += 1
    logger.debug(f"Rewrote {count} relative URLs against {base_url}")
    return count


def load_document(
    html: Union[str, bytes],
    base_url: Optional[str] = None,
    parser: str = "html5lib",
    keep_relative_urls: bool = False
) -> SoupScope:
    """
    Parse markup into a document scope.

    Args:
        html: HTML/XML string or bytes
        base_url: URL the document came from; relative links are resolved
            against it unless keep_relative_urls is set
        parser: BeautifulSoup tree builder ("html5lib", "lxml", "html.parser", "xml")
        keep_relative_urls: Leave href/src attributes as written

    Returns:
        SoupScope rooted at the document
    """
    if html is None:
        raise ValidationError("Document markup is required", "html", html)
    if parser not in SUPPORTED_PARSERS:
        raise ValidationError(
            f"Unsupported parser {parser!r}; use one of {', '.join(SUPPORTED_PARSERS)}",
            "parser",
            parser
        )

    soup = BeautifulSoup(html, parser)
    if base_url and not keep_relative_urls:
        make_absolute_urls(soup, base_url)
    return SoupScope(soup)
