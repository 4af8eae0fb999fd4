"""Shared fixtures for the HTML Query tests."""

import pytest

from html_query.document import load_document
from html_query.query_cache import QueryCache
from html_query.query_parser import QueryParser


SAMPLE_HTML = """
<html>
<head><title>Sample page</title></head>
<body>
  <h1 class="title main">  Hello there!  </h1>
  <a class="next" href="/?page=2">Next</a>
  <span class="price">  42px  </span>
  <ul id="number">
    <li data-id="1">123</li>
    <li data-id="2">8989</li>
    <li data-id="3">344</li>
  </ul>
  <div class="item"><span class="name">Alpha</span><span class="size">1.5MB</span></div>
  <div class="item"><span class="name">Beta</span><span class="size">256 GB</span></div>
  <div class="item"><span class="name">Gamma</span><span class="size">1024</span></div>
  <p class="intro">Hello <b>world</b>!</p>
  <p class="meta"><b>Posted:</b> 2024-01-15 <i>by admin</i></p>
  <p class="empty"></p>
</body>
</html>
"""


@pytest.fixture
def parser():
    """A QueryParser with its own cache, so tests never share entries."""
    return QueryParser(cache=QueryCache())


@pytest.fixture
def page():
    return load_document(SAMPLE_HTML)
