from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

NON_CONTENT_TAGS = ["script", "style", "head", "nav", "footer", "iframe", "img"]

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def extract_main_content(html: str) -> str:
    """Return the visible body text of ``html`` on a single line.

    Non-content elements are removed first; documents without a ``<body>``
    fall back to the whole tree.
    """

    if not html or not html.strip():
        return ""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()
    container = soup.body or soup
    return collapse_whitespace(container.get_text(" "))
