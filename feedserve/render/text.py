"""HTML cleanup and plain-text helpers used by every renderer."""

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

# Elements that never belong in syndicated content
STRIP_TAGS = ("script", "style", "form", "input", "textarea", "select", "button")

ABSOLUTE_URL = re.compile(r"^([a-z][a-z0-9+.-]*:|//|#)", re.IGNORECASE)

WHITESPACE = re.compile(r"\s+")

EXCERPT_WORDS = 55


def clean_html(html: str, base_url: str) -> str:
    """
    Prepare post HTML for feed readers.

    Removes scripts, styles, form controls and empty paragraphs, and rewrites
    relative ``href``/``src`` attributes to absolute URLs under ``base_url``.

    Args:
        html: Item body HTML
        base_url: Site root used to resolve relative links

    Returns:
        Cleaned HTML
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(STRIP_TAGS):
        # Form controls inside a removed <form> are already gone
        if not tag.decomposed:
            tag.decompose()

    for paragraph in soup.find_all("p"):
        if not paragraph.get_text().replace("\xa0", " ").strip() and not paragraph.find(
            True
        ):
            paragraph.decompose()

    root = base_url.rstrip("/") + "/"
    for attr in ("href", "src"):
        for tag in soup.find_all(attrs={attr: True}):
            value = tag[attr].strip()
            if value and not ABSOLUTE_URL.match(value):
                tag[attr] = urljoin(root, value)

    return str(soup).strip()


def strip_html(html: str) -> str:
    """Plain text of an HTML fragment with whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return WHITESPACE.sub(" ", text).strip()


def smart_excerpt(text: str, length: int = EXCERPT_WORDS) -> str:
    """
    First ``length`` words of ``text``.

    Ends at the last sentence boundary when it falls in the final 30% of the
    cut, otherwise appends an ellipsis.
    """
    words = text.split()
    if len(words) <= length:
        return " ".join(words)

    excerpt = " ".join(words[:length])
    last_end = max(excerpt.rfind("."), excerpt.rfind("!"), excerpt.rfind("?"))
    if last_end > 0 and last_end > len(excerpt) * 0.7:
        return excerpt[: last_end + 1]
    return excerpt + "…"
