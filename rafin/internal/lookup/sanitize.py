from typing import Optional

from bleach.sanitizer import Cleaner
from bs4 import BeautifulSoup

ALLOWED_TAGS = frozenset(
    {
        "p",
        "br",
        "b",
        "strong",
        "i",
        "em",
        "u",
        "ul",
        "ol",
        "li",
        "h2",
        "h3",
        "a",
        "blockquote",
    }
)

ALLOWED_ATTRIBUTES = {"a": ["href", "target", "rel"]}

# Removed together with their contents; bleach's strip mode would keep the text
DISCARDED_TAGS = ("script", "style", "noscript", "template")

_cleaner = Cleaner(
    tags=ALLOWED_TAGS,
    attributes=ALLOWED_ATTRIBUTES,
    strip=True,
    strip_comments=True,
)


def _prepare(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(DISCARDED_TAGS):
        element.decompose()
    for link in soup.find_all("a", href=True):
        link["target"] = "_blank"
        link["rel"] = "noopener noreferrer"
    return str(soup)


def sanitize_description(html: Optional[str]) -> Optional[str]:
    """Restrict a description to a small, safe HTML subset.

    Existing links are forced to open in a new tab. Bare URLs in the text
    are left as text.
    """
    if not html:
        return None
    result = _cleaner.clean(_prepare(html)).strip()
    return result or None
