"""
Heuristics shared by the catalog adapters for turning loosely formatted
page text into typed fields.
"""
import html
import re
from typing import Optional
from urllib.parse import urljoin

from rafin.internal.lookup.models import BindingType

_LEADING_INT = re.compile(r"^\s*(\d+)")
_YEAR = re.compile(r"\d{4}")
_ISBN = re.compile(r"^(\d{10}|\d{13})$")
_ISBN_SEPARATORS = re.compile(r"[-\s]")
_BLANK_LINES = re.compile(r"\n\s*\n")
_HTML_TAG = re.compile(r"<[a-zA-Z][^>]*>")


def normalize_isbn(isbn: str) -> str:
    """Strip hyphens and whitespace. Length is not validated here."""
    return _ISBN_SEPARATORS.sub("", isbn)


def is_valid_isbn(isbn: str) -> bool:
    return bool(_ISBN.match(normalize_isbn(isbn)))


def turkish_lower(text: str) -> str:
    # str.lower() turns "İ" into "i" + combining dot, which breaks substring checks
    return text.replace("İ", "i").lower()


def parse_int(value: Optional[str]) -> Optional[int]:
    """Leading integer of ``value`` ("320 sayfa" -> 320). Zero counts as absent."""
    if not value:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    number = int(match.group(1))
    return number or None


def parse_year(value: Optional[str]) -> Optional[int]:
    """First four-digit run in ``value``."""
    if not value:
        return None
    match = _YEAR.search(value)
    if not match:
        return None
    return int(match.group(0)) or None


def parse_binding(value: Optional[str]) -> Optional[BindingType]:
    if not value:
        return None
    lowered = turkish_lower(value)
    if "karton" in lowered or "ciltsiz" in lowered:
        return BindingType.paperback
    if "ciltli" in lowered or "sert" in lowered:
        return BindingType.hardcover
    return None


def clean_isbn(value: Optional[str]) -> str:
    """Return ``value`` as a bare 10/13 digit ISBN, or "" if it is not one."""
    if not value:
        return ""
    candidate = re.sub(r"\s", "", value)
    return candidate if _ISBN.match(candidate) else ""


def absolute_url(url: Optional[str], origin: str) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    if url.startswith("http"):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    return urljoin(origin + "/", url)


def looks_like_html(text: str) -> bool:
    return bool(_HTML_TAG.search(text))


def text_to_html(text: Optional[str]) -> Optional[str]:
    """Convert a plain-text description into paragraphs.

    HTML input is returned unchanged. Plain text is escaped, split on blank
    lines into ``<p>`` blocks, and single newlines become ``<br>``.
    """
    if not text or not text.strip():
        return None
    if looks_like_html(text):
        return text
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = [p.strip() for p in _BLANK_LINES.split(normalized) if p.strip()]
    return "".join(
        "<p>" + "<br>".join(html.escape(line.strip()) for line in p.split("\n")) + "</p>"
        for p in paragraphs
    )
