import json
from typing import Any, Optional, Protocol, runtime_checkable

import aiohttp
from aiohttp import ClientSession
from bs4 import BeautifulSoup

from rafin.internal.env_settings import Settings
from rafin.internal.lookup.models import BookLookupResult, BookSource
from rafin.util.log import logger


@runtime_checkable
class MetadataSource(Protocol):
    """A catalog that can be asked for a single ISBN."""

    source: BookSource

    async def lookup(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[BookLookupResult]: ...


@runtime_checkable
class UrlLookupSource(Protocol):
    """A catalog whose detail pages can be re-parsed from their address."""

    async def lookup_by_url(
        self, client_session: ClientSession, url: str
    ) -> Optional[BookLookupResult]: ...


@runtime_checkable
class TitleSearchSource(Protocol):
    """A catalog that supports free-text title search."""

    async def search_by_title(
        self, client_session: ClientSession, query: str
    ) -> list[BookLookupResult]: ...


class HttpSource:
    """Common plumbing for adapters: headers, timeouts and status handling.

    Non-2xx responses are logged and reported as ``None``; transport errors
    (``aiohttp.ClientError``, ``asyncio.TimeoutError``) propagate so the
    calling adapter can log them with its own context.
    """

    source: BookSource
    settings: Settings

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    @property
    def name(self) -> str:
        return self.source.display_name

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.settings.lookup.request_timeout)

    def _headers(self) -> dict[str, str]:
        return self.settings.request_headers()

    async def _fetch_text(
        self,
        client_session: ClientSession,
        url: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        async with client_session.get(
            url,
            params=params,
            headers=self._headers(),
            timeout=self._timeout(),
        ) as response:
            if not response.ok:
                logger.warning(
                    f"{self.name} returned {response.status}",
                    source=self.source.value,
                    url=url,
                    status=response.status,
                )
                return None
            return await response.text()

    async def _fetch_json(
        self,
        client_session: ClientSession,
        url: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Optional[Any]:
        async with client_session.get(
            url,
            params=params,
            headers={"Accept": "application/json"},
            timeout=self._timeout(),
        ) as response:
            if not response.ok:
                logger.warning(
                    f"{self.name} returned {response.status}",
                    source=self.source.value,
                    url=url,
                    status=response.status,
                )
                return None
            # content_type=None: some catalogs answer JSON as text/plain
            return await response.json(content_type=None)


def load_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def select_text(node: Any, selector: str) -> str:
    """Whitespace-collapsed text of the first element matching ``selector``, or ""."""
    element = node.select_one(selector)
    if element is None:
        return ""
    return " ".join(element.get_text().split())


def select_attr(node: Any, selector: str, attr: str) -> Optional[str]:
    element = node.select_one(selector)
    if element is None:
        return None
    value = element.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    return value or None


def select_inner_html(node: Any, selector: str) -> Optional[str]:
    element = node.select_one(selector)
    if element is None:
        return None
    inner = element.decode_contents().strip()
    return inner or None


def next_data(html: str) -> Optional[dict[str, Any]]:
    """The JSON payload Next.js pages embed in ``script#__NEXT_DATA__``."""
    script = load_html(html).select_one("script#__NEXT_DATA__")
    if script is None or not script.string:
        return None
    try:
        data = json.loads(script.string)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
