import asyncio
from typing import Optional

from aiohttp import ClientError, ClientSession

from rafin.internal.lookup.base import HttpSource, load_html, select_attr, select_text
from rafin.internal.lookup.models import BindingType, BookLookupResult, BookSource
from rafin.internal.lookup.parsing import (
    absolute_url,
    parse_binding,
    parse_int,
    parse_year,
    text_to_html,
    turkish_lower,
)
from rafin.internal.lookup.sanitize import sanitize_description
from rafin.util.exceptions import handle_external_api_error
from rafin.util.log import logger

ORIGIN = "https://www.bkmkitap.com"
SEARCH_URL = f"{ORIGIN}/arama"


def parse_product_page(
    html: str, isbn: str, source_url: Optional[str] = None
) -> Optional[BookLookupResult]:
    soup = load_html(html)

    title = select_text(soup, "h1.product-title")
    if not title:
        return None

    page_count: Optional[int] = None
    published_year: Optional[int] = None
    language: Optional[str] = None
    binding_type: Optional[BindingType] = None
    translator: Optional[str] = None

    for row in soup.select(".product-info-list li"):
        label = turkish_lower(select_text(row, ".info-title"))
        value = select_text(row, ".info-text")

        if "sayfa" in label:
            page_count = parse_int(value)
        elif "baskı yılı" in label or "yıl" in label:
            published_year = parse_year(value) or published_year
        elif "dil" in label:
            language = value
        elif "cilt" in label or "kapak" in label:
            binding_type = parse_binding(value) or binding_type
        elif "çevirmen" in label or "tercüme" in label:
            translator = value

    description_node = soup.select_one(".product-description")
    description = (
        sanitize_description(text_to_html(description_node.get_text()))
        if description_node
        else None
    )

    return BookLookupResult(
        isbn=isbn,
        title=title,
        author=select_text(soup, "a.product-author"),
        publisher=select_text(soup, "a.product-publisher") or None,
        published_year=published_year,
        page_count=page_count,
        description=description,
        language=language,
        cover_url=absolute_url(select_attr(soup, "img.product-image", "src"), ORIGIN),
        translator=translator or None,
        binding_type=binding_type,
        source_url=source_url,
    )


def parse_search_results(html: str, limit: int = 10) -> list[BookLookupResult]:
    soup = load_html(html)
    results: list[BookLookupResult] = []

    for item in soup.select(".product-item")[:limit]:
        title = select_text(item, ".product-title, .name a")
        if not title:
            continue

        cover_url = absolute_url(
            select_attr(item, "img.product-img, a.product-img img", "src"), ORIGIN
        )
        results.append(
            BookLookupResult(
                isbn="",
                title=title,
                author=select_text(item, ".product-author, .author a"),
                publisher=select_text(item, ".product-publisher, .publisher a") or None,
                cover_url=cover_url,
                source_url=absolute_url(select_attr(item, "a.product-img", "href"), ORIGIN),
            )
        )

    return results


class BkmKitapSource(HttpSource):
    source = BookSource.bkmkitap

    async def lookup(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[BookLookupResult]:
        try:
            search_html = await self._fetch_text(client_session, SEARCH_URL, params={"q": isbn})
            if search_html is None:
                return None

            product_url = absolute_url(
                select_attr(load_html(search_html), ".product-item a.product-img", "href"),
                ORIGIN,
            )
            if not product_url:
                logger.debug("BKM Kitap search returned no products", isbn=isbn)
                return None

            product_html = await self._fetch_text(client_session, product_url)
            if product_html is None:
                return None

            return parse_product_page(product_html, isbn, source_url=product_url)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "lookup", isbn=isbn)
            return None

    async def lookup_by_url(
        self, client_session: ClientSession, url: str
    ) -> Optional[BookLookupResult]:
        try:
            html = await self._fetch_text(client_session, url)
            if html is None:
                return None
            return parse_product_page(html, "", source_url=url)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "lookup by url", url=url)
            return None

    async def search_by_title(
        self, client_session: ClientSession, query: str
    ) -> list[BookLookupResult]:
        try:
            html = await self._fetch_text(client_session, SEARCH_URL, params={"q": query})
            if html is None:
                return []
            return parse_search_results(html, self.settings.lookup.search_result_limit)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "title search", query=query)
            return []
