"""
Kitapyurdu scraper. ISBN lookups go through the site search and then parse
the first product page; title searches read the search result cards.
"""
import asyncio
import re
from typing import Optional

from aiohttp import ClientError, ClientSession

from rafin.internal.lookup.base import (
    HttpSource,
    load_html,
    select_attr,
    select_inner_html,
    select_text,
)
from rafin.internal.lookup.models import BindingType, BookLookupResult, BookSource
from rafin.internal.lookup.parsing import (
    absolute_url,
    clean_isbn,
    parse_binding,
    parse_int,
    parse_year,
    turkish_lower,
)
from rafin.internal.lookup.sanitize import sanitize_description
from rafin.util.exceptions import handle_external_api_error
from rafin.util.log import logger

ORIGIN = "https://www.kitapyurdu.com"
SEARCH_URL = f"{ORIGIN}/index.php"

_WIDTH_SEGMENT = re.compile(r"/wi:\d+")


def full_size_cover(url: Optional[str]) -> Optional[str]:
    """Drop the ``/wi:NNN`` resize segment to get the original image."""
    if not url:
        return None
    return absolute_url(_WIDTH_SEGMENT.sub("", url), ORIGIN)


def _strip_search_params(href: str) -> str:
    return href.split("&filter_name")[0].split("&s_token")[0]


def parse_product_page(
    html: str, isbn: str, source_url: Optional[str] = None
) -> Optional[BookLookupResult]:
    soup = load_html(html)

    title = select_text(soup, "h1.pr_header__heading")
    if not title:
        return None

    author = select_text(soup, "div.pr_producers__manufacturer a.pr_producers__link")
    publisher = select_text(soup, "div.pr_producers__publisher a.pr_producers__link")
    cover_url = full_size_cover(
        select_attr(soup, "div.pr_images img", "src")
        or select_attr(soup, "img.js-jbox-book-cover", "src")
    )

    page_count: Optional[int] = None
    published_year: Optional[int] = None
    language: Optional[str] = None
    binding_type: Optional[BindingType] = None
    translator: Optional[str] = None

    for row in soup.select("div.pr_attributes div.attributes table tr, .attributes tr"):
        cells = row.find_all("td")
        if not cells:
            continue
        label = turkish_lower(cells[0].get_text().strip())
        value = " ".join(cells[-1].get_text().split())

        if "sayfa" in label:
            page_count = parse_int(value)
        elif "yayın tarihi" in label or "yayin tarihi" in label or "baskı" in label:
            published_year = parse_year(value) or published_year
        elif "dil" in label:
            language = value
        elif "cilt" in label or "kapak" in label:
            binding_type = parse_binding(value) or binding_type
        elif "çevirmen" in label or "cevirmen" in label:
            translator = value

    description = sanitize_description(
        select_inner_html(soup, "#description_text span.info__text")
        or select_inner_html(soup, "span.info__text")
    )

    return BookLookupResult(
        isbn=isbn,
        title=title,
        author=author,
        publisher=publisher or None,
        published_year=published_year,
        page_count=page_count,
        description=description,
        language=language,
        cover_url=cover_url,
        translator=translator or None,
        binding_type=binding_type,
        source_url=source_url,
    )


def parse_search_results(html: str, limit: int = 10) -> list[BookLookupResult]:
    soup = load_html(html)
    results: list[BookLookupResult] = []

    for card in soup.select("div.product-cr")[:limit]:
        title = select_text(card, "div.name.ellipsis a span")
        if not title:
            continue

        author = select_text(card, "div.author span a.alt span") or select_text(
            card, "div.author.compact.ellipsis a.alt"
        )
        publisher = select_text(card, "div.publisher span a.alt span")
        cover_url = full_size_cover(select_attr(card, "a.pr-img-link img", "src"))

        href = select_attr(card, "div.name.ellipsis a", "href")
        source_url = absolute_url(_strip_search_params(href), ORIGIN) if href else None

        # product-info reads "ISBN | DİL | SAYFA | CİLT | KAĞIT" followed by the date
        isbn = ""
        language: Optional[str] = None
        page_count: Optional[int] = None
        product_info = select_text(card, "div.product-info")
        if product_info:
            parts = [part.strip() for part in product_info.split("|")]
            isbn = clean_isbn(parts[0])
            if len(parts) > 1 and parts[1]:
                language = parts[1]
            if len(parts) > 2:
                page_count = parse_int(parts[2])

        results.append(
            BookLookupResult(
                isbn=isbn,
                title=title,
                author=author,
                publisher=publisher or None,
                cover_url=cover_url,
                page_count=page_count,
                language=language,
                source_url=source_url,
            )
        )

    return results


def first_product_link(html: str) -> Optional[str]:
    soup = load_html(html)
    href = select_attr(soup, "div.product-cr div.name.ellipsis a", "href") or select_attr(
        soup, ".product-cr .name a", "href"
    )
    if not href:
        return None
    return absolute_url(_strip_search_params(href), ORIGIN)


class KitapyurduSource(HttpSource):
    source = BookSource.kitapyurdu

    async def _search_page(self, client_session: ClientSession, query: str) -> Optional[str]:
        return await self._fetch_text(
            client_session,
            SEARCH_URL,
            params={"route": "product/search", "filter_name": query},
        )

    async def lookup(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[BookLookupResult]:
        try:
            search_html = await self._search_page(client_session, isbn)
            if search_html is None:
                return None

            product_url = first_product_link(search_html)
            if not product_url:
                logger.debug("Kitapyurdu search returned no products", isbn=isbn)
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
            html = await self._search_page(client_session, query)
            if html is None:
                return []
            return parse_search_results(html, self.settings.lookup.search_result_limit)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "title search", query=query)
            return []
