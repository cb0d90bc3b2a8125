"""
İdefix scraper. The site is a Next.js app, so both search and product pages
carry their data in the ``__NEXT_DATA__`` JSON blob rather than in markup.
"""
import asyncio
import re
from typing import Any, List, Optional

from aiohttp import ClientError, ClientSession
from pydantic import BaseModel, Field, ValidationError, field_validator

from rafin.internal.lookup.base import HttpSource, load_html, next_data
from rafin.internal.lookup.models import BindingType, BookLookupResult, BookSource
from rafin.internal.lookup.parsing import clean_isbn, turkish_lower
from rafin.internal.lookup.sanitize import sanitize_description
from rafin.util.exceptions import handle_external_api_error, handle_validation_error
from rafin.util.log import logger

ORIGIN = "https://www.idefix.com"
SEARCH_URL = f"{ORIGIN}/search"
BOOK_CATEGORY = "100001"

_PAGE_COUNT = re.compile(r"sayfa\s*sayı?s[ıi]\s*:?\s*(\d+)", re.IGNORECASE)
_PRINT_YEAR = re.compile(r"bask[ıi]\s*y[ıi]l[ıi]\s*:?\s*(\d{4})", re.IGNORECASE)
_ANY_YEAR = re.compile(r"(\d{4})")
_LANGUAGE = re.compile(r"dil[i]?\s*:?\s*(\w+)", re.IGNORECASE)
_TRANSLATOR = re.compile(r"[Çç]evirmen\s*:\s*([^<]+)", re.IGNORECASE)


# Next.js page data uses null freely, so every field here is nullable
class IdefixImage(BaseModel):
    src: Optional[str] = None


class IdefixProperty(BaseModel):
    text: Optional[str] = None
    valueText: Optional[str] = None


class IdefixVariant(BaseModel):
    name: Optional[str] = None
    originalName: Optional[str] = None
    authorName: Optional[str] = None
    handleUrl: Optional[str] = None
    images: List[IdefixImage] = Field(default_factory=list)
    properties: List[IdefixProperty] = Field(default_factory=list)

    @field_validator("images", "properties", mode="before")
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class IdefixSearchItem(BaseModel):
    brandName: Optional[str] = None
    isBook: Optional[bool] = None
    variants: List[IdefixVariant] = Field(default_factory=list)

    @field_validator("variants", mode="before")
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class IdefixProductDetail(BaseModel):
    barcode: Optional[str] = None
    title: Optional[str] = None
    brandName: Optional[str] = None
    authorName: Optional[str] = None
    description: Optional[str] = None
    subDescription: Optional[str] = None
    images: List[IdefixImage] = Field(default_factory=list)

    @field_validator("images", mode="before")
    @classmethod
    def null_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class DescriptionFacts(BaseModel):
    page_count: Optional[int] = None
    published_year: Optional[int] = None
    language: Optional[str] = None
    binding_type: Optional[BindingType] = None


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def search_items(html: str) -> list[IdefixSearchItem]:
    items = _dig(next_data(html), "props", "pageProps", "data", "searchResult", "items")
    if not isinstance(items, list):
        return []
    parsed: list[IdefixSearchItem] = []
    for item in items:
        try:
            parsed.append(IdefixSearchItem.model_validate(item))
        except ValidationError as e:
            handle_validation_error(e, "İdefix search item")
    return parsed


def product_detail(html: str) -> Optional[IdefixProductDetail]:
    detail = _dig(next_data(html), "props", "pageProps", "productDetail")
    if not isinstance(detail, dict):
        return None
    return IdefixProductDetail.model_validate(detail)


def cover_from_images(images: list[IdefixImage], size: str = "600/0/") -> Optional[str]:
    """Image URLs are templates like ``.../resize/{size}product/...``."""
    if not images or not images[0].src:
        return None
    return images[0].src.replace("{size}", size)


def parse_description(description_html: str) -> DescriptionFacts:
    text = load_html(description_html).get_text(" ")
    facts = DescriptionFacts()

    if match := _PAGE_COUNT.search(text):
        facts.page_count = int(match.group(1)) or None

    if match := _PRINT_YEAR.search(text) or _ANY_YEAR.search(text):
        facts.published_year = int(match.group(1)) or None

    if match := _LANGUAGE.search(text):
        facts.language = match.group(1)

    lowered = turkish_lower(text)
    if "ciltsiz" in lowered or "karton" in lowered:
        facts.binding_type = BindingType.paperback
    elif "ciltli" in lowered or "sert" in lowered:
        facts.binding_type = BindingType.hardcover

    return facts


def parse_translator(sub_description: Optional[str]) -> Optional[str]:
    if not sub_description:
        return None
    match = _TRANSLATOR.search(sub_description)
    if not match:
        return None
    return match.group(1).strip() or None


def variant_properties(
    variant: IdefixVariant,
) -> tuple[Optional[str], Optional[BindingType]]:
    """Language and binding from a variant's property list."""
    language: Optional[str] = None
    binding_type: Optional[BindingType] = None
    for prop in variant.properties:
        label = turkish_lower(prop.text or "")
        value = turkish_lower(prop.valueText or "")
        if "dil" in label and prop.valueText:
            language = prop.valueText
        if "format" in label:
            if "ciltsiz" in value:
                binding_type = BindingType.paperback
            elif "ciltli" in value:
                binding_type = BindingType.hardcover
    return language, binding_type


def build_result(
    detail: IdefixProductDetail,
    isbn: str,
    variant: Optional[IdefixVariant] = None,
    cover_size: str = "600/0/",
    source_url: Optional[str] = None,
) -> Optional[BookLookupResult]:
    facts = parse_description(detail.description) if detail.description else DescriptionFacts()

    language = facts.language
    binding_type = facts.binding_type
    if variant is not None:
        variant_language, variant_binding = variant_properties(variant)
        language = language or variant_language
        binding_type = binding_type or variant_binding

    title = detail.title or (variant.originalName or variant.name if variant else "") or ""
    if not title:
        return None

    return BookLookupResult(
        isbn=clean_isbn(detail.barcode) or isbn,
        title=title,
        original_title=variant.originalName if variant else None,
        author=detail.authorName or (variant.authorName if variant else None) or "",
        publisher=detail.brandName,
        published_year=facts.published_year,
        page_count=facts.page_count,
        description=sanitize_description(detail.description),
        language=language,
        cover_url=cover_from_images(detail.images, cover_size),
        translator=parse_translator(detail.subDescription),
        binding_type=binding_type,
        source_url=source_url,
    )


class IdefixSource(HttpSource):
    source = BookSource.idefix

    async def _search(
        self, client_session: ClientSession, query: str
    ) -> list[IdefixSearchItem]:
        html = await self._fetch_text(
            client_session, SEARCH_URL, params={"q": query, "cat": BOOK_CATEGORY}
        )
        if html is None:
            return []
        return search_items(html)

    async def _detail(
        self, client_session: ClientSession, url: str
    ) -> Optional[IdefixProductDetail]:
        html = await self._fetch_text(client_session, url)
        if html is None:
            return None
        return product_detail(html)

    async def lookup(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[BookLookupResult]:
        try:
            items = await self._search(client_session, isbn)
            if not items or not items[0].variants:
                logger.debug("İdefix search returned no products", isbn=isbn)
                return None

            variant = items[0].variants[0]
            if not variant.handleUrl:
                return None

            detail_url = f"{ORIGIN}{variant.handleUrl}"
            detail = await self._detail(client_session, detail_url)
            if detail is None:
                return None

            return build_result(
                detail,
                isbn,
                variant=variant,
                cover_size=self.settings.lookup.idefix_cover_size,
                source_url=detail_url,
            )
        except ValidationError as e:
            handle_validation_error(e, "İdefix page data", isbn=isbn)
            return None
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "lookup", isbn=isbn)
            return None

    async def lookup_by_url(
        self, client_session: ClientSession, url: str
    ) -> Optional[BookLookupResult]:
        try:
            detail = await self._detail(client_session, url)
            if detail is None:
                return None
            return build_result(
                detail,
                "",
                cover_size=self.settings.lookup.idefix_cover_size,
                source_url=url,
            )
        except ValidationError as e:
            handle_validation_error(e, "İdefix page data", url=url)
            return None
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "lookup by url", url=url)
            return None

    async def search_by_title(
        self, client_session: ClientSession, query: str
    ) -> list[BookLookupResult]:
        try:
            items = await self._search(client_session, query)
        except ValidationError as e:
            handle_validation_error(e, "İdefix search data", query=query)
            return []
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "title search", query=query)
            return []

        results: list[BookLookupResult] = []
        for item in items[: self.settings.lookup.search_result_limit]:
            if not item.isBook or not item.variants:
                continue
            variant = item.variants[0]
            title = variant.originalName or variant.name
            if not title:
                continue
            language, binding_type = variant_properties(variant)
            results.append(
                BookLookupResult(
                    isbn="",
                    title=title,
                    original_title=variant.originalName,
                    author=variant.authorName or "",
                    publisher=item.brandName,
                    cover_url=cover_from_images(
                        variant.images, self.settings.lookup.idefix_cover_size
                    ),
                    language=language,
                    binding_type=binding_type,
                    source_url=f"{ORIGIN}{variant.handleUrl}" if variant.handleUrl else None,
                )
            )
        return results
