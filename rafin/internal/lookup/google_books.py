"""
Google Books API source for ISBN lookups and title search.
"""
import asyncio
from typing import Dict, List, Optional

from aiohttp import ClientError, ClientSession
from pydantic import BaseModel, Field, ValidationError

from rafin.internal.lookup.base import HttpSource
from rafin.internal.lookup.models import BookLookupResult, BookSource
from rafin.internal.lookup.parsing import clean_isbn, parse_int, text_to_html
from rafin.internal.lookup.sanitize import sanitize_description
from rafin.util.exceptions import handle_external_api_error, handle_validation_error
from rafin.util.log import logger

BASE_URL = "https://www.googleapis.com/books/v1/volumes"


class GoogleBooksVolumeInfo(BaseModel):
    """Google Books API volume info response model."""
    title: str = ""
    authors: List[str] = Field(default_factory=list)
    publisher: Optional[str] = None
    publishedDate: Optional[str] = None
    pageCount: Optional[int] = None
    description: Optional[str] = None
    language: Optional[str] = None
    imageLinks: Optional[Dict[str, str]] = None
    industryIdentifiers: Optional[List[Dict[str, str]]] = None


class GoogleBooksItem(BaseModel):
    """Google Books API item response model."""
    volumeInfo: GoogleBooksVolumeInfo


class GoogleBooksResponse(BaseModel):
    """Google Books API search response model."""
    items: List[GoogleBooksItem] = Field(default_factory=list)
    totalItems: int = 0


def extract_isbn(volume_info: GoogleBooksVolumeInfo) -> Optional[str]:
    """Extract ISBN from industry identifiers, preferring ISBN_13."""
    if not volume_info.industryIdentifiers:
        return None

    for wanted in ("ISBN_13", "ISBN_10"):
        for identifier in volume_info.industryIdentifiers:
            if identifier.get("type") == wanted and identifier.get("identifier"):
                return identifier["identifier"]

    return None


def best_cover(image_links: Optional[Dict[str, str]]) -> Optional[str]:
    """Get the best available cover image, upgraded to https."""
    if not image_links:
        return None

    for size in ["extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail"]:
        url = image_links.get(size)
        if url:
            if url.startswith("http://"):
                url = url.replace("http://", "https://", 1)
            return url

    return None


def parse_volume(volume_info: GoogleBooksVolumeInfo) -> BookLookupResult:
    return BookLookupResult(
        isbn=clean_isbn(extract_isbn(volume_info)),
        title=volume_info.title,
        author=", ".join(volume_info.authors),
        publisher=volume_info.publisher,
        published_year=(
            parse_int(volume_info.publishedDate.split("-")[0])
            if volume_info.publishedDate
            else None
        ),
        page_count=volume_info.pageCount,
        # descriptions arrive either as HTML or as plain text with blank-line paragraphs
        description=sanitize_description(text_to_html(volume_info.description)),
        language=volume_info.language,
        cover_url=best_cover(volume_info.imageLinks),
    )


class GoogleBooksSource(HttpSource):
    source = BookSource.google

    def _params(self, query: str, max_results: Optional[int] = None) -> dict[str, str | int]:
        params: dict[str, str | int] = {"q": query}
        if max_results is not None:
            params["maxResults"] = max_results
        if self.settings.lookup.google_books_api_key:
            params["key"] = self.settings.lookup.google_books_api_key
        return params

    async def _volumes(
        self, client_session: ClientSession, params: dict[str, str | int]
    ) -> Optional[GoogleBooksResponse]:
        data = await self._fetch_json(client_session, BASE_URL, params=params)
        if data is None:
            return None
        return GoogleBooksResponse.model_validate(data)

    async def lookup(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[BookLookupResult]:
        try:
            response = await self._volumes(client_session, self._params(f"isbn:{isbn}"))
        except ValidationError as e:
            handle_validation_error(e, "Google Books response", isbn=isbn)
            return None
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "lookup", isbn=isbn)
            return None

        if not response or not response.items:
            logger.debug("No Google Books results", isbn=isbn)
            return None

        result = parse_volume(response.items[0].volumeInfo)
        if not result.isbn:
            result.isbn = isbn
        return result

    async def search_by_title(
        self, client_session: ClientSession, query: str
    ) -> list[BookLookupResult]:
        limit = self.settings.lookup.search_result_limit
        try:
            response = await self._volumes(
                client_session, self._params(f"intitle:{query}", max_results=limit)
            )
        except ValidationError as e:
            handle_validation_error(e, "Google Books response", query=query)
            return []
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "title search", query=query)
            return []

        if not response or not response.items:
            return []

        return [parse_volume(item.volumeInfo) for item in response.items[:limit]]
