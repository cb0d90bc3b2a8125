import asyncio
from typing import Dict, List, Optional

from aiohttp import ClientError, ClientSession
from pydantic import BaseModel, Field, RootModel, ValidationError

from rafin.internal.lookup.base import HttpSource
from rafin.internal.lookup.models import BookLookupResult, BookSource
from rafin.internal.lookup.parsing import clean_isbn, parse_year
from rafin.util.exceptions import handle_external_api_error, handle_validation_error
from rafin.util.log import logger

BASE_URL = "https://openlibrary.org"
COVERS_URL = "https://covers.openlibrary.org/b/id"


class OpenLibraryNamed(BaseModel):
    name: str = ""


class OpenLibraryCover(BaseModel):
    small: Optional[str] = None
    medium: Optional[str] = None
    large: Optional[str] = None


class OpenLibraryBook(BaseModel):
    """Record shape returned by ``/api/books?jscmd=data``."""
    title: str = ""
    authors: List[OpenLibraryNamed] = Field(default_factory=list)
    publishers: List[OpenLibraryNamed] = Field(default_factory=list)
    publish_date: Optional[str] = None
    number_of_pages: Optional[int] = None
    cover: Optional[OpenLibraryCover] = None


OpenLibraryBooks = RootModel[Dict[str, OpenLibraryBook]]


class OpenLibraryDoc(BaseModel):
    title: str = ""
    author_name: List[str] = Field(default_factory=list)
    publisher: List[str] = Field(default_factory=list)
    first_publish_year: Optional[int] = None
    number_of_pages_median: Optional[int] = None
    isbn: List[str] = Field(default_factory=list)
    cover_i: Optional[int] = None


class OpenLibrarySearchResponse(BaseModel):
    docs: List[OpenLibraryDoc] = Field(default_factory=list)


def parse_book(book: OpenLibraryBook, isbn: str) -> BookLookupResult:
    cover = book.cover or OpenLibraryCover()
    return BookLookupResult(
        isbn=isbn,
        title=book.title,
        author=", ".join(a.name for a in book.authors if a.name),
        publisher=book.publishers[0].name if book.publishers else None,
        published_year=parse_year(book.publish_date),
        page_count=book.number_of_pages,
        cover_url=cover.medium or cover.large,
    )


def parse_doc(doc: OpenLibraryDoc) -> BookLookupResult:
    return BookLookupResult(
        isbn=clean_isbn(doc.isbn[0]) if doc.isbn else "",
        title=doc.title,
        author=", ".join(doc.author_name),
        publisher=doc.publisher[0] if doc.publisher else None,
        published_year=doc.first_publish_year,
        page_count=doc.number_of_pages_median,
        cover_url=f"{COVERS_URL}/{doc.cover_i}-M.jpg" if doc.cover_i else None,
    )


class OpenLibrarySource(HttpSource):
    source = BookSource.openlibrary

    async def lookup(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[BookLookupResult]:
        bibkey = f"ISBN:{isbn}"
        try:
            data = await self._fetch_json(
                client_session,
                f"{BASE_URL}/api/books",
                params={"bibkeys": bibkey, "format": "json", "jscmd": "data"},
            )
            if data is None:
                return None
            books = OpenLibraryBooks.model_validate(data).root
        except ValidationError as e:
            handle_validation_error(e, "Open Library response", isbn=isbn)
            return None
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "lookup", isbn=isbn)
            return None

        book = books.get(bibkey)
        if book is None:
            logger.debug("No Open Library record", isbn=isbn)
            return None
        return parse_book(book, isbn)

    async def search_by_title(
        self, client_session: ClientSession, query: str
    ) -> list[BookLookupResult]:
        limit = self.settings.lookup.search_result_limit
        try:
            data = await self._fetch_json(
                client_session,
                f"{BASE_URL}/search.json",
                params={"title": query, "limit": limit},
            )
            if data is None:
                return []
            response = OpenLibrarySearchResponse.model_validate(data)
        except ValidationError as e:
            handle_validation_error(e, "Open Library search response", query=query)
            return []
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            handle_external_api_error(e, self.name, "title search", query=query)
            return []

        return [parse_doc(doc) for doc in response.docs[:limit] if doc.title]
