from typing import Annotated, Any, Optional

from aiohttp import ClientSession
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from rafin.internal.lookup import BookLookupResult, BookLookupService, BookSource
from rafin.internal.lookup.parsing import is_valid_isbn, normalize_isbn
from rafin.util.connection import get_connection
from rafin.util.log import logger

router = APIRouter(prefix="/book-lookup", tags=["Book lookup"])


def get_lookup_service(request: Request) -> BookLookupService:
    return request.app.state.lookup_service


def _serialize(book: BookLookupResult) -> dict[str, Any]:
    return book.model_dump(mode="json", by_alias=True, exclude_none=True)


def _parse_source(service: BookLookupService, source: Optional[str]) -> Optional[BookSource]:
    if not source:
        return None
    if source not in service.available_sources:
        available = ", ".join(s.value for s in service.available_sources)
        raise HTTPException(
            status_code=400, detail=f"Invalid source. Available sources: {available}"
        )
    return BookSource(source)


@router.get("")
async def lookup_book(
    client_session: Annotated[ClientSession, Depends(get_connection)],
    service: Annotated[BookLookupService, Depends(get_lookup_service)],
    isbn: Annotated[str, Query()] = "",
    source: Annotated[Optional[str], Query()] = None,
):
    if not isbn:
        raise HTTPException(status_code=400, detail="ISBN is required")

    normalized = normalize_isbn(isbn)
    if not is_valid_isbn(normalized):
        raise HTTPException(
            status_code=400, detail="Invalid ISBN format. Must be 10 or 13 digits."
        )

    selected = _parse_source(service, source)
    try:
        if selected is not None:
            book = await service.lookup(client_session, normalized, selected)
            if book is None:
                raise HTTPException(status_code=404, detail="Book not found")
            return {"book": _serialize(book), "source": selected.value}

        found = await service.lookup_all_sources(client_session, normalized)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Book lookup error", isbn=normalized, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to lookup book")

    if found is None:
        raise HTTPException(status_code=404, detail="Book not found in any source")
    found_source, book = found
    return {"book": _serialize(book), "source": found_source.value}


@router.get("/search")
async def search_books(
    client_session: Annotated[ClientSession, Depends(get_connection)],
    service: Annotated[BookLookupService, Depends(get_lookup_service)],
    q: Annotated[str, Query()] = "",
    source: Annotated[Optional[str], Query()] = None,
):
    query = q.strip()
    if len(query) < 2:
        raise HTTPException(
            status_code=400, detail="Search query must be at least 2 characters"
        )

    selected = _parse_source(service, source)
    try:
        books = await service.search_by_title(client_session, query, selected)
    except Exception as e:
        logger.error("Book title search error", query=query, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to search books")

    return {"books": [_serialize(book) for book in books]}


@router.get("/detail")
async def book_detail(
    client_session: Annotated[ClientSession, Depends(get_connection)],
    service: Annotated[BookLookupService, Depends(get_lookup_service)],
    url: Annotated[str, Query()] = "",
):
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")

    try:
        book = await service.lookup_by_url(client_session, url)
    except Exception as e:
        logger.error("Book detail lookup error", url=url, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to lookup book details")

    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return {"book": _serialize(book)}


@router.get("/sources")
async def list_sources(
    service: Annotated[BookLookupService, Depends(get_lookup_service)],
):
    return {
        "sources": [
            {"id": source.value, "name": source.display_name}
            for source in service.available_sources
        ]
    }
