"""
Book metadata lookup across the configured catalogs.

`BookLookupService` owns the result cache and the adapter registry. Lookups
run sequentially in priority order and stop at the first catalog that knows
the book; title searches query every catalog and merge the results.
"""
import asyncio
from typing import Mapping, Optional, Sequence

from aiohttp import ClientSession

from rafin.internal.env_settings import Settings
from rafin.internal.lookup.base import MetadataSource, TitleSearchSource, UrlLookupSource
from rafin.internal.lookup.bkmkitap import BkmKitapSource
from rafin.internal.lookup.google_books import GoogleBooksSource
from rafin.internal.lookup.idefix import IdefixSource
from rafin.internal.lookup.kitapyurdu import KitapyurduSource
from rafin.internal.lookup.models import BookLookupResult, BookSource
from rafin.internal.lookup.openlibrary import OpenLibrarySource
from rafin.internal.lookup.parsing import normalize_isbn
from rafin.util.cache import MISSING, SimpleCache
from rafin.util.log import logger

LookupCache = SimpleCache[Optional[BookLookupResult], BookSource, str]

REGIONAL_PRIORITY: tuple[BookSource, ...] = (
    BookSource.kitapyurdu,
    BookSource.bkmkitap,
    BookSource.idefix,
    BookSource.google,
    BookSource.openlibrary,
)
INTERNATIONAL_PRIORITY: tuple[BookSource, ...] = (
    BookSource.google,
    BookSource.openlibrary,
    BookSource.kitapyurdu,
    BookSource.bkmkitap,
    BookSource.idefix,
)
# ISBN prefixes assigned to Turkish publishers
REGIONAL_PREFIXES = ("975", "978975")

SEARCH_ORDER = REGIONAL_PRIORITY

URL_DOMAINS: tuple[tuple[str, BookSource], ...] = (
    ("kitapyurdu.com", BookSource.kitapyurdu),
    ("bkmkitap.com", BookSource.bkmkitap),
    ("idefix.com", BookSource.idefix),
)


class UnknownSourceError(ValueError):
    pass


def priority_for(isbn: str) -> tuple[BookSource, ...]:
    if normalize_isbn(isbn).startswith(REGIONAL_PREFIXES):
        return REGIONAL_PRIORITY
    return INTERNATIONAL_PRIORITY


def source_for_url(url: str) -> Optional[BookSource]:
    for domain, source in URL_DOMAINS:
        if domain in url:
            return source
    return None


def dedupe_results(results: Sequence[BookLookupResult]) -> list[BookLookupResult]:
    """Drop repeated title+author pairs, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[BookLookupResult] = []
    for book in results:
        key = book.dedupe_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(book)
    return unique


def build_default_sources(settings: Optional[Settings] = None) -> dict[BookSource, MetadataSource]:
    settings = settings or Settings()
    adapters: list[MetadataSource] = [
        KitapyurduSource(settings),
        BkmKitapSource(settings),
        IdefixSource(settings),
        GoogleBooksSource(settings),
        OpenLibrarySource(settings),
    ]
    return {adapter.source: adapter for adapter in adapters}


class BookLookupService:
    _sources: dict[BookSource, MetadataSource]
    _cache: LookupCache
    _cache_ttl: int
    _inflight: dict[tuple[BookSource, str], "asyncio.Task[Optional[BookLookupResult]]"]

    def __init__(
        self,
        sources: Mapping[BookSource, MetadataSource],
        cache: Optional[LookupCache] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or Settings()
        self._sources = dict(sources)
        self._cache = cache if cache is not None else LookupCache(
            maxsize=settings.lookup.cache_maxsize
        )
        self._cache_ttl = settings.lookup.cache_ttl
        self._inflight = {}

    @property
    def available_sources(self) -> tuple[BookSource, ...]:
        return tuple(source for source in SEARCH_ORDER if source in self._sources) + tuple(
            source for source in self._sources if source not in SEARCH_ORDER
        )

    @property
    def cache(self) -> LookupCache:
        return self._cache

    def cache_stats(self) -> dict[str, float | int]:
        metrics = self._cache.get_metrics()
        return {
            "entries": self._cache.size(),
            "hits": metrics.hits,
            "misses": metrics.misses,
            "hit_rate": round(metrics.hit_rate(), 1),
            "expirations": metrics.expirations,
            "evictions": metrics.evictions,
        }

    def _resolve(self, source: BookSource | str) -> MetadataSource:
        try:
            key = BookSource(source)
        except ValueError:
            raise UnknownSourceError(f"Unknown source: {source}")
        adapter = self._sources.get(key)
        if adapter is None:
            raise UnknownSourceError(f"Unknown source: {source}")
        return adapter

    async def _call_adapter(
        self, client_session: ClientSession, adapter: MetadataSource, isbn: str
    ) -> Optional[BookLookupResult]:
        try:
            result = await adapter.lookup(client_session, isbn)
        except Exception as e:
            logger.error(
                "Source lookup raised",
                source=adapter.source.value,
                isbn=isbn,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = None

        if result is not None and result.is_empty():
            result = None

        # Negative results are cached too so a missing book is not refetched
        self._cache.set(result, adapter.source, isbn)
        logger.debug(
            "Source lookup finished",
            source=adapter.source.value,
            isbn=isbn,
            found=result is not None,
        )
        return result

    async def _fetch_once(
        self, client_session: ClientSession, adapter: MetadataSource, isbn: str
    ) -> Optional[BookLookupResult]:
        """Share one upstream call between concurrent lookups of the same key."""
        key = (adapter.source, isbn)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._call_adapter(client_session, adapter, isbn))
            self._inflight[key] = task

            def _forget(done: asyncio.Task, key=key) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_forget)
        # shielded so one cancelled caller does not cancel the fetch for the others
        return await asyncio.shield(task)

    async def lookup(
        self,
        client_session: ClientSession,
        isbn: str,
        source: BookSource | str,
    ) -> Optional[BookLookupResult]:
        """Look up ``isbn`` in a single catalog.

        Raises `UnknownSourceError` if ``source`` is not registered. Every
        other failure is reported as ``None``.
        """
        adapter = self._resolve(source)
        isbn = normalize_isbn(isbn)

        cached = self._cache.get(self._cache_ttl, adapter.source, isbn)
        if cached is not MISSING:
            logger.debug("Using cached lookup", source=adapter.source.value, isbn=isbn)
            return cached

        return await self._fetch_once(client_session, adapter, isbn)

    async def lookup_all_sources(
        self, client_session: ClientSession, isbn: str
    ) -> Optional[tuple[BookSource, BookLookupResult]]:
        """First catalog, in priority order, that has ``isbn``."""
        isbn = normalize_isbn(isbn)
        for source in priority_for(isbn):
            if source not in self._sources:
                continue
            result = await self.lookup(client_session, isbn, source)
            if result is not None:
                logger.info("Book found", source=source.value, isbn=isbn)
                return source, result

        logger.info("Book not found in any source", isbn=isbn)
        return None

    async def search_by_title(
        self,
        client_session: ClientSession,
        query: str,
        source: Optional[BookSource | str] = None,
    ) -> list[BookLookupResult]:
        if source is not None:
            adapters = [self._resolve(source)]
        else:
            adapters = [self._sources[s] for s in self.available_sources]

        results: list[BookLookupResult] = []
        for adapter in adapters:
            if not isinstance(adapter, TitleSearchSource):
                continue
            try:
                found = await adapter.search_by_title(client_session, query)
            except Exception as e:
                logger.error(
                    "Source title search raised",
                    source=adapter.source.value,
                    query=query,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            results.extend(book for book in found if not book.is_empty())

        unique = dedupe_results(results)
        logger.debug(
            "Title search finished",
            query=query,
            results_count=len(unique),
            duplicates=len(results) - len(unique),
        )
        return unique

    async def lookup_by_url(
        self, client_session: ClientSession, url: str
    ) -> Optional[BookLookupResult]:
        source = source_for_url(url)
        if source is None:
            logger.debug("No source matches url", url=url)
            return None

        adapter = self._sources.get(source)
        if adapter is None or not isinstance(adapter, UrlLookupSource):
            return None

        try:
            result = await adapter.lookup_by_url(client_session, url)
        except Exception as e:
            logger.error(
                "Source url lookup raised",
                source=source.value,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if result is None or result.is_empty():
            return None
        return result


def create_lookup_service(settings: Optional[Settings] = None) -> BookLookupService:
    settings = settings or Settings()
    return BookLookupService(build_default_sources(settings), settings=settings)
