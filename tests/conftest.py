"""
Pytest configuration and fixtures for the lookup test suite.
"""
import pathlib
from typing import AsyncGenerator, Generator, Optional

import pytest
from aiohttp import ClientSession
from aioresponses import aioresponses

from rafin.internal.env_settings import LookupSettings, Settings
from rafin.internal.lookup.models import BookLookupResult, BookSource

FIXTURES = pathlib.Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


@pytest.fixture
def settings() -> Settings:
    """Settings with a short timeout so a broken mock fails fast."""
    return Settings(lookup=LookupSettings(request_timeout=2.0))


# Async HTTP mocking fixtures
@pytest.fixture(scope="function")
def aioresponses_mocker() -> Generator[aioresponses, None, None]:
    """Provide aioresponses context manager for manual HTTP mocking."""
    with aioresponses() as mocked:
        yield mocked


@pytest.fixture(scope="function")
async def client_session(aioresponses_mocker) -> AsyncGenerator[ClientSession, None]:
    """A real ClientSession whose requests are answered by aioresponses."""
    async with ClientSession() as session:
        yield session


class StubSource:
    """Call-counting stand-in for a catalog adapter.

    ``results`` maps ISBN to the record to return; ``call_log`` is shared
    between stubs so tests can assert the order sources were tried in.
    """

    def __init__(
        self,
        source: BookSource,
        results: Optional[dict[str, BookLookupResult]] = None,
        call_log: Optional[list[tuple[BookSource, str]]] = None,
        error: Optional[Exception] = None,
    ):
        self.source = source
        self.results = results or {}
        self.call_log = call_log if call_log is not None else []
        self.error = error
        self.calls = 0

    async def lookup(self, client_session, isbn: str) -> Optional[BookLookupResult]:
        self.calls += 1
        self.call_log.append((self.source, isbn))
        if self.error is not None:
            raise self.error
        return self.results.get(isbn)


class SearchableStubSource(StubSource):
    def __init__(self, source: BookSource, search_results=None, **kwargs):
        super().__init__(source, **kwargs)
        self.search_results: list[BookLookupResult] = search_results or []
        self.search_calls: list[str] = []

    async def search_by_title(self, client_session, query: str) -> list[BookLookupResult]:
        self.search_calls.append(query)
        if self.error is not None:
            raise self.error
        return list(self.search_results)


class UrlStubSource(StubSource):
    def __init__(self, source: BookSource, url_result=None, **kwargs):
        super().__init__(source, **kwargs)
        self.url_result: Optional[BookLookupResult] = url_result
        self.url_calls: list[str] = []

    async def lookup_by_url(self, client_session, url: str) -> Optional[BookLookupResult]:
        self.url_calls.append(url)
        return self.url_result


@pytest.fixture
def call_log() -> list[tuple[BookSource, str]]:
    return []


@pytest.fixture
def sample_book() -> BookLookupResult:
    return BookLookupResult(
        isbn="9789750718533",
        title="Saatleri Ayarlama Enstitüsü",
        author="Ahmet Hamdi Tanpınar",
        publisher="Dergah Yayınları",
        page_count=320,
    )
