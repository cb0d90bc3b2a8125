"""
Tests for the İdefix scraper, which reads the embedded Next.js page data.
"""
import json
import re

import pytest
from aiohttp import ClientError

from conftest import load_fixture
from rafin.internal.lookup.idefix import (
    IdefixImage,
    IdefixSource,
    cover_from_images,
    parse_description,
    parse_translator,
    product_detail,
    search_items,
    variant_properties,
)
from rafin.internal.lookup.models import BindingType

SEARCH_PATTERN = re.compile(r"^https://www\.idefix\.com/search\?.*")
PRODUCT_URL = "https://www.idefix.com/tutunamayanlar-p-123456"
COVER_URL = "https://idefix.akinoncdn.com/resize/600/0/product/tutunamayanlar.jpg"


def next_data_page(page_props: dict) -> str:
    payload = json.dumps({"props": {"pageProps": page_props}})
    return f'<script id="__NEXT_DATA__" type="application/json">{payload}</script>'


class TestPageData:
    def test_search_items(self):
        items = search_items(load_fixture("idefix_search.html"))

        assert len(items) == 3
        assert items[0].isBook is True
        assert items[0].variants[0].handleUrl == "/tutunamayanlar-p-123456"
        assert items[1].isBook is False

    def test_product_detail(self):
        detail = product_detail(load_fixture("idefix_product.html"))

        assert detail is not None
        assert detail.barcode == "9789750504990"
        assert detail.authorName == "Oğuz Atay"

    def test_page_without_next_data(self):
        assert search_items("<html><body></body></html>") == []
        assert product_detail("<html><body></body></html>") is None

    def test_null_fields_are_tolerated(self):
        """Nulls in unrelated items or properties must not drop the whole result list."""
        html = next_data_page(
            {
                "data": {
                    "searchResult": {
                        "items": [
                            {"brandName": None, "isBook": None, "variants": None},
                            {
                                "isBook": True,
                                "variants": [
                                    {
                                        "name": "Oyunlarla Yaşayanlar",
                                        "images": None,
                                        "properties": [
                                            {"text": "Dil", "valueText": None},
                                            {"text": None, "valueText": "Ciltsiz"},
                                            {"text": "Format", "valueText": "Ciltli"},
                                        ],
                                    }
                                ],
                            },
                        ]
                    }
                }
            }
        )

        items = search_items(html)

        assert len(items) == 2
        assert items[0].isBook is None
        assert items[0].variants == []
        language, binding_type = variant_properties(items[1].variants[0])
        assert language is None
        assert binding_type == BindingType.hardcover

    def test_invalid_item_is_skipped(self):
        html = next_data_page(
            {
                "data": {
                    "searchResult": {
                        "items": [
                            {"isBook": True, "variants": "broken"},
                            {"isBook": True, "variants": [{"name": "Korkuyu Beklerken"}]},
                        ]
                    }
                }
            }
        )

        items = search_items(html)

        assert [item.variants[0].name for item in items] == ["Korkuyu Beklerken"]

    def test_malformed_next_data(self):
        html = '<script id="__NEXT_DATA__" type="application/json">{not json</script>'
        assert product_detail(html) is None


class TestDescriptionFacts:
    def test_facts_from_description(self):
        facts = parse_description(
            "<ul><li>Sayfa Sayısı: 724</li><li>Baskı Yılı: 2020</li>"
            "<li>Dili: Türkçe</li><li>Kapak: Karton</li></ul>"
        )

        assert facts.page_count == 724
        assert facts.published_year == 2020
        assert facts.language == "Türkçe"
        assert facts.binding_type == BindingType.paperback

    def test_hardcover(self):
        assert parse_description("<p>Ciltli baskı</p>").binding_type == BindingType.hardcover

    def test_nothing_recognised(self):
        facts = parse_description("<p>Bir roman.</p>")
        assert facts.page_count is None
        assert facts.published_year is None
        assert facts.binding_type is None

    def test_translator(self):
        assert parse_translator("<span>Çevirmen: Ali Veli</span>") == "Ali Veli"
        assert parse_translator("<span>Hazırlayan: Biri</span>") is None
        assert parse_translator(None) is None


def test_cover_template_size():
    images = [IdefixImage(src="https://cdn/resize/{size}product/a.jpg")]
    assert cover_from_images(images) == "https://cdn/resize/600/0/product/a.jpg"
    assert cover_from_images(images, "300/0/") == "https://cdn/resize/300/0/product/a.jpg"
    assert cover_from_images([]) is None


@pytest.mark.asyncio
class TestIdefixSource:
    async def test_lookup(self, settings, aioresponses_mocker, client_session):
        aioresponses_mocker.get(
            SEARCH_PATTERN, body=load_fixture("idefix_search.html"), content_type="text/html"
        )
        aioresponses_mocker.get(
            PRODUCT_URL, body=load_fixture("idefix_product.html"), content_type="text/html"
        )

        book = await IdefixSource(settings).lookup(client_session, "9789750504990")

        assert book is not None
        assert book.isbn == "9789750504990"
        assert book.title == "Tutunamayanlar"
        assert book.original_title == "Tutunamayanlar"
        assert book.author == "Oğuz Atay"
        assert book.publisher == "İletişim Yayınları"
        assert book.page_count == 724
        assert book.published_year == 2020
        assert book.language == "Türkçe"
        assert book.binding_type == BindingType.paperback
        assert book.translator == "Ali Veli"
        assert book.cover_url == COVER_URL
        assert book.source_url == PRODUCT_URL
        assert book.description is not None
        assert "<li>" in book.description

    async def test_lookup_without_results(self, settings, aioresponses_mocker, client_session):
        aioresponses_mocker.get(
            SEARCH_PATTERN, body="<html><body></body></html>", content_type="text/html"
        )

        assert await IdefixSource(settings).lookup(client_session, "9789750504990") is None

    async def test_lookup_detail_not_found(self, settings, aioresponses_mocker, client_session):
        aioresponses_mocker.get(
            SEARCH_PATTERN, body=load_fixture("idefix_search.html"), content_type="text/html"
        )
        aioresponses_mocker.get(PRODUCT_URL, status=404)

        assert await IdefixSource(settings).lookup(client_session, "9789750504990") is None

    async def test_lookup_transport_error(self, settings, aioresponses_mocker, client_session):
        aioresponses_mocker.get(SEARCH_PATTERN, exception=ClientError("timeout"))

        assert await IdefixSource(settings).lookup(client_session, "9789750504990") is None

    async def test_lookup_by_url(self, settings, aioresponses_mocker, client_session):
        aioresponses_mocker.get(
            PRODUCT_URL, body=load_fixture("idefix_product.html"), content_type="text/html"
        )

        book = await IdefixSource(settings).lookup_by_url(client_session, PRODUCT_URL)

        assert book is not None
        assert book.isbn == "9789750504990"
        assert book.original_title is None
        assert book.source_url == PRODUCT_URL

    async def test_search_by_title_keeps_books_only(
        self, settings, aioresponses_mocker, client_session
    ):
        aioresponses_mocker.get(
            SEARCH_PATTERN, body=load_fixture("idefix_search.html"), content_type="text/html"
        )

        results = await IdefixSource(settings).search_by_title(client_session, "oğuz atay")

        assert [b.title for b in results] == ["Tutunamayanlar", "Tehlikeli Oyunlar"]
        first, second = results
        assert first.binding_type == BindingType.paperback
        assert first.language == "Türkçe"
        assert first.cover_url == COVER_URL
        assert first.source_url == PRODUCT_URL
        assert second.binding_type == BindingType.hardcover
        assert second.cover_url is None
        assert second.source_url is None
