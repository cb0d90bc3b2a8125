from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class BookSource(StrEnum):
    kitapyurdu = "kitapyurdu"
    bkmkitap = "bkmkitap"
    idefix = "idefix"
    google = "google"
    openlibrary = "openlibrary"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES: dict[BookSource, str] = {
    BookSource.kitapyurdu: "Kitapyurdu",
    BookSource.bkmkitap: "BKM Kitap",
    BookSource.idefix: "İdefix",
    BookSource.google: "Google Books",
    BookSource.openlibrary: "Open Library",
}


class BindingType(StrEnum):
    paperback = "paperback"
    hardcover = "hardcover"
    ebook = "ebook"


class BookLookupResult(BaseModel):
    """Source-agnostic book metadata produced by every catalog adapter.

    An empty ``title`` means the adapter found nothing usable; callers treat
    it the same as no result at all.
    """

    model_config = ConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    isbn: str = ""
    title: str = ""
    author: str = ""
    publisher: Optional[str] = None
    published_year: Optional[int] = None
    page_count: Optional[int] = None
    description: Optional[str] = None
    language: Optional[str] = None
    cover_url: Optional[str] = None
    original_title: Optional[str] = None
    translator: Optional[str] = None
    binding_type: Optional[BindingType] = None
    source_url: Optional[str] = None

    @field_validator("published_year", "page_count", mode="after")
    @classmethod
    def positive_or_none(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            return None
        return value

    @field_validator(
        "publisher",
        "description",
        "language",
        "cover_url",
        "original_title",
        "translator",
        "source_url",
        mode="after",
    )
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    def is_empty(self) -> bool:
        return not self.title.strip()

    def dedupe_key(self) -> str:
        return f"{self.title.lower()}|{self.author.lower()}"
