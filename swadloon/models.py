"""Data models for Swadloon.

Local chapters are plain immutable tuples built by the scanner. Remote records
are pydantic models decoded from record-store responses; unknown fields
(collectionId, created, ...) are ignored.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generic, List, NamedTuple, Optional, Tuple, TypeVar

from pydantic import BaseModel, Field


class LocalChapter(NamedTuple):
    index: int
    name: str
    source_path: Path
    pages: Tuple[Path, ...]

    @property
    def cover(self) -> Path:
        """The first page doubles as the chapter cover."""
        return self.pages[0]

    @property
    def page_count(self) -> int:
        return len(self.pages)


class RemoteChapter(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    id: str
    index: int = Field(alias="idx")
    name: str = ""
    manga_id: str = Field(default="", alias="manga")
    pages: List[str] = Field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


class RemoteManga(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    id: str
    title: str = ""
    anilist_id: int = Field(default=0, alias="anilistId")
    mal_id: int = Field(default=0, alias="malId")
    description: str = ""
    color: str = ""
    cover: str = ""
    banner: str = ""
    start_date: str = Field(default="", alias="startDate")
    end_date: str = Field(default="", alias="endDate")


RecordT = TypeVar("RecordT")


class RecordPage(BaseModel, Generic[RecordT]):
    """Paginated list envelope returned by the record-store."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    items: List[RecordT] = Field(default_factory=list)
    page: int = 1
    per_page: int = Field(default=0, alias="perPage")
    total_items: int = Field(default=0, alias="totalItems")
    total_pages: int = Field(default=0, alias="totalPages")


class MangaMetadata(BaseModel):
    """Manga metadata as assembled from the catalog (and cached as metadata.json)."""

    model_config = {"extra": "ignore"}

    anilist_id: int
    mal_id: int = 0
    title: str
    english_title: Optional[str] = None
    romaji_title: Optional[str] = None
    native_title: Optional[str] = None
    description: str = ""
    color: str = ""
    cover_url: str = ""
    banner_url: Optional[str] = None
    start_date: str = ""
    end_date: str = ""


class MangaImages(NamedTuple):
    cover: Optional[Path] = None
    banner: Optional[Path] = None
