"""AniList metadata client.

Fetches a manga's titles, description, images and publication dates from the
AniList GraphQL API, keyed by AniList media id.
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from .config import DEFAULT_CATALOG_ENDPOINT
from .errors import CatalogError
from .logging_config import get_logger
from .models import MangaMetadata

logger = get_logger(__name__)

CATALOG_TIMEOUT = 30

MANGA_QUERY = """
query ($id: Int) {
  Media(id: $id, type: MANGA) {
    id
    idMal
    description(asHtml: true)
    title {
      romaji
      english
      native
    }
    coverImage {
      extraLarge
      large
      medium
      color
    }
    bannerImage
    startDate {
      year
      month
      day
    }
    endDate {
      year
      month
      day
    }
  }
}
"""


def format_date(date: Optional[dict]) -> str:
    """Return `YYYY-MM-DD`, or an empty string when any part is unknown."""
    if not date:
        return ""
    year, month, day = date.get("year"), date.get("month"), date.get("day")
    if not (year and month and day):
        return ""
    return f"{year}-{month:02d}-{day:02d}"


def metadata_from_media(media: dict[str, Any]) -> MangaMetadata:
    """Build MangaMetadata from an AniList `Media` object."""
    title = media.get("title") or {}
    cover = media.get("coverImage") or {}
    english = title.get("english")
    romaji = title.get("romaji")

    display_title = english or romaji or title.get("native")
    if not display_title:
        raise CatalogError(f"AniList media {media.get('id')} has no title")

    return MangaMetadata(
        anilist_id=media["id"],
        mal_id=media.get("idMal") or 0,
        title=display_title,
        english_title=english,
        romaji_title=romaji,
        native_title=title.get("native"),
        description=media.get("description") or "",
        color=cover.get("color") or "",
        cover_url=cover.get("extraLarge") or cover.get("large") or cover.get("medium") or "",
        banner_url=media.get("bannerImage"),
        start_date=format_date(media.get("startDate")),
        end_date=format_date(media.get("endDate")),
    )


class CatalogClient:
    def __init__(
        self,
        endpoint: str = DEFAULT_CATALOG_ENDPOINT,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self._session = session or requests.Session()

    def fetch_metadata(self, anilist_id: int) -> MangaMetadata:
        payload = {"query": MANGA_QUERY, "variables": {"id": anilist_id}}
        try:
            response = self._session.post(
                self.endpoint,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=CATALOG_TIMEOUT,
            )
        except requests.exceptions.RequestException as exc:
            raise CatalogError(f"AniList request for {anilist_id} failed: {exc}") from exc

        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is not None:
            logger.debug(
                f"AniList rate limit: {remaining}/{response.headers.get('x-ratelimit-limit')} remaining"
            )

        if not 200 <= response.status_code < 300:
            raise CatalogError(
                f"AniList returned HTTP {response.status_code} for {anilist_id}: {response.text[:200]}"
            )

        try:
            media = response.json()["data"]["Media"]
        except (ValueError, KeyError, TypeError) as exc:
            raise CatalogError(f"Unexpected AniList response for {anilist_id}: {exc}") from exc
        if not media:
            raise CatalogError(f"AniList has no manga with id {anilist_id}")

        return metadata_from_media(media)
