"""HTTP client for the record-store backend.

The backend exposes PocketBase-style collection endpoints:

    GET    {endpoint}/api/collections/{collection}/records?filter=...&page=...&perPage=...
    POST   {endpoint}/api/collections/{collection}/records          (multipart)
    PATCH  {endpoint}/api/collections/{collection}/records/{id}     (multipart or JSON)

List responses are wrapped in an envelope carrying `items`, `page`,
`totalItems` and `totalPages`. A 400 response carries a JSON error body;
other error statuses have no guaranteed structure.

One RecordStore (and its requests.Session) is shared by every upload worker
of a run. Requests carry no timeout: chapter uploads are large multipart
bodies that take as long as they take.
"""

from __future__ import annotations

import mimetypes
import os
from contextlib import ExitStack
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError
from requests_toolbelt.multipart.encoder import MultipartEncoder

from .errors import FetchError, RecordStoreError, RequestErrorKind
from .logging_config import get_logger
from .models import (
    LocalChapter,
    MangaImages,
    MangaMetadata,
    RecordPage,
    RemoteChapter,
    RemoteManga,
)

logger = get_logger(__name__)

MANGA_COLLECTION = "mangas"
CHAPTERS_COLLECTION = "chapters"

DEFAULT_PER_PAGE = 200

ModelT = TypeVar("ModelT", bound=BaseModel)

# (field name, value) for text fields, (field name, path) for attachments
TextField = Tuple[str, str]
FileField = Tuple[str, Path]


def _describe_status_error(prefix: str, response: requests.Response) -> Any:
    """Log a failed response the way the backend documents it; return the body if any."""
    status = response.status_code
    if status == 400:
        try:
            body = response.json()
        except ValueError:
            logger.error(f"{prefix} [400 BAD REQUEST]")
            return None
        logger.error(f"{prefix} [400 BAD REQUEST]: {body}")
        return body

    logger.error(f"{prefix} [{status} UNKNOWN ERROR]")
    return None


def _quote_filter_value(value: Any) -> str:
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


class Attachment:
    """A file part that opens its file only while the encoder streams it.

    The encoder reads parts one after another, so a job holds at most one
    page file open at a time however many pages a chapter has. The file is
    checked when the attachment is created, before anything is sent.
    """

    def __init__(self, path: Path):
        self.path = path
        self._size = path.stat().st_size
        if not os.access(path, os.R_OK):
            raise PermissionError(f"Permission denied: '{path}'")
        self._read = 0
        self._handle = None

    @property
    def len(self) -> int:
        """Bytes left to stream."""
        return self._size - self._read

    def read(self, size: int = -1) -> bytes:
        if not self.len:
            return b""
        if self._handle is None:
            self._handle = open(self.path, "rb")
        if size is None or size < 0:
            size = self.len
        data = self._handle.read(min(size, self.len))
        if not data:
            raise OSError(f"{self.path} shrank while uploading")
        self._read += len(data)
        if not self.len:
            self.close()
        return data

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


class RecordStore:
    """Thin client over the `mangas` and `chapters` collections."""

    def __init__(
        self,
        endpoint: str,
        session: Optional[requests.Session] = None,
        per_page: int = DEFAULT_PER_PAGE,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.per_page = per_page
        self._session = session or requests.Session()
        self._owns_session = session is None

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    # ------------------------------------------------------------------
    # Low level helpers
    # ------------------------------------------------------------------

    def records_url(self, collection: str, record_id: Optional[str] = None) -> str:
        url = f"{self.endpoint}/api/collections/{collection}/records"
        if record_id is not None:
            url = f"{url}/{record_id}"
        return url

    def _send(self, method: str, url: str, what: str, **kwargs) -> requests.Response:
        logger.debug(f"{what}: {method.upper()} {url}")
        try:
            response = self._session.request(method, url, timeout=None, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise RecordStoreError(
                RequestErrorKind.REQUEST_FAILED, f"{what}: {exc}"
            ) from exc

        if not 200 <= response.status_code < 300:
            body = _describe_status_error(what, response)
            raise RecordStoreError(
                RequestErrorKind.BAD_STATUS,
                f"{what}: HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        return response

    def _decode(self, response: requests.Response, model: Type[ModelT], what: str) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RecordStoreError(
                RequestErrorKind.DECODE_FAILED, f"{what}: invalid response body: {exc}"
            ) from exc

    def _build_form(
        self,
        stack: ExitStack,
        what: str,
        fields: Sequence[TextField],
        files: Sequence[FileField],
    ) -> List[Tuple[str, Any]]:
        """Check every attachment and return the multipart parts.

        Attachments are closed when `stack` unwinds.
        """
        parts: List[Tuple[str, Any]] = list(fields)
        for field_name, path in files:
            try:
                attachment = Attachment(path)
            except OSError as exc:
                logger.error(f"Failed to include '{field_name}' ({path.name}) in form")
                raise RecordStoreError(
                    RequestErrorKind.ATTACHMENT_FAILED, f"{what}: {exc}"
                ) from exc
            stack.callback(attachment.close)
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            parts.append((field_name, (path.name, attachment, content_type)))
        return parts

    def _send_form(
        self, method: str, url: str, what: str, parts: List[Tuple[str, Any]]
    ) -> requests.Response:
        encoder = MultipartEncoder(fields=parts)
        try:
            return self._send(
                method,
                url,
                what,
                data=encoder,
                headers={"Content-Type": encoder.content_type},
            )
        except OSError as exc:
            raise RecordStoreError(
                RequestErrorKind.ATTACHMENT_FAILED, f"{what}: {exc}"
            ) from exc

    def _send_multipart(
        self,
        method: str,
        url: str,
        what: str,
        fields: Sequence[TextField],
        files: Sequence[FileField],
    ) -> requests.Response:
        """Send text fields plus file attachments as one multipart body."""
        with ExitStack() as stack:
            parts = self._build_form(stack, what, fields, files)
            return self._send_form(method, url, what, parts)

    def _get_page(
        self,
        collection: str,
        model: Type[BaseModel],
        page: int,
        what: str,
        params: Optional[dict] = None,
    ) -> RecordPage:
        query = {"page": page, "perPage": self.per_page}
        query.update(params or {})
        response = self._send("get", self.records_url(collection), what, params=query)
        return self._decode(response, RecordPage[model], what)

    def _get_all(
        self,
        collection: str,
        model: Type[ModelT],
        what: str,
        params: Optional[dict] = None,
    ) -> List[ModelT]:
        """Collect every item of a paginated listing.

        `totalPages <= 1` means the first response already holds everything.
        """
        first = self._get_page(collection, model, 1, what, params)
        items = list(first.items)

        for page in range(2, first.total_pages + 1):
            next_page = self._get_page(collection, model, page, what, params)
            items.extend(next_page.items)

        logger.debug(f"{what}: {len(items)} items over {max(first.total_pages, 1)} page(s)")
        return items

    # ------------------------------------------------------------------
    # Manga records
    # ------------------------------------------------------------------

    def get_all_manga(self) -> List[RemoteManga]:
        return self._get_all(MANGA_COLLECTION, RemoteManga, "get_all_manga")

    def find_manga(self, anilist_id: int) -> Optional[RemoteManga]:
        """Return the manga record for anilist_id, or None if there is none."""
        params = {"filter": f"(anilistId='{_quote_filter_value(anilist_id)}')"}
        page = self._get_page(MANGA_COLLECTION, RemoteManga, 1, "get_manga", params)

        if page.total_items > 1:
            logger.error(f"Expected one manga for anilistId={anilist_id}, got {page.total_items}")
            raise RecordStoreError(
                RequestErrorKind.WRONG_ITEM_COUNT,
                f"get_manga: {page.total_items} records share anilistId={anilist_id}",
            )
        if not page.items:
            return None
        return page.items[0]

    def _manga_form(
        self, metadata: MangaMetadata, images: MangaImages
    ) -> Tuple[List[TextField], List[FileField]]:
        fields = [
            ("title", metadata.title),
            ("anilistId", str(metadata.anilist_id)),
            ("malId", str(metadata.mal_id)),
            ("description", metadata.description),
            ("color", metadata.color),
            ("startDate", metadata.start_date),
            ("endDate", metadata.end_date),
        ]
        files = []
        if images.cover is not None:
            files.append(("cover", images.cover))
        if images.banner is not None:
            files.append(("banner", images.banner))
        return fields, files

    def create_manga(self, metadata: MangaMetadata, images: MangaImages) -> RemoteManga:
        fields, files = self._manga_form(metadata, images)
        response = self._send_multipart(
            "post", self.records_url(MANGA_COLLECTION), "create_manga", fields, files
        )
        return self._decode(response, RemoteManga, "create_manga")

    def update_manga(
        self, manga: RemoteManga, metadata: MangaMetadata, images: MangaImages
    ) -> RemoteManga:
        fields, files = self._manga_form(metadata, images)
        response = self._send_multipart(
            "patch", self.records_url(MANGA_COLLECTION, manga.id), "update_manga", fields, files
        )
        return self._decode(response, RemoteManga, "update_manga")

    # ------------------------------------------------------------------
    # Chapter records
    # ------------------------------------------------------------------

    def get_chapters(self, manga_id: str) -> List[RemoteChapter]:
        """Return every chapter record of a manga, across all result pages.

        :raises FetchError: If any page cannot be fetched or decoded. Pages
            already received are discarded.
        """
        params = {
            "sort": "idx",
            "filter": f"(manga='{_quote_filter_value(manga_id)}')",
        }
        try:
            return self._get_all(CHAPTERS_COLLECTION, RemoteChapter, "get_chapters", params)
        except RecordStoreError as exc:
            raise FetchError.from_store_error(f"chapters of manga {manga_id}", exc) from exc

    def _chapter_form(
        self, manga_id: str, chapter: LocalChapter, include_pages: bool
    ) -> Tuple[List[TextField], List[FileField]]:
        fields = [
            ("idx", str(chapter.index)),
            ("name", chapter.name),
            ("manga", manga_id),
        ]
        files: List[FileField] = [("cover", chapter.cover)]
        if include_pages:
            files.extend(("pages", page) for page in chapter.pages)
        return fields, files

    def create_chapter(self, manga_id: str, chapter: LocalChapter) -> RemoteChapter:
        fields, files = self._chapter_form(manga_id, chapter, include_pages=True)
        response = self._send_multipart(
            "post", self.records_url(CHAPTERS_COLLECTION), "create_chapter", fields, files
        )
        return self._decode(response, RemoteChapter, "create_chapter")

    def clear_chapter_pages(self, chapter_id: str) -> None:
        """Null out a chapter's page list.

        Multipart page uploads are additive on the backend, so replacing pages
        means clearing them first.
        """
        self._send(
            "patch",
            self.records_url(CHAPTERS_COLLECTION, chapter_id),
            "clear_chapter_pages",
            json={"pages": None},
        )

    def update_chapter(
        self,
        manga_id: str,
        remote: RemoteChapter,
        chapter: LocalChapter,
        replace_pages: bool,
    ) -> RemoteChapter:
        """Refresh an existing chapter record from its local counterpart.

        With replace_pages the remote page list is cleared and the local pages
        are attached in order; otherwise only name and cover are sent. Every
        attachment is checked before the clear, so an unreadable page leaves
        the remote chapter untouched.
        """
        fields, files = self._chapter_form(manga_id, chapter, include_pages=replace_pages)
        with ExitStack() as stack:
            parts = self._build_form(stack, "update_chapter", fields, files)
            if replace_pages:
                self.clear_chapter_pages(remote.id)
            response = self._send_form(
                "patch",
                self.records_url(CHAPTERS_COLLECTION, remote.id),
                "update_chapter",
                parts,
            )
        return self._decode(response, RemoteChapter, "update_chapter")
