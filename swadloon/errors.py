"""Error types for Swadloon.

One exception per phase, each tagged with an explicit kind:

- ScanError: the local inventory is malformed (fatal for the manga)
- FetchError: remote state could not be read (fatal for the manga)
- JobError: a single chapter upload failed (recorded, never raised past the worker)
- RecordStoreError: raw failure from the record-store client, mapped to one of the above
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional


class ScanErrorKind(str, Enum):
    DIRECTORY_MISSING = "directory_missing"
    MALFORMED_CHAPTER_NAME = "malformed_chapter_name"
    MALFORMED_PAGE_NAME = "malformed_page_name"
    EMPTY_CHAPTER = "empty_chapter"
    DUPLICATE_CHAPTER_INDEX = "duplicate_chapter_index"
    UNREADABLE = "unreadable"


class RequestErrorKind(str, Enum):
    REQUEST_FAILED = "request_failed"
    BAD_STATUS = "bad_status"
    DECODE_FAILED = "decode_failed"
    ATTACHMENT_FAILED = "attachment_failed"
    WRONG_ITEM_COUNT = "wrong_item_count"
    UNEXPECTED = "unexpected"


class SwadloonError(Exception):
    """Base class for all errors raised by Swadloon."""


class ScanError(SwadloonError):
    def __init__(self, kind: ScanErrorKind, path: Path, detail: str = ""):
        self.kind = kind
        self.path = path
        self.detail = detail
        message = f"{kind.value}: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RecordStoreError(SwadloonError):
    """A request against the record-store failed."""

    def __init__(
        self,
        kind: RequestErrorKind,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[object] = None,
    ):
        self.kind = kind
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class FetchError(SwadloonError):
    def __init__(self, kind: RequestErrorKind, what: str, cause: Optional[Exception] = None):
        self.kind = kind
        self.what = what
        self.cause = cause
        message = f"Failed to fetch {what} [{kind.value}]"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

    @classmethod
    def from_store_error(cls, what: str, exc: RecordStoreError) -> "FetchError":
        return cls(exc.kind, what, exc)


class JobError(SwadloonError):
    def __init__(
        self,
        kind: RequestErrorKind,
        chapter_index: int,
        operation: str,
        cause: Optional[Exception] = None,
    ):
        self.kind = kind
        self.chapter_index = chapter_index
        self.operation = operation
        self.cause = cause
        message = f"{operation} chapter {chapter_index} failed [{kind.value}]"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class CatalogError(SwadloonError):
    """The metadata catalog request failed or returned an unusable body."""


class LibraryError(SwadloonError):
    """A manga directory is missing required files or they are invalid."""
