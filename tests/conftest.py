"""Shared fixtures: an in-memory stand-in for the record-store HTTP session."""

import json
import threading
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from swadloon.config import SwadloonConfig
from swadloon.record_store import RecordStore


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)
        self.headers = {}

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class RecordedCall:
    def __init__(self, method: str, url: str, kwargs: dict):
        self.method = method
        self.url = url
        self.params = kwargs.get("params") or {}
        self.json = kwargs.get("json")
        self.fields: List[tuple] = []

        encoder = kwargs.get("data")
        if encoder is not None:
            # (name, text) for text fields, (name, filename) for attachments
            for name, value in encoder.fields:
                self.fields.append((name, value if isinstance(value, str) else value[0]))

    def field_values(self, name: str) -> List[str]:
        return [value for key, value in self.fields if key == name]


class FakeSession:
    """Records every request and answers through `handler(method, url, call)`."""

    def __init__(self, handler: Callable[[str, str, RecordedCall], FakeResponse]):
        self.handler = handler
        self.calls: List[RecordedCall] = []
        self.closed = False
        self._lock = threading.Lock()

    def request(self, method, url, timeout=None, **kwargs):
        call = RecordedCall(method.upper(), url, kwargs)
        with self._lock:
            self.calls.append(call)
        return self.handler(call.method, url, call)

    def close(self):
        self.closed = True


def chapter_record(record_id: str, index: int, pages: int = 0, manga: str = "manga1", name: str = ""):
    return {
        "id": record_id,
        "idx": index,
        "name": name or f"Chapter {index}",
        "manga": manga,
        "pages": [f"p{i}.png" for i in range(pages)],
        "collectionId": "col_chapters",
        "collectionName": "chapters",
        "created": "2024-01-01 00:00:00.000Z",
        "updated": "2024-01-01 00:00:00.000Z",
    }


def list_envelope(items, page: int = 1, total_pages: int = 1, total_items: Optional[int] = None):
    return {
        "items": items,
        "page": page,
        "perPage": 200,
        "totalItems": len(items) if total_items is None else total_items,
        "totalPages": total_pages,
    }


def make_chapter_dir(chapters_dir: Path, name: str, pages) -> Path:
    chapter_dir = chapters_dir / name
    chapter_dir.mkdir(parents=True)
    for page in pages:
        (chapter_dir / page).write_bytes(b"\x89PNG fake page")
    return chapter_dir


@pytest.fixture
def make_store():
    def factory(handler, per_page: int = 200):
        session = FakeSession(handler)
        return RecordStore("http://records.test", session=session, per_page=per_page), session

    return factory


@pytest.fixture
def test_config():
    config = SwadloonConfig()
    config.server.endpoint = "http://records.test"
    config.upload.threads = 2
    config.upload.poll_interval = 0.01
    return config
