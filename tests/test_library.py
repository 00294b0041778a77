"""Tests for the manga folder layout helpers."""

import json

import pytest

from swadloon.errors import LibraryError
from swadloon.library import find_manga_dirs, load_manga_dir, load_metadata, resolve_images, save_metadata
from swadloon.models import MangaMetadata


def test_load_manga_dir(tmp_path):
    (tmp_path / "manga.json").write_text(json.dumps({"anilist_id": "30013", "name": "One Piece"}))

    manga = load_manga_dir(tmp_path)

    assert manga.anilist_id == 30013
    assert manga.name == "One Piece"
    assert manga.chapters_dir == tmp_path / "chapters"


@pytest.mark.parametrize("content", [None, "{}", "not json", '{"anilist_id": "abc"}'])
def test_load_manga_dir_invalid(tmp_path, content):
    if content is not None:
        (tmp_path / "manga.json").write_text(content)

    with pytest.raises(LibraryError):
        load_manga_dir(tmp_path)


def test_find_manga_dirs(tmp_path):
    for name in ("B", "A", "no-spec"):
        (tmp_path / name).mkdir()
    for name in ("A", "B"):
        (tmp_path / name / "manga.json").write_text('{"anilist_id": 1}')

    assert [p.name for p in find_manga_dirs(tmp_path)] == ["A", "B"]
    assert [p.name for p in find_manga_dirs(tmp_path, only="B")] == ["B"]
    assert find_manga_dirs(tmp_path, only="C") == []


def test_metadata_cache_round_trip(tmp_path):
    (tmp_path / "manga.json").write_text('{"anilist_id": 5}')
    manga = load_manga_dir(tmp_path)
    assert load_metadata(manga) is None

    save_metadata(manga, MangaMetadata(anilist_id=5, title="Dandadan", start_date="2021-04-06"))

    assert load_metadata(manga).start_date == "2021-04-06"


def test_resolve_images(tmp_path):
    (tmp_path / "manga.json").write_text('{"anilist_id": 5}')
    images = tmp_path / "images"
    images.mkdir()
    (images / "cover.png").write_bytes(b"png")
    (images / "cover_medium.png").write_bytes(b"png")

    resolved = resolve_images(load_manga_dir(tmp_path))

    assert resolved.cover == images / "cover.png"
    assert resolved.banner is None


def test_metadata_that_is_not_utf8(tmp_path):
    (tmp_path / "manga.json").write_text('{"anilist_id": 5}')
    (tmp_path / "metadata.json").write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(LibraryError):
        load_metadata(load_manga_dir(tmp_path))


def test_save_metadata_failure(tmp_path):
    (tmp_path / "manga.json").write_text('{"anilist_id": 5}')
    (tmp_path / "metadata.json").mkdir()

    with pytest.raises(LibraryError):
        save_metadata(load_manga_dir(tmp_path), MangaMetadata(anilist_id=5, title="Dandadan"))
