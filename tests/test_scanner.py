"""Tests for the local chapter scanner."""

import json
import random
from pathlib import Path

import pytest

from swadloon.errors import ScanError, ScanErrorKind
from swadloon.scanner import parse_chapter_name, scan_chapters

from conftest import make_chapter_dir


def test_scan_orders_chapters_by_index(tmp_path):
    chapters_dir = tmp_path / "chapters"
    make_chapter_dir(chapters_dir, "10", ["0.png"])
    make_chapter_dir(chapters_dir, "2", ["0.png", "1.png"])
    make_chapter_dir(chapters_dir, "1", ["0.png"])

    chapters = scan_chapters(chapters_dir)

    assert [c.index for c in chapters] == [1, 2, 10]
    assert chapters[1].name == "Chapter 2"
    assert chapters[1].page_count == 2


def test_pages_are_sorted_numerically(tmp_path):
    """Page order follows the page number, not the directory listing or string order."""
    names = [f"{i}.png" for i in range(15)]
    random.Random(7).shuffle(names)
    make_chapter_dir(tmp_path / "chapters", "1", names)

    (chapter,) = scan_chapters(tmp_path / "chapters")

    assert [p.name for p in chapter.pages] == [f"{i}.png" for i in range(15)]
    assert chapter.cover.name == "0.png"


def test_pages_with_padding_and_suffixes(tmp_path):
    make_chapter_dir(tmp_path / "chapters", "3", ["010.jpg", "002.jpg", "1-b.png"])

    (chapter,) = scan_chapters(tmp_path / "chapters")

    assert [p.name for p in chapter.pages] == ["1-b.png", "002.jpg", "010.jpg"]


def test_grouped_chapter_names(tmp_path):
    chapters_dir = tmp_path / "chapters"
    make_chapter_dir(chapters_dir, "[1]_Chapter_1", ["0.png"])
    make_chapter_dir(chapters_dir, "[2]_Group_1_Chapter_1.5", ["0.png"])

    chapters = scan_chapters(chapters_dir)

    assert [(c.index, c.name) for c in chapters] == [(1, "Ch. 1"), (2, "Ch. 1.5")]


def test_info_json_provides_chapter_name(tmp_path):
    chapter_dir = make_chapter_dir(tmp_path / "chapters", "4", ["0.png"])
    (chapter_dir / "info.json").write_text(json.dumps({"name": "The Beginning"}))

    (chapter,) = scan_chapters(tmp_path / "chapters")

    assert chapter.name == "The Beginning"
    assert [p.name for p in chapter.pages] == ["0.png"]


def test_non_chapter_entries_are_skipped(tmp_path):
    chapters_dir = tmp_path / "chapters"
    make_chapter_dir(chapters_dir, "1", ["0.png"])
    make_chapter_dir(chapters_dir, "extras", ["notes.txt"])
    make_chapter_dir(chapters_dir, "@eaDir", ["thumb.db"])
    (chapters_dir / "readme.txt").write_text("hello")

    chapters = scan_chapters(chapters_dir)

    assert [c.index for c in chapters] == [1]


def test_ignored_page_files_are_skipped(tmp_path):
    make_chapter_dir(tmp_path / "chapters", "1", ["0.png", ".DS_Store", "._0.png"])

    (chapter,) = scan_chapters(tmp_path / "chapters")

    assert [p.name for p in chapter.pages] == ["0.png"]


def test_missing_directory(tmp_path):
    with pytest.raises(ScanError) as excinfo:
        scan_chapters(tmp_path / "nope")
    assert excinfo.value.kind is ScanErrorKind.DIRECTORY_MISSING


def test_malformed_page_name_fails_the_scan(tmp_path):
    chapters_dir = tmp_path / "chapters"
    make_chapter_dir(chapters_dir, "1", ["0.png"])
    make_chapter_dir(chapters_dir, "2", ["0.png", "cover.png"])

    with pytest.raises(ScanError) as excinfo:
        scan_chapters(chapters_dir)
    assert excinfo.value.kind is ScanErrorKind.MALFORMED_PAGE_NAME
    assert excinfo.value.path.name == "cover.png"


def test_empty_chapter(tmp_path):
    (tmp_path / "chapters" / "1").mkdir(parents=True)

    with pytest.raises(ScanError) as excinfo:
        scan_chapters(tmp_path / "chapters")
    assert excinfo.value.kind is ScanErrorKind.EMPTY_CHAPTER


def test_malformed_bracketed_name(tmp_path):
    make_chapter_dir(tmp_path / "chapters", "[x]_Chapter_1", ["0.png"])

    with pytest.raises(ScanError) as excinfo:
        scan_chapters(tmp_path / "chapters")
    assert excinfo.value.kind is ScanErrorKind.MALFORMED_CHAPTER_NAME


def test_zero_index_is_malformed(tmp_path):
    chapter_dir = tmp_path / "0"
    chapter_dir.mkdir()

    with pytest.raises(ScanError) as excinfo:
        parse_chapter_name(chapter_dir)
    assert excinfo.value.kind is ScanErrorKind.MALFORMED_CHAPTER_NAME


def test_duplicate_index(tmp_path):
    chapters_dir = tmp_path / "chapters"
    make_chapter_dir(chapters_dir, "3", ["0.png"])
    make_chapter_dir(chapters_dir, "[3]_Chapter_3", ["0.png"])

    with pytest.raises(ScanError) as excinfo:
        scan_chapters(chapters_dir)
    assert excinfo.value.kind is ScanErrorKind.DUPLICATE_CHAPTER_INDEX


def test_unreadable_chapter_folder(tmp_path, monkeypatch):
    chapters_dir = tmp_path / "chapters"
    make_chapter_dir(chapters_dir, "1", ["0.png"])
    locked = make_chapter_dir(chapters_dir, "2", ["0.png"])
    original_iterdir = Path.iterdir

    def iterdir(self):
        if self == locked:
            raise PermissionError(13, "Permission denied", str(self))
        return original_iterdir(self)

    monkeypatch.setattr(Path, "iterdir", iterdir)

    with pytest.raises(ScanError) as excinfo:
        scan_chapters(chapters_dir)
    assert excinfo.value.kind is ScanErrorKind.UNREADABLE
    assert excinfo.value.path == locked
