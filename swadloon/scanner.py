"""Local chapter inventory for Swadloon.

Walks a manga's `chapters/` directory and builds the ordered list of
LocalChapter entries that drives reconciliation.

Accepted chapter folder names:
- `12`                              -> index 12
- `[12]_Chapter_10.5`               -> index 12, name "Ch. 10.5"
- `[12]_Group_2_Chapter_10.5`       -> index 12, name "Ch. 10.5"

Pages inside a chapter folder must start with their page number
(`0.png`, `012.jpg`, ...). A page we cannot order fails the whole scan:
uploading a chapter with a missing or misplaced page corrupts it.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from .config import DEFAULT_IGNORE_PATTERNS
from .errors import ScanError, ScanErrorKind
from .logging_config import get_logger
from .models import LocalChapter

logger = get_logger(__name__)


CHAPTER_INFO_FILE = "info.json"

PLAIN_CHAPTER_RE = re.compile(r"^(\d+)$")
GROUPED_CHAPTER_RE = re.compile(
    r"^\[(\d+)\]_(?:Group_([\d.]+)_)?Chapter_([\d.]+)$"
)
PAGE_NUMBER_RE = re.compile(r"^(\d+)")


def _should_ignore(name: str, ignore_patterns: Iterable[str]) -> bool:
    """Check if file/folder should be ignored based on patterns or macOS temp files."""
    if name.startswith("._"):
        return True
    return name in ignore_patterns


def _read_chapter_info_name(chapter_dir: Path) -> Optional[str]:
    info_path = chapter_dir / CHAPTER_INFO_FILE
    if not info_path.is_file():
        return None
    try:
        data = json.loads(info_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning(f"Ignoring unreadable {info_path}: {exc}")
        return None
    name = data.get("name") if isinstance(data, dict) else None
    return str(name) if name else None


def parse_chapter_name(chapter_dir: Path) -> Optional[Tuple[int, str]]:
    """Return (index, display name) for a chapter folder.

    Returns None for folders that do not follow a chapter naming convention.
    Raises ScanError when the name looks like a chapter but cannot be parsed.
    """
    folder = chapter_dir.name

    match = PLAIN_CHAPTER_RE.match(folder)
    if match:
        index = int(match.group(1))
        name = _read_chapter_info_name(chapter_dir) or f"Chapter {index}"
    else:
        match = GROUPED_CHAPTER_RE.match(folder)
        if match:
            index = int(match.group(1))
            name = f"Ch. {match.group(3)}"
        elif folder.startswith("["):
            raise ScanError(
                ScanErrorKind.MALFORMED_CHAPTER_NAME,
                chapter_dir,
                "expected [<index>]_[Group_<n>_]Chapter_<number>",
            )
        else:
            return None

    if index == 0:
        raise ScanError(
            ScanErrorKind.MALFORMED_CHAPTER_NAME, chapter_dir, "chapter index must be positive"
        )
    return index, name


def page_sort_key(page: Path) -> int:
    """Leading page number of a page file, e.g. `007.png` -> 7."""
    match = PAGE_NUMBER_RE.match(page.stem)
    if not match:
        raise ScanError(
            ScanErrorKind.MALFORMED_PAGE_NAME, page, "page files must start with their page number"
        )
    return int(match.group(1))


def scan_pages(
    chapter_dir: Path,
    ignore_patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS,
) -> Tuple[Path, ...]:
    """Return the chapter's page files ordered by page number."""
    pages = []
    for entry in chapter_dir.iterdir():
        if not entry.is_file() or entry.name == CHAPTER_INFO_FILE:
            continue
        if _should_ignore(entry.name, ignore_patterns):
            continue
        pages.append((page_sort_key(entry), entry.name, entry))

    if not pages:
        raise ScanError(ScanErrorKind.EMPTY_CHAPTER, chapter_dir)

    pages.sort(key=lambda p: (p[0], p[1]))
    return tuple(p[2] for p in pages)


def iter_chapter_dirs(
    chapters_dir: Path,
    ignore_patterns: Iterable[str],
) -> Iterator[Tuple[int, str, Path]]:
    """Yield (index, name, path) for every chapter folder under chapters_dir."""
    for entry in sorted(chapters_dir.iterdir()):
        if _should_ignore(entry.name, ignore_patterns) or not entry.is_dir():
            continue

        parsed = parse_chapter_name(entry)
        if parsed is None:
            logger.debug(f"Skipping {entry.name}: not a chapter folder")
            continue

        index, name = parsed
        yield index, name, entry


def _collect_chapters(
    chapters_dir: Path,
    ignore_patterns: Tuple[str, ...],
    chapters: dict[int, LocalChapter],
) -> None:
    for index, name, chapter_dir in iter_chapter_dirs(chapters_dir, ignore_patterns):
        if index in chapters:
            raise ScanError(
                ScanErrorKind.DUPLICATE_CHAPTER_INDEX,
                chapter_dir,
                f"index {index} already used by {chapters[index].source_path.name}",
            )

        pages = scan_pages(chapter_dir, ignore_patterns)
        chapters[index] = LocalChapter(
            index=index,
            name=name,
            source_path=chapter_dir,
            pages=pages,
        )


def scan_chapters(
    chapters_dir: Path,
    ignore_patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS,
) -> list[LocalChapter]:
    """Scan chapters_dir and return its chapters sorted by index.

    :param chapters_dir: The manga's `chapters/` directory.
    :param ignore_patterns: File/folder names to skip entirely.
    :raises ScanError: On any malformed entry; no partial result is returned.
    """
    if not chapters_dir.is_dir():
        raise ScanError(ScanErrorKind.DIRECTORY_MISSING, chapters_dir)

    ignore_patterns = tuple(ignore_patterns)
    chapters: dict[int, LocalChapter] = {}

    try:
        _collect_chapters(chapters_dir, ignore_patterns, chapters)
    except OSError as exc:
        path = Path(exc.filename) if exc.filename else chapters_dir
        raise ScanError(ScanErrorKind.UNREADABLE, path, exc.strerror or str(exc)) from exc

    result = sorted(chapters.values(), key=lambda c: c.index)
    logger.info(f"[SCAN] {chapters_dir.parent.name} ({len(result)} chapters)")
    return result
