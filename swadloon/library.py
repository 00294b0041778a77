"""On-disk manga library layout.

    <library>/
        <manga>/
            manga.json        {"anilist_id": 30013, "name": "One Piece"}
            metadata.json     cached catalog metadata (optional)
            images/           cover.<ext>, banner.<ext> (optional)
            chapters/         one folder per chapter, see scanner.py
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional

from .config import DEFAULT_IGNORE_PATTERNS
from .errors import LibraryError
from .logging_config import get_logger
from .models import MangaImages, MangaMetadata

logger = get_logger(__name__)

MANGA_SPEC_FILE = "manga.json"
METADATA_FILE = "metadata.json"
IMAGES_DIR = "images"
CHAPTERS_DIR = "chapters"

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


class MangaDir(NamedTuple):
    path: Path
    name: str
    anilist_id: int

    @property
    def chapters_dir(self) -> Path:
        return self.path / CHAPTERS_DIR

    @property
    def metadata_path(self) -> Path:
        return self.path / METADATA_FILE

    @property
    def images_dir(self) -> Path:
        return self.path / IMAGES_DIR


def load_manga_dir(path: Path) -> MangaDir:
    """Read `manga.json` from a manga directory."""
    spec_path = path / MANGA_SPEC_FILE
    if not spec_path.is_file():
        raise LibraryError(f"{path} is missing '{MANGA_SPEC_FILE}'")

    try:
        spec = json.loads(spec_path.read_text(encoding="utf-8"))
        anilist_id = int(spec["anilist_id"])
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise LibraryError(f"{spec_path} is an invalid '{MANGA_SPEC_FILE}': {exc}") from exc

    name = spec.get("name") or path.name
    return MangaDir(path=path, name=str(name), anilist_id=anilist_id)


def find_manga_dirs(
    library: Path,
    only: Optional[str] = None,
    ignore_patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS,
) -> List[Path]:
    """Return manga directories directly under library, sorted by name.

    With `only`, return just the directory of that name (or nothing).
    """
    if not library.is_dir():
        raise LibraryError(f"Library path does not exist: {library}")

    ignore_patterns = tuple(ignore_patterns)
    dirs = []
    for entry in sorted(library.iterdir()):
        if not entry.is_dir() or entry.name.startswith("._") or entry.name in ignore_patterns:
            continue
        if only is not None and entry.name != only:
            continue
        if not (entry / MANGA_SPEC_FILE).is_file():
            logger.debug(f"Skipping {entry.name}: no {MANGA_SPEC_FILE}")
            continue
        dirs.append(entry)
    return dirs


def load_metadata(manga: MangaDir) -> Optional[MangaMetadata]:
    """Return the cached catalog metadata, or None when there is none."""
    if not manga.metadata_path.is_file():
        return None
    try:
        return MangaMetadata.model_validate_json(manga.metadata_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise LibraryError(f"{manga.metadata_path} is an invalid '{METADATA_FILE}': {exc}") from exc


def save_metadata(manga: MangaDir, metadata: MangaMetadata) -> Path:
    try:
        manga.metadata_path.write_text(metadata.model_dump_json(indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise LibraryError(f"Could not write {manga.metadata_path}: {exc}") from exc
    return manga.metadata_path


def _find_image(images_dir: Path, stem: str) -> Optional[Path]:
    if not images_dir.is_dir():
        return None
    try:
        candidates = sorted(images_dir.iterdir())
    except OSError as exc:
        raise LibraryError(f"Could not list {images_dir}: {exc}") from exc
    for candidate in candidates:
        if candidate.stem == stem and candidate.suffix.lower() in IMAGE_EXTENSIONS:
            return candidate
    return None


def resolve_images(manga: MangaDir) -> MangaImages:
    return MangaImages(
        cover=_find_image(manga.images_dir, "cover"),
        banner=_find_image(manga.images_dir, "banner"),
    )
