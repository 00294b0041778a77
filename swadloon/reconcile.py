"""Local/remote chapter reconciliation.

Compares the scanned local chapters against the chapters already on the
record-store, keyed by chapter index, and decides for each local chapter
whether it has to be created or updated. Remote-only chapters are left alone:
local folders are often a partial subset of what has been uploaded before.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Dict, Iterable, NamedTuple, Optional, Sequence, Tuple

from .logging_config import get_logger
from .models import LocalChapter, RemoteChapter

logger = get_logger(__name__)


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class PlanEntry(NamedTuple):
    action: Action
    chapter: LocalChapter
    remote: Optional[RemoteChapter] = None
    replace_pages: bool = True

    @property
    def index(self) -> int:
        return self.chapter.index

    def describe(self) -> str:
        if self.action is Action.CREATE:
            return f"Create({self.index})"
        return f"Update({self.index}->{self.remote.id})"


@dataclasses.dataclass(frozen=True)
class ReconciliationPlan:
    entries: Tuple[PlanEntry, ...]
    duplicate_indices: Tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def creates(self) -> Tuple[PlanEntry, ...]:
        return tuple(e for e in self.entries if e.action is Action.CREATE)

    @property
    def updates(self) -> Tuple[PlanEntry, ...]:
        return tuple(e for e in self.entries if e.action is Action.UPDATE)


def index_remote_chapters(
    remote: Iterable[RemoteChapter],
) -> Tuple[Dict[int, RemoteChapter], Tuple[int, ...]]:
    """Index remote chapters by chapter index.

    When several records share an index the first one wins and the index is
    reported back as a duplicate.
    """
    by_index: Dict[int, RemoteChapter] = {}
    duplicates: list[int] = []

    for chapter in remote:
        existing = by_index.get(chapter.index)
        if existing is None:
            by_index[chapter.index] = chapter
            continue

        logger.warning(
            f"DuplicateRemoteIndex: chapter {chapter.index} exists as "
            f"{existing.id} and {chapter.id}, using {existing.id}"
        )
        if chapter.index not in duplicates:
            duplicates.append(chapter.index)

    return by_index, tuple(duplicates)


def needs_page_replacement(chapter: LocalChapter, remote: RemoteChapter) -> bool:
    return remote.page_count != chapter.page_count


def reconcile(
    local: Sequence[LocalChapter],
    remote: Iterable[RemoteChapter],
    force_pages: bool = False,
) -> ReconciliationPlan:
    """Build the upload plan for one manga.

    :param local: Scanned local chapters, ascending by index.
    :param remote: Every remote chapter of the manga.
    :param force_pages: Replace pages on every update, not only when the
        page count differs.
    :return: One entry per local chapter, in local order.
    """
    by_index, duplicates = index_remote_chapters(remote)

    entries = []
    for chapter in local:
        match = by_index.get(chapter.index)
        if match is None:
            entries.append(PlanEntry(Action.CREATE, chapter))
        else:
            replace = force_pages or needs_page_replacement(chapter, match)
            entries.append(PlanEntry(Action.UPDATE, chapter, match, replace))

    return ReconciliationPlan(tuple(entries), duplicates)
