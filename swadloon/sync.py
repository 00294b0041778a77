"""Per-manga reconciliation and upload runs.

For every manga directory:

1. read manga.json and scan chapters/ (no network before this succeeds)
2. load or fetch catalog metadata and create/update the manga record
3. fetch every remote chapter of the manga
4. reconcile and hand the plan to the upload dispatcher

Errors in steps 1-3 abort that manga only. Upload failures in step 4 are
counted in the report and never abort anything.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Tuple

from .catalog import CatalogClient
from .config import SwadloonConfig
from .dispatch import JobResult, UploadDispatcher, jobs_from_plan
from .errors import FetchError, RecordStoreError, SwadloonError
from .library import (
    MangaDir,
    find_manga_dirs,
    load_manga_dir,
    load_metadata,
    resolve_images,
    save_metadata,
)
from .logging_config import get_logger
from .models import LocalChapter, MangaImages, MangaMetadata, RemoteManga
from .progress import ProgressCallback
from .reconcile import Action, ReconciliationPlan, reconcile
from .record_store import RecordStore
from .scanner import scan_chapters

logger = get_logger(__name__)

ProgressFactory = Callable[[MangaDir, int], Optional[ProgressCallback]]


class SyncReport(NamedTuple):
    manga: MangaDir
    plan: ReconciliationPlan
    results: Tuple[JobResult, ...] = ()
    dry_run: bool = False

    @property
    def stats(self) -> dict:
        """Counts of in-sync, created, updated and failed chapters.

        An update that did not need its pages replaced counts as in sync. For
        dry runs the counts describe the plan instead of outcomes.
        """
        stats = {"in_sync": 0, "created": 0, "updated": 0, "failed": 0}
        if self.dry_run:
            entries = [(entry, True) for entry in self.plan]
        else:
            entries = [(r.job.entry, r.succeeded) for r in self.results]

        for entry, succeeded in entries:
            if not succeeded:
                stats["failed"] += 1
            elif entry.action is Action.CREATE:
                stats["created"] += 1
            elif entry.replace_pages:
                stats["updated"] += 1
            else:
                stats["in_sync"] += 1
        return stats

    @property
    def failures(self) -> List[JobResult]:
        return [r for r in self.results if not r.succeeded]


def ensure_metadata(
    manga: MangaDir, catalog: CatalogClient, refresh: bool = False
) -> MangaMetadata:
    """Return cached metadata.json, fetching (and caching) it from the catalog if needed."""
    metadata = None if refresh else load_metadata(manga)
    if metadata is not None:
        if metadata.anilist_id != manga.anilist_id:
            logger.warning(
                f"{manga.name}: metadata.json is for AniList {metadata.anilist_id}, "
                f"manga.json says {manga.anilist_id}"
            )
        return metadata

    logger.info(f"Fetching catalog metadata for '{manga.name}' (AniList {manga.anilist_id})")
    metadata = catalog.fetch_metadata(manga.anilist_id)
    save_metadata(manga, metadata)
    return metadata


def resolve_manga(
    store: RecordStore, metadata: MangaMetadata, images: MangaImages
) -> RemoteManga:
    """Create the manga record, or refresh it if it already exists."""
    existing = store.find_manga(metadata.anilist_id)
    if existing is None:
        logger.info(f"[+] Creating manga {metadata.anilist_id} '{metadata.title}'")
        return store.create_manga(metadata, images)

    logger.info(f"[~] Updating manga {metadata.anilist_id} '{metadata.title}'")
    return store.update_manga(existing, metadata, images)


def _find_existing_manga(store: RecordStore, anilist_id: int) -> Optional[RemoteManga]:
    try:
        return store.find_manga(anilist_id)
    except RecordStoreError as exc:
        raise FetchError.from_store_error(f"manga {anilist_id}", exc) from exc


def _scan(manga: MangaDir, config: SwadloonConfig) -> List[LocalChapter]:
    chapters = scan_chapters(manga.chapters_dir, config.scanner.ignore_patterns)
    if not chapters:
        logger.warning(f"{manga.name}: no chapters found in {manga.chapters_dir}")
    return chapters


def plan_manga(
    path: Path,
    store: RecordStore,
    config: SwadloonConfig,
) -> SyncReport:
    """Dry run: compute the plan without writing anything to the record-store."""
    manga = load_manga_dir(path)
    chapters = _scan(manga, config)

    remote_manga = _find_existing_manga(store, manga.anilist_id)
    remote = store.get_chapters(remote_manga.id) if remote_manga is not None else []

    plan = reconcile(chapters, remote, force_pages=config.upload.force_pages)
    return SyncReport(manga, plan, dry_run=True)


def sync_manga(
    path: Path,
    store: RecordStore,
    catalog: CatalogClient,
    config: SwadloonConfig,
    progress_factory: Optional[ProgressFactory] = None,
) -> SyncReport:
    """Run one reconciliation-and-upload pass for the manga at path.

    :raises SwadloonError: When the manga cannot be scanned, resolved or its
        remote chapters fetched. Individual chapter failures are in the report.
    """
    manga = load_manga_dir(path)
    chapters = _scan(manga, config)

    metadata = ensure_metadata(manga, catalog)
    try:
        remote_manga = resolve_manga(store, metadata, resolve_images(manga))
    except RecordStoreError as exc:
        raise FetchError.from_store_error(f"manga record for '{manga.name}'", exc) from exc

    remote = store.get_chapters(remote_manga.id)
    plan = reconcile(chapters, remote, force_pages=config.upload.force_pages)
    logger.info(
        f"{manga.name}: {len(plan.creates)} to create, {len(plan.updates)} to update "
        f"({len(remote)} on server)"
    )

    on_progress = progress_factory(manga, len(plan)) if progress_factory and len(plan) else None
    dispatcher = UploadDispatcher(config.upload.threads, config.upload.poll_interval)
    results = dispatcher.run(jobs_from_plan(plan, remote_manga.id, store), on_progress)

    return SyncReport(manga, plan, tuple(results))


def sync_library(
    library: Path,
    store: RecordStore,
    catalog: CatalogClient,
    config: SwadloonConfig,
    only: Optional[str] = None,
    dry_run: bool = False,
    progress_factory: Optional[ProgressFactory] = None,
) -> Tuple[List[SyncReport], List[Tuple[Path, SwadloonError]]]:
    """Run every manga directory under library (or just `only`).

    :return: (reports of completed runs, (path, error) of aborted runs)
    """
    reports: List[SyncReport] = []
    aborted: List[Tuple[Path, SwadloonError]] = []

    manga_dirs = find_manga_dirs(library, only=only, ignore_patterns=config.scanner.ignore_patterns)
    if only is not None and not manga_dirs:
        logger.error(f"No manga directory named '{only}' in {library}")

    for path in manga_dirs:
        try:
            if dry_run:
                report = plan_manga(path, store, config)
            else:
                report = sync_manga(path, store, catalog, config, progress_factory)
        except SwadloonError as exc:
            logger.error(f"✗ {path.name}: {exc}")
            aborted.append((path, exc))
            continue
        reports.append(report)

    return reports, aborted
