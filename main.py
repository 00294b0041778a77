"""Swadloon CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from swadloon.catalog import CatalogClient
from swadloon.config import DEFAULT_CONFIG_PATH, SwadloonConfig, get_config, write_config
from swadloon.errors import LibraryError, RecordStoreError, SwadloonError
from swadloon.library import find_manga_dirs, load_manga_dir
from swadloon.logging_config import console, setup_logging
from swadloon.record_store import RecordStore
from swadloon.reconcile import Action
from swadloon.sync import ensure_metadata, sync_library


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Upload a local manga library to a record-store")
logger = logging.getLogger("swadloon")


def _load_config(
    endpoint: Optional[str] = None,
    threads: Optional[int] = None,
    force_pages: bool = False,
) -> SwadloonConfig:
    config = get_config()
    if endpoint:
        config.server.endpoint = endpoint.rstrip("/")
    if threads is not None:
        if threads < 1:
            typer.echo("[ERROR] --threads must be at least 1")
            raise typer.Exit(code=1)
        config.upload.threads = threads
    if force_pages:
        config.upload.force_pages = True
    return config


def _print_stats(name: str, stats: dict, dry_run: bool = False) -> None:
    prefix = "Plan" if dry_run else "✓ Upload completed"
    typer.echo(
        f"{prefix} for {name}: "
        f"{stats['in_sync']} in sync, "
        f"{stats['created']} created, "
        f"{stats['updated']} updated, "
        f"{stats['failed']} failed."
    )


@app.command()
def init(
    endpoint: str = typer.Option(..., "--endpoint", help="Record-store base URL"),
    threads: int = typer.Option(4, "--threads", help="Upload worker threads"),
) -> None:
    """Write config.ini with default settings."""
    config = SwadloonConfig()
    config.server.endpoint = endpoint.rstrip("/")
    config.upload.threads = max(threads, 1)
    write_config(DEFAULT_CONFIG_PATH, config)
    typer.echo(f"[OK] Config created at {DEFAULT_CONFIG_PATH}")


@app.command()
def upload(
    directory: Path = typer.Argument(..., help="Library folder holding one folder per manga"),
    endpoint: Optional[str] = typer.Argument(None, help="Record-store base URL (overrides config)"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Upload worker threads"),
    manga: Optional[str] = typer.Option(None, "--manga", "-m", help="Only upload this manga folder"),
    force_pages: bool = typer.Option(False, "--force-pages", help="Replace pages of every existing chapter"),
) -> None:
    """Reconcile each manga with the record-store and upload what is missing."""
    setup_logging()
    config = _load_config(endpoint, threads, force_pages)

    with RecordStore(config.endpoint, per_page=config.upload.per_page) as store, Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:

        def progress_factory(manga_dir, total):
            task_id = progress.add_task(manga_dir.name, total=total)
            return lambda done, _total: progress.update(task_id, completed=done)

        catalog = CatalogClient(config.catalog.endpoint)
        try:
            reports, aborted = sync_library(
                directory, store, catalog, config, only=manga, progress_factory=progress_factory
            )
        except LibraryError as exc:
            typer.echo(f"[ERROR] {exc}")
            raise typer.Exit(code=1)

    for report in reports:
        _print_stats(report.manga.name, report.stats)
        for failure in report.failures:
            typer.echo(f"  ✗ {failure.error}")

    for path, error in aborted:
        typer.echo(f"[ERROR] {path.name}: {error}")

    if aborted or (manga is not None and not reports):
        raise typer.Exit(code=1)


@app.command()
def plan(
    directory: Path = typer.Argument(..., help="Library folder holding one folder per manga"),
    endpoint: Optional[str] = typer.Argument(None, help="Record-store base URL (overrides config)"),
    manga: Optional[str] = typer.Option(None, "--manga", "-m", help="Only plan this manga folder"),
    force_pages: bool = typer.Option(False, "--force-pages", help="Replace pages of every existing chapter"),
) -> None:
    """Show what an upload would do without changing anything."""
    setup_logging("WARNING")
    config = _load_config(endpoint, force_pages=force_pages)

    with RecordStore(config.endpoint, per_page=config.upload.per_page) as store:
        try:
            reports, aborted = sync_library(
                directory, store, CatalogClient(config.catalog.endpoint), config,
                only=manga, dry_run=True,
            )
        except LibraryError as exc:
            typer.echo(f"[ERROR] {exc}")
            raise typer.Exit(code=1)

    for report in reports:
        typer.echo(f"{report.manga.name}:")
        for entry in report.plan:
            label = entry.describe()
            if entry.action is Action.UPDATE and not entry.replace_pages:
                label += " (in sync)"
            typer.echo(f"  {label:<28} {entry.chapter.name} ({entry.chapter.page_count} pages)")
        _print_stats(report.manga.name, report.stats, dry_run=True)

    for path, error in aborted:
        typer.echo(f"[ERROR] {path.name}: {error}")

    if aborted:
        raise typer.Exit(code=1)


@app.command()
def metadata(
    directory: Path = typer.Argument(..., help="Library folder holding one folder per manga"),
    manga: Optional[str] = typer.Option(None, "--manga", "-m", help="Only this manga folder"),
    refresh: bool = typer.Option(False, "--refresh", help="Re-fetch even if metadata.json exists"),
) -> None:
    """Fetch catalog metadata into each manga's metadata.json."""
    setup_logging()
    config = _load_config()
    catalog = CatalogClient(config.catalog.endpoint)

    try:
        paths = find_manga_dirs(directory, only=manga, ignore_patterns=config.scanner.ignore_patterns)
    except LibraryError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)

    failed = 0
    for path in paths:
        try:
            entry = load_manga_dir(path)
            meta = ensure_metadata(entry, catalog, refresh=refresh)
        except SwadloonError as exc:
            typer.echo(f"[ERROR] {path.name}: {exc}")
            failed += 1
            continue
        typer.echo(f"[OK] {path.name}: {meta.title}")

    if failed:
        raise typer.Exit(code=1)


@app.command("list-remote")
def list_remote(
    endpoint: Optional[str] = typer.Argument(None, help="Record-store base URL (overrides config)"),
) -> None:
    """List manga records on the record-store."""
    config = _load_config(endpoint)

    with RecordStore(config.endpoint, per_page=config.upload.per_page) as store:
        try:
            mangas = store.get_all_manga()
        except RecordStoreError as exc:
            typer.echo(f"[ERROR] {exc}")
            raise typer.Exit(code=1)

    typer.echo(f"{len(mangas)} manga on {config.endpoint}:")
    for remote in sorted(mangas, key=lambda m: m.title.lower()):
        typer.echo(f"  {remote.id}  {remote.anilist_id:>7}  {remote.title}")


if __name__ == "__main__":
    app()
