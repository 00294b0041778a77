"""Config management for Swadloon.

Reads `config.ini` from the data directory (beside main.py by default, or
`$DATA_DIR` when set). CLI flags override whatever is loaded here.
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]

DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"

DEFAULT_IGNORE_PATTERNS = (".DS_Store", "Thumbs.db", "@eaDir")
DEFAULT_CATALOG_ENDPOINT = "https://graphql.anilist.co/"


@dataclasses.dataclass
class ServerConfig:
    endpoint: str = "http://127.0.0.1:8090"


@dataclasses.dataclass
class UploadConfig:
    threads: int = 4
    poll_interval: float = 0.75
    per_page: int = 200
    force_pages: bool = False


@dataclasses.dataclass
class ScannerConfig:
    ignore_patterns: tuple[str, ...] = DEFAULT_IGNORE_PATTERNS


@dataclasses.dataclass
class CatalogConfig:
    endpoint: str = DEFAULT_CATALOG_ENDPOINT


@dataclasses.dataclass
class SwadloonConfig:
    server: ServerConfig = dataclasses.field(default_factory=ServerConfig)
    upload: UploadConfig = dataclasses.field(default_factory=UploadConfig)
    scanner: ScannerConfig = dataclasses.field(default_factory=ScannerConfig)
    catalog: CatalogConfig = dataclasses.field(default_factory=CatalogConfig)

    @property
    def endpoint(self) -> str:
        return self.server.endpoint


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


def load_config(config_path: Optional[pathlib.Path] = None) -> SwadloonConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in the data directory.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    server = ServerConfig(
        endpoint=parser.get("server", "endpoint", fallback=ServerConfig.endpoint).rstrip("/"),
    )

    threads = parser.getint("upload", "threads", fallback=UploadConfig.threads)
    if threads < 1:
        logger.warning(f"upload.threads must be at least 1 (got {threads}), using 1")
        threads = 1

    upload = UploadConfig(
        threads=threads,
        poll_interval=parser.getfloat(
            "upload", "poll_interval", fallback=UploadConfig.poll_interval
        ),
        per_page=parser.getint("upload", "per_page", fallback=UploadConfig.per_page),
        force_pages=_parse_bool(
            parser.get("upload", "force_pages", fallback=None), False
        ),
    )

    scanner = ScannerConfig(
        ignore_patterns=_parse_list(
            parser.get(
                "scanner",
                "ignore_patterns",
                fallback=",".join(DEFAULT_IGNORE_PATTERNS),
            )
        ),
    )

    catalog = CatalogConfig(
        endpoint=parser.get("catalog", "endpoint", fallback=DEFAULT_CATALOG_ENDPOINT),
    )

    return SwadloonConfig(server=server, upload=upload, scanner=scanner, catalog=catalog)


def write_config(config_path: pathlib.Path, config: SwadloonConfig) -> None:
    """Write `config` to `config_path` as INI, creating parent folders."""
    parser = configparser.ConfigParser()

    parser["server"] = {
        "endpoint": config.server.endpoint,
    }
    parser["upload"] = {
        "threads": str(config.upload.threads),
        "poll_interval": str(config.upload.poll_interval),
        "per_page": str(config.upload.per_page),
        "force_pages": "true" if config.upload.force_pages else "false",
    }
    parser["scanner"] = {
        "ignore_patterns": ",".join(config.scanner.ignore_patterns),
    }
    parser["catalog"] = {
        "endpoint": config.catalog.endpoint,
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w") as handle:
        parser.write(handle)


_cached_config: Optional[SwadloonConfig] = None


def get_config() -> SwadloonConfig:
    """Return the cached config singleton.

    Loads from disk on first call; falls back to defaults when there is no
    config.ini so that every command also works from flags alone.
    """
    global _cached_config
    if _cached_config is None:
        try:
            _cached_config = load_config()
        except FileNotFoundError:
            logger.debug(f"No config at {DEFAULT_CONFIG_PATH}, using defaults")
            _cached_config = SwadloonConfig()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None
