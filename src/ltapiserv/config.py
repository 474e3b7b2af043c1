"""Application configuration defaults."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

APP_NAME = "ltapiserv"
ARCHIVE_ENV = "LTAPISERV_ARCHIVE"
CACHE_DIR_ENV = "LTAPISERV_CACHE_DIR"


def default_cache_dir() -> Path:
    """Get the platform cache directory for model snapshots."""
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override)

    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Caches"
    elif sys.platform == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
    else:
        xdg_cache = os.environ.get("XDG_CACHE_HOME")
        base = Path(xdg_cache) if xdg_cache else Path.home() / ".cache"
    return base / APP_NAME


def _get_default_archive_path() -> Path | None:
    value = os.environ.get(ARCHIVE_ENV)
    return Path(value) if value else None


@dataclass(slots=True)
class AppConfig:
    archive_path: Path | None = None
    dictionaries: List[Path] = field(default_factory=list)
    cache_dir: Path | None = None
    host: str = "0.0.0.0"
    port: int = 8875
    max_text_length: int = 100_000
    watch_dictionaries: bool = False
    watch_interval: float = 0.5
    watch_debounce: float = 1.0

    def __post_init__(self) -> None:
        if self.archive_path is None:
            self.archive_path = _get_default_archive_path()
        if self.cache_dir is None:
            self.cache_dir = default_cache_dir()

    def resolve_archive_path(self, base_dir: Path | None = None) -> Path | None:
        if self.archive_path is None:
            return None
        if Path(self.archive_path).is_absolute() or base_dir is None:
            return Path(self.archive_path)
        return base_dir / self.archive_path

    def resolve_dictionaries(self, base_dir: Path | None = None) -> List[Path]:
        resolved = []
        for path in self.dictionaries:
            path = Path(path).expanduser()
            if path.is_absolute() or base_dir is None:
                resolved.append(path)
            else:
                resolved.append(base_dir / path)
        return resolved
