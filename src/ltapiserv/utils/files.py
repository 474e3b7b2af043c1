"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Dict, Iterable


def compute_sha256(data: bytes) -> str:
    """Compute the hex SHA256 digest of in-memory bytes."""
    sha = hashlib.sha256()
    view = memoryview(data)
    for start in range(0, len(view), 1 << 20):
        sha.update(view[start : start + (1 << 20)])
    return sha.hexdigest()


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def snapshot_mtimes(paths: Iterable[Path]) -> Dict[Path, int | None]:
    """Map each path to its modification time, ``None`` when missing or unreadable."""
    mtimes: Dict[Path, int | None] = {}
    for path in paths:
        try:
            mtimes[path] = path.stat().st_mtime_ns
        except OSError:
            mtimes[path] = None
    return mtimes
