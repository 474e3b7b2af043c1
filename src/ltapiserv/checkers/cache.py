"""Content-addressed snapshot cache for parsed language models.

Parsing an archive (building the spelling index in particular) is slow, so
the parsed ``CheckersCore`` is pickled under the SHA-256 of the archive bytes.
A changed archive hashes to a new key; entries are never evicted.
"""

from __future__ import annotations

import logging
import os
import pickle
from pathlib import Path
from typing import Optional

from ltapiserv.checkers.archive import CheckersCore, load_archive_bytes
from ltapiserv.checkers.engines import GrammarBackend
from ltapiserv.config import default_cache_dir
from ltapiserv.errors import PathError, SnapshotFormatError
from ltapiserv.utils.files import compute_sha256

LOGGER = logging.getLogger(__name__)

SNAPSHOT_MAGIC = b"LTAPISERV"
SNAPSHOT_VERSION = 1


def archive_digest(archive: bytes) -> str:
    """Cache key of an archive: hex SHA-256 of its bytes."""
    return compute_sha256(archive)


def encode_snapshot(core: CheckersCore) -> bytes:
    return SNAPSHOT_MAGIC + bytes([SNAPSHOT_VERSION]) + pickle.dumps(
        core, protocol=pickle.HIGHEST_PROTOCOL
    )


def decode_snapshot(blob: bytes) -> CheckersCore:
    header_len = len(SNAPSHOT_MAGIC) + 1
    if len(blob) < header_len or not blob.startswith(SNAPSHOT_MAGIC):
        raise SnapshotFormatError("Not an ltapiserv snapshot")
    version = blob[len(SNAPSHOT_MAGIC)]
    if version != SNAPSHOT_VERSION:
        raise SnapshotFormatError(
            f"Snapshot format version {version} (expected {SNAPSHOT_VERSION})"
        )
    core = pickle.loads(blob[header_len:])
    if not isinstance(core, CheckersCore):
        raise SnapshotFormatError(f"Snapshot holds {type(core).__name__}, not CheckersCore")
    return core


class ModelCache:
    """Key-value blob store of model snapshots, one file per key."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / key

    def read(self, key: str) -> Optional[CheckersCore]:
        """Return the cached core, or ``None`` when absent or unreadable."""
        path = self.path_for(key)
        if not path.is_file():
            return None
        LOGGER.debug("Reading from cache at %s", path)
        try:
            return decode_snapshot(path.read_bytes())
        except Exception as exc:
            # Corrupt or incompatible snapshots fall back to a cold load
            LOGGER.warning("Reading from cache at %s failed (%s), opening again", path, exc)
            return None

    def write(self, key: str, core: CheckersCore) -> bool:
        """Store a snapshot; failures are logged and reported as ``False``."""
        path = self.path_for(key)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(encode_snapshot(core))
            os.replace(tmp_path, path)
        except Exception as exc:
            LOGGER.warning("Saving to cache at %s failed: %s", path, exc)
            if tmp_path.exists():
                tmp_path.unlink()
            return False
        LOGGER.debug("Saved to cache at %s", path)
        return True


def load_checkers_core(
    archive: bytes,
    *,
    cache_dir: Optional[Path] = None,
    backend: Optional[GrammarBackend] = None,
) -> CheckersCore:
    """Load a parsed model from the snapshot cache, parsing the archive on a miss."""
    cache = ModelCache(cache_dir if cache_dir is not None else default_cache_dir())
    key = archive_digest(archive)
    LOGGER.info("Data path is %s", cache.path_for(key))

    core = cache.read(key)
    if core is not None:
        return core

    core = load_archive_bytes(archive, backend=backend)
    cache.write(key, core)
    return core


def load_checkers_core_from_path(
    archive_path: Path,
    *,
    cache_dir: Optional[Path] = None,
    backend: Optional[GrammarBackend] = None,
) -> CheckersCore:
    try:
        archive = archive_path.read_bytes()
    except OSError as exc:
        raise PathError(f"Cannot read language model archive {archive_path}: {exc}") from exc
    return load_checkers_core(archive, cache_dir=cache_dir, backend=backend)
