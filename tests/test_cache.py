"""Tests for the content-addressed model snapshot cache."""

from __future__ import annotations

import hashlib
import pickle
from pathlib import Path
from unittest.mock import patch

import pytest

from ltapiserv.checkers import cache as cache_module
from ltapiserv.checkers.archive import CheckersCore
from ltapiserv.checkers.cache import (
    SNAPSHOT_MAGIC,
    SNAPSHOT_VERSION,
    ModelCache,
    archive_digest,
    decode_snapshot,
    encode_snapshot,
    load_checkers_core,
    load_checkers_core_from_path,
)
from ltapiserv.checkers.pipeline import Checkers
from ltapiserv.errors import ArchiveFormatError, PathError, SnapshotFormatError
from ltapiserv.text.annotated import AnnotatedText


def test_archive_digest_is_sha256() -> None:
    assert archive_digest(b"abc") == hashlib.sha256(b"abc").hexdigest()
    assert archive_digest(b"abc") != archive_digest(b"abd")


class TestSnapshotFormat:
    """Test the versioned snapshot encoding."""

    def test_round_trip(self, english_core: CheckersCore) -> None:
        restored = decode_snapshot(encode_snapshot(english_core))
        assert restored.language == english_core.language
        assert restored.spelling.frequencies == english_core.spelling.frequencies

    def test_header(self, english_core: CheckersCore) -> None:
        blob = encode_snapshot(english_core)
        assert blob.startswith(SNAPSHOT_MAGIC)
        assert blob[len(SNAPSHOT_MAGIC)] == SNAPSHOT_VERSION

    def test_unknown_version_fails_closed(self, english_core: CheckersCore) -> None:
        blob = bytearray(encode_snapshot(english_core))
        blob[len(SNAPSHOT_MAGIC)] = SNAPSHOT_VERSION + 1
        with pytest.raises(SnapshotFormatError, match="version"):
            decode_snapshot(bytes(blob))

    @pytest.mark.parametrize("blob", [b"", b"garbage", SNAPSHOT_MAGIC])
    def test_bad_header(self, blob: bytes) -> None:
        with pytest.raises(SnapshotFormatError):
            decode_snapshot(blob)

    def test_wrong_payload_type(self) -> None:
        blob = SNAPSHOT_MAGIC + bytes([SNAPSHOT_VERSION]) + pickle.dumps({"not": "a core"})
        with pytest.raises(SnapshotFormatError):
            decode_snapshot(blob)


class TestModelCache:
    """Test the snapshot blob store."""

    def test_read_missing(self, tmp_path: Path) -> None:
        assert ModelCache(tmp_path).read("abc") is None

    def test_write_then_read(self, tmp_path: Path, english_core: CheckersCore) -> None:
        store = ModelCache(tmp_path / "cache")

        assert store.write("key", english_core) is True
        assert store.path_for("key").is_file()
        assert store.read("key").language == english_core.language
        assert sorted(path.name for path in (tmp_path / "cache").iterdir()) == ["key"]

    def test_corrupt_snapshot_returns_none(self, tmp_path: Path, caplog) -> None:
        store = ModelCache(tmp_path)
        store.path_for("key").write_bytes(SNAPSHOT_MAGIC + bytes([SNAPSHOT_VERSION]) + b"\x80junk")

        assert store.read("key") is None
        assert "opening again" in caplog.text

    def test_unwritable_cache_dir(self, tmp_path: Path, english_core: CheckersCore, caplog) -> None:
        """Write failures are logged, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        assert ModelCache(blocker / "cache").write("key", english_core) is False
        assert "Saving to cache" in caplog.text


class TestLoadCheckersCore:
    """Test the read-through cache around archive parsing."""

    def test_cold_load_populates_cache(self, tmp_path: Path, archive_bytes: bytes, fake_backend) -> None:
        core = load_checkers_core(archive_bytes, cache_dir=tmp_path, backend=fake_backend)

        assert str(core.language) == "en-US"
        assert (tmp_path / archive_digest(archive_bytes)).is_file()

    def test_warm_load_skips_archive(self, tmp_path: Path, archive_bytes: bytes, fake_backend) -> None:
        """A cached snapshot is used without unpacking the archive."""
        load_checkers_core(archive_bytes, cache_dir=tmp_path, backend=fake_backend)

        with patch.object(cache_module, "load_archive_bytes") as cold_load:
            core = load_checkers_core(archive_bytes, cache_dir=tmp_path, backend=fake_backend)

        cold_load.assert_not_called()
        assert str(core.language) == "en-US"
        assert [c.term for c in core.spelling.lookup("cst", 3)] == ["cat"]

    def test_corrupt_snapshot_falls_back(self, tmp_path: Path, archive_bytes: bytes, fake_backend) -> None:
        (tmp_path / archive_digest(archive_bytes)).write_bytes(b"corrupt")

        core = load_checkers_core(archive_bytes, cache_dir=tmp_path, backend=fake_backend)

        assert str(core.language) == "en-US"
        assert decode_snapshot((tmp_path / archive_digest(archive_bytes)).read_bytes())

    def test_changed_archive_gets_new_entry(
        self, tmp_path: Path, archive_factory, language_files_factory, fake_backend
    ) -> None:
        first = archive_factory(language_files_factory("en_US"))
        second = archive_factory(language_files_factory("de_DE"))

        load_checkers_core(first, cache_dir=tmp_path, backend=fake_backend)
        core = load_checkers_core(second, cache_dir=tmp_path, backend=fake_backend)

        assert str(core.language) == "de-DE"
        assert len(list(tmp_path.iterdir())) == 2

    def test_unwritable_cache_still_loads(self, tmp_path: Path, archive_bytes: bytes, fake_backend) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        core = load_checkers_core(archive_bytes, cache_dir=blocker / "cache", backend=fake_backend)

        assert str(core.language) == "en-US"

    def test_invalid_archive_not_cached(self, tmp_path: Path, fake_backend) -> None:
        with pytest.raises(ArchiveFormatError):
            load_checkers_core(b"nope", cache_dir=tmp_path, backend=fake_backend)
        assert list(tmp_path.iterdir()) == []

    def test_from_path(self, tmp_path: Path, archive_bytes: bytes, fake_backend) -> None:
        archive = tmp_path / "en_US.tar.gz"
        archive.write_bytes(archive_bytes)

        core = load_checkers_core_from_path(archive, cache_dir=tmp_path / "cache", backend=fake_backend)

        assert str(core.language) == "en-US"

    def test_from_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(PathError, match="missing.tar.gz"):
            load_checkers_core_from_path(tmp_path / "missing.tar.gz", cache_dir=tmp_path)


def test_checkers_from_archive_bytes(tmp_path: Path, archive_bytes: bytes, fake_backend) -> None:
    """Checkers built from a cached archive run the whole pipeline."""
    checkers = Checkers.from_archive_bytes(archive_bytes, cache_dir=tmp_path, backend=fake_backend)
    checkers = Checkers.from_archive_bytes(archive_bytes, cache_dir=tmp_path, backend=fake_backend)

    matches = checkers.suggest(AnnotatedText.from_text("the the cst"))

    assert [match.rule.issue_type for match in matches] == ["duplication", "misspelling"]
