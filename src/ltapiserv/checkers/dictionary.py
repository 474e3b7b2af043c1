"""User dictionaries suppressing spelling suggestions, with hot reload."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Optional, Set

from ltapiserv.errors import PathError
from ltapiserv.utils.files import ensure_parent, snapshot_mtimes

LOGGER = logging.getLogger(__name__)


def read_dictionary(path: Path) -> Set[str]:
    """Read the lowercased words of a dictionary file.

    Creates the file (and its directory) when missing, so that it can be
    edited and reloaded later.
    """
    try:
        ensure_parent(path)
    except OSError as exc:
        raise PathError(f"Invalid dictionary path {path}: {exc}") from exc

    if not path.is_file():
        try:
            path.write_text("", encoding="utf-8")
        except OSError as exc:
            raise PathError(f"Failed to initialize dictionary at {path}: {exc}") from exc
        return set()

    with path.open("r", encoding="utf-8") as handle:
        return {word.lower() for line in handle for word in line.split()}


class CustomDictionary:
    """Set of user-approved words.

    The word set is immutable and replaced wholesale on every change, so a
    ``snapshot()`` taken by a reader never observes a half-applied reload.
    """

    def __init__(self, words: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._words: FrozenSet[str] = frozenset(word.lower() for word in words)

    def __len__(self) -> int:
        return len(self._words)

    def __contains__(self, word: object) -> bool:
        return word in self._words

    def snapshot(self) -> FrozenSet[str]:
        return self._words

    def clear(self) -> None:
        with self._lock:
            self._words = frozenset()

    def load(self, path: Path) -> None:
        """Add the words of a dictionary file."""
        words = read_dictionary(path)
        with self._lock:
            self._words = self._words | words
        LOGGER.info("Added dictionary %s, currently %d custom words", path, len(self._words))

    def reload(self, paths: Iterable[Path]) -> None:
        """Replace all words with the contents of ``paths``.

        Every file is read before anything is swapped; on error the previous
        words stay in effect.
        """
        words: Set[str] = set()
        for path in paths:
            words |= read_dictionary(path)
        with self._lock:
            self._words = frozenset(words)
        LOGGER.info("Reloaded dictionaries, currently %d custom words", len(words))


def contains_word(words: FrozenSet[str], word: str) -> bool:
    """Membership test tolerating simple plurals (trailing ``s``)."""
    return word in words or word.rstrip("s") in words


class DictionaryWatcher(threading.Thread):
    """Thread polling dictionary files and calling ``on_change`` after edits.

    Successive writes within ``debounce`` seconds collapse into one call.
    """

    def __init__(
        self,
        paths: Iterable[Path],
        on_change: Callable[[], None],
        *,
        interval: float = 0.5,
        debounce: float = 1.0,
    ) -> None:
        super().__init__(name="dictionary-watcher", daemon=True)
        self.paths: List[Path] = list(paths)
        self.on_change = on_change
        self.interval = interval
        self.debounce = debounce
        self._stop_event = threading.Event()
        self._mtimes = snapshot_mtimes(self.paths)
        self._pending_since: Optional[float] = None

    def poll(self, now: Optional[float] = None) -> bool:
        """Check the files once; return ``True`` when ``on_change`` ran."""
        now = time.monotonic() if now is None else now
        mtimes = snapshot_mtimes(self.paths)
        if mtimes != self._mtimes:
            self._mtimes = mtimes
            self._pending_since = now
            return False

        if self._pending_since is None or now - self._pending_since < self.debounce:
            return False

        self._pending_since = None
        try:
            self.on_change()
        except Exception:
            LOGGER.exception("Dictionary reload failed, keeping the previous words")
        return True

    def run(self) -> None:
        LOGGER.info("Watching %s for changes", ", ".join(str(path) for path in self.paths))
        while not self._stop_event.wait(self.interval):
            try:
                self.poll()
            except Exception:
                LOGGER.exception("Polling dictionaries failed")

    def stop(self) -> None:
        """Signal the watcher to stop."""
        self._stop_event.set()
