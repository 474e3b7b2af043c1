"""Cold loading of packaged language models.

An archive is a ``.tar.gz`` holding a single ``{language_code}/`` folder with:

- ``tokenizer.bin`` and ``rules.bin``: serialized grammar engine resources
- ``frequency_dict.txt``: ``word count`` lines for the spelling index
"""

from __future__ import annotations

import io
import logging
import re
import tarfile
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ltapiserv.checkers.engines import (
    GrammarBackend,
    NlpruleBackend,
    RuleEngine,
    SpellingIndex,
    SymSpellIndex,
    Tokenizer,
)
from ltapiserv.errors import ArchiveFormatError, LanguageFolderError, MissingResourceError
from ltapiserv.models import Language

LOGGER = logging.getLogger(__name__)

LANGUAGE_FOLDER_PATTERN = re.compile(r"^[a-z]+_[A-Z]+$")

TOKENIZER_FILE = "tokenizer.bin"
RULES_FILE = "rules.bin"
DICTIONARY_FILE = "frequency_dict.txt"


@dataclass(slots=True)
class CheckersCore:
    """Fully parsed model resources, shared read-only between requests."""

    tokenizer: Tokenizer
    rules: RuleEngine
    spelling: SpellingIndex
    language: Language


def load_folder(
    folder: Path, language: Language, *, backend: Optional[GrammarBackend] = None
) -> CheckersCore:
    """Load checkers from an unpacked language folder."""
    tokenizer_path = folder / TOKENIZER_FILE
    rules_path = folder / RULES_FILE
    dictionary_path = folder / DICTIONARY_FILE
    for path in (rules_path, tokenizer_path, dictionary_path):
        if not path.is_file():
            raise MissingResourceError(f"{path.name} not found in language folder {folder}")

    backend = backend or NlpruleBackend()
    tokenizer, rules = backend.load(tokenizer_path, rules_path)
    spelling = SymSpellIndex(dictionary_path)
    return CheckersCore(tokenizer=tokenizer, rules=rules, spelling=spelling, language=language)


def find_language_folder(root: Path) -> Path:
    folders = sorted(
        child
        for child in root.iterdir()
        if child.is_dir() and LANGUAGE_FOLDER_PATTERN.match(child.name)
    )
    if not folders:
        raise LanguageFolderError("Found no language folders in archive (expected e.g. en_US/)")
    if len(folders) > 1:
        names = ", ".join(folder.name for folder in folders)
        raise LanguageFolderError(f"Found more than one language folder: {names}")
    return folders[0]


def load_archive_bytes(archive: bytes, *, backend: Optional[GrammarBackend] = None) -> CheckersCore:
    """Unpack and parse an archive, bypassing the cache."""
    LOGGER.info("Parsing language model archive. Subsequent initializations will be faster.")
    with tempfile.TemporaryDirectory(prefix="ltapiserv-") as tmp:
        root = Path(tmp)
        try:
            with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
                tar.extractall(root, filter="data")
        except (tarfile.TarError, zlib.error, EOFError, OSError) as exc:
            raise ArchiveFormatError(f"Failed to unpack language model archive: {exc}") from exc

        folder = find_language_folder(root)
        language = Language.from_code(folder.name)
        LOGGER.debug("Found language folder %s", folder.name)
        return load_folder(folder, language, backend=backend)
