"""Shared fixtures and fake detector engines."""

from __future__ import annotations

import io
import json
import re
import tarfile
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple

import pytest

from ltapiserv.checkers.archive import CheckersCore
from ltapiserv.checkers.engines import RawSuggestion, Sentence, SpellingCandidate, Token
from ltapiserv.checkers.pipeline import Checkers
from ltapiserv.models import Language

TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")
SENTENCE_END = {".", "!", "?"}


class FakeTokenizer:
    """Word/punctuation tokenizer splitting sentences after ``.``, ``!`` and ``?``."""

    def tokenize(self, text: str) -> List[Sentence]:
        sentences: List[Sentence] = []
        current: List[Token] = []
        for found in TOKEN_PATTERN.finditer(text):
            current.append(Token(word=found.group(), start=found.start(), end=found.end()))
            if found.group() in SENTENCE_END:
                sentences.append(self._sentence(text, current))
                current = []
        if current:
            sentences.append(self._sentence(text, current))
        return sentences

    @staticmethod
    def _sentence(text: str, tokens: List[Token]) -> Sentence:
        start, end = tokens[0].start, tokens[-1].end
        return Sentence(text=text[start:end], start=start, tokens=tuple(tokens))


class FakeRules:
    """Regex rules: ``(pattern, rule_id, message, replacements)``."""

    def __init__(self, rules: Sequence[Tuple[str, str, str, Sequence[str]]] = ()) -> None:
        self.rules = [(pattern, rule_id, message, tuple(repl)) for pattern, rule_id, message, repl in rules]

    def apply_rules(self, sentence: Sentence) -> List[RawSuggestion]:
        suggestions = []
        for pattern, rule_id, message, replacements in self.rules:
            for found in re.finditer(pattern, sentence.text):
                suggestions.append(
                    RawSuggestion(
                        start=sentence.start + found.start(),
                        end=sentence.start + found.end(),
                        message=message,
                        replacements=replacements,
                        rule_id=rule_id,
                    )
                )
        return suggestions


def _edit_distance(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + (char_a != char_b))
            )
        previous = current
    return previous[-1]


class FakeSpelling:
    """Closest-distance lookup over a small frequency dictionary."""

    def __init__(self, frequencies: Dict[str, int]) -> None:
        self.frequencies = dict(frequencies)
        self.lookups: List[str] = []

    def lookup(self, word: str, max_distance: int) -> List[SpellingCandidate]:
        self.lookups.append(word)
        if word in self.frequencies:
            return [SpellingCandidate(word, 0)]
        scored = [
            (_edit_distance(word, term), -count, term)
            for term, count in self.frequencies.items()
        ]
        scored = [item for item in scored if item[0] <= max_distance]
        if not scored:
            return []
        closest = min(item[0] for item in scored)
        return [
            SpellingCandidate(term, distance)
            for distance, _, term in sorted(scored)
            if distance == closest
        ]


class FakeBackend:
    """Grammar backend reading rules as JSON from ``rules.bin``."""

    def load(self, tokenizer_path: Path, rules_path: Path):
        rules = json.loads(rules_path.read_text(encoding="utf-8"))
        return FakeTokenizer(), FakeRules([tuple(rule) for rule in rules])


ENGLISH_WORDS = {
    "the": 1000,
    "cat": 500,
    "sat": 400,
    "on": 900,
    "mat": 300,
    "is": 950,
    "rare": 120,
    "hello": 200,
    "world": 210,
    "this": 800,
    "test": 150,
    "error": 90,
    "word": 80,
    "work": 85,
    "has": 700,
    "have": 720,
}


@pytest.fixture
def english_core() -> CheckersCore:
    return CheckersCore(
        tokenizer=FakeTokenizer(),
        rules=FakeRules(),
        spelling=FakeSpelling(ENGLISH_WORDS),
        language=Language.from_code("en_US"),
    )


@pytest.fixture
def make_checkers() -> Callable[..., Checkers]:
    def _make(rules=(), words: Dict[str, int] | None = None) -> Checkers:
        core = CheckersCore(
            tokenizer=FakeTokenizer(),
            rules=FakeRules(rules),
            spelling=FakeSpelling(ENGLISH_WORDS if words is None else words),
            language=Language.from_code("en_US"),
        )
        return Checkers(core)

    return _make


def build_archive(files: Dict[str, bytes]) -> bytes:
    """Build ``.tar.gz`` bytes from a ``{member path: content}`` mapping."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def language_files(folder: str = "en_US", rules: list | None = None) -> Dict[str, bytes]:
    return {
        f"{folder}/tokenizer.bin": b"fake tokenizer",
        f"{folder}/rules.bin": json.dumps(rules or []).encode(),
        f"{folder}/frequency_dict.txt": b"the 1000\ncat 500\nmat 300\nhello 200\n",
    }


@pytest.fixture
def archive_bytes() -> bytes:
    return build_archive(language_files())


@pytest.fixture
def archive_factory() -> Callable[[Dict[str, bytes]], bytes]:
    return build_archive


@pytest.fixture
def language_files_factory() -> Callable[..., Dict[str, bytes]]:
    return language_files


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
