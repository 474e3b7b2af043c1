"""Grammar rules, word repetitions and spelling over annotated text."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from unidecode import unidecode

from ltapiserv.checkers.archive import CheckersCore
from ltapiserv.checkers.cache import load_checkers_core, load_checkers_core_from_path
from ltapiserv.checkers.dictionary import CustomDictionary, contains_word
from ltapiserv.checkers.engines import (
    MAX_EDIT_DISTANCE,
    GrammarBackend,
    RawSuggestion,
    Sentence,
    SpellingCandidate,
    Token,
)
from ltapiserv.models import Language, Match, Replacement, Rule
from ltapiserv.text.annotated import AnnotatedText

LOGGER = logging.getLogger(__name__)

REPETITION_MESSAGE = "Possible typo: you repeated a word"
SPELLING_MESSAGE = "Possible spelling mistake."
MAX_SPELLING_CANDIDATES = 5
MIN_SPELLING_LENGTH = 3
APOSTROPHES = ("'", "’")


def suggestion_to_match(suggestion: RawSuggestion, annotated: AnnotatedText) -> Match:
    """Convert a rule engine suggestion into an original-space match."""
    start, end = annotated.translate_span(suggestion.start, suggestion.end)
    return Match(
        message=suggestion.message,
        offset=start,
        length=end - start,
        replacements=[Replacement(value) for value in suggestion.replacements],
        rule=Rule.from_id(suggestion.rule_id),
    )


class Checkers:
    """A loaded language model plus the user dictionary overlay.

    The model part is read-only and shared by concurrent ``suggest`` calls;
    only the dictionary is ever replaced, see ``reload_dictionaries``.
    """

    def __init__(
        self,
        core: CheckersCore,
        dictionary: Optional[CustomDictionary] = None,
        dictionary_paths: Iterable[Path] = (),
    ) -> None:
        self.core = core
        self.dictionary = dictionary if dictionary is not None else CustomDictionary()
        self.dictionary_paths: List[Path] = list(dictionary_paths)
        self._reload_lock = threading.Lock()

    @classmethod
    def from_archive(
        cls,
        archive_path: Path,
        *,
        cache_dir: Optional[Path] = None,
        backend: Optional[GrammarBackend] = None,
    ) -> "Checkers":
        return cls(load_checkers_core_from_path(archive_path, cache_dir=cache_dir, backend=backend))

    @classmethod
    def from_archive_bytes(
        cls,
        archive: bytes,
        *,
        cache_dir: Optional[Path] = None,
        backend: Optional[GrammarBackend] = None,
    ) -> "Checkers":
        return cls(load_checkers_core(archive, cache_dir=cache_dir, backend=backend))

    @property
    def language(self) -> Language:
        return self.core.language

    def add_dictionary(self, path: Path) -> None:
        """Add a custom dictionary (whitespace-separated words)."""
        self.dictionary.load(path)
        self.dictionary_paths.append(path)

    def reload_dictionaries(self) -> None:
        """Re-read every registered dictionary, replacing the previous words."""
        with self._reload_lock:
            self.dictionary.reload(self.dictionary_paths)

    def suggest(self, annotated: AnnotatedText) -> List[Match]:
        """Compute suggestions on annotated text, in original-space offsets."""
        words = self.dictionary.snapshot()
        suggestions: List[Match] = []

        text = annotated.text()
        for sentence in self.core.tokenizer.tokenize(text):
            LOGGER.debug("Processing sentence %r", sentence.text)
            for suggestion in self.core.rules.apply_rules(sentence):
                suggestions.append(suggestion_to_match(suggestion, annotated))
            suggestions.extend(self._check_tokens(sentence, annotated, words))

        matches = [match for match in suggestions if not match.is_false_positive()]
        LOGGER.debug("%d suggestions (%d filtered)", len(matches), len(suggestions) - len(matches))
        return matches

    def _check_tokens(
        self, sentence: Sentence, annotated: AnnotatedText, words: frozenset
    ) -> List[Match]:
        matches: List[Match] = []
        tokens = sentence.tokens
        for i, token in enumerate(tokens):
            word = unidecode(token.word)
            if not word.isalpha():
                continue
            next_token = tokens[i + 1] if i + 1 < len(tokens) else None

            if next_token is not None and next_token.word == token.word:
                start, end = annotated.translate_span(token.start, next_token.end)
                matches.append(
                    Match(
                        message=REPETITION_MESSAGE,
                        offset=start,
                        length=end - start,
                        replacements=[Replacement(token.word)],
                        rule=Rule.duplication(),
                    )
                )

            lowercase = word.lower()
            if (
                not contains_word(words, lowercase)
                and len(word) >= MIN_SPELLING_LENGTH
                # All-caps words are likely acronyms
                and not all(char.isupper() for char in word)
                # Contractions and possessives
                and (next_token is None or next_token.word not in APOSTROPHES)
            ):
                match = self._check_spelling(token, lowercase, annotated)
                if match is not None:
                    matches.append(match)
        return matches

    def _check_spelling(
        self, token: Token, lowercase: str, annotated: AnnotatedText
    ) -> Optional[Match]:
        results: Sequence[SpellingCandidate] = self.core.spelling.lookup(
            lowercase, MAX_EDIT_DISTANCE
        )
        if len(results) == 1 and results[0].distance == 0:
            return None

        # Farthest first, as expected by clients
        candidates = list(reversed(results))[:MAX_SPELLING_CANDIDATES]
        LOGGER.debug("Spelling: %r -> %r", token.word, candidates)

        message = SPELLING_MESSAGE
        if candidates:
            nearest = min(candidates, key=lambda candidate: candidate.distance)
            message += f" Did you mean {nearest.term}?"

        # TODO: restore the original casing of the candidates
        start, end = annotated.translate_span(token.start, token.end)
        return Match(
            message=message,
            offset=start,
            length=end - start,
            replacements=[Replacement(candidate.term) for candidate in candidates],
            rule=Rule.spelling(),
        )
