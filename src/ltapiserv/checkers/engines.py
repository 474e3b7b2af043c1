"""Detector capabilities and the engines backing them.

The pipeline only talks to three narrow interfaces: a tokenizer, a rule
engine and a spelling index. Grammar rules come from nlprule, spelling from
symspellpy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, Sequence, Tuple

from symspellpy import SymSpell, Verbosity

from ltapiserv.errors import GrammarBackendError

LOGGER = logging.getLogger(__name__)

# Maximum edit distance for spelling lookups
MAX_EDIT_DISTANCE = 3


@dataclass(frozen=True, slots=True)
class Token:
    word: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class Sentence:
    """A tokenized sentence; ``start`` is its char offset in the full text."""

    text: str
    start: int
    tokens: Tuple[Token, ...]


@dataclass(frozen=True, slots=True)
class RawSuggestion:
    """A rule engine suggestion with a plain-text char span."""

    start: int
    end: int
    message: str
    replacements: Tuple[str, ...]
    rule_id: str


@dataclass(frozen=True, slots=True)
class SpellingCandidate:
    term: str
    distance: int


class Tokenizer(Protocol):
    def tokenize(self, text: str) -> Sequence[Sentence]: ...


class RuleEngine(Protocol):
    def apply_rules(self, sentence: Sentence) -> Sequence[RawSuggestion]: ...


class SpellingIndex(Protocol):
    def lookup(self, word: str, max_distance: int) -> Sequence[SpellingCandidate]: ...


class GrammarBackend(Protocol):
    """Loads a tokenizer and rule set from their serialized resources."""

    def load(self, tokenizer_path: Path, rules_path: Path) -> Tuple[Tokenizer, RuleEngine]: ...


class SymSpellIndex:
    """Spelling index over a ``word count`` frequency dictionary."""

    def __init__(self, dictionary_path: Path, *, max_distance: int = MAX_EDIT_DISTANCE) -> None:
        self.max_distance = max_distance
        self._sym_spell = SymSpell(max_dictionary_edit_distance=max_distance, prefix_length=7)
        loaded = self._sym_spell.load_dictionary(
            str(dictionary_path), term_index=0, count_index=1, separator=" "
        )
        if not loaded:
            raise FileNotFoundError(f"Frequency dictionary not found: {dictionary_path}")
        LOGGER.debug(
            "Loaded %d dictionary words from %s", len(self._sym_spell.words), dictionary_path
        )

    def lookup(self, word: str, max_distance: int) -> List[SpellingCandidate]:
        results = self._sym_spell.lookup(
            word, Verbosity.CLOSEST, max_edit_distance=min(max_distance, self.max_distance)
        )
        return [SpellingCandidate(term=item.term, distance=item.distance) for item in results]


def _import_nlprule():
    try:
        import nlprule
    except ImportError as exc:
        raise GrammarBackendError(
            "nlprule is not installed. Install the grammar extras with "
            "\"python -m pip install 'ltapiserv[grammar]'\""
        ) from exc
    return nlprule


class NlpruleTokenizer:
    """Sentence splitting and tokenization through nlprule."""

    def __init__(self, tokenizer) -> None:
        self._tokenizer = tokenizer

    def tokenize(self, text: str) -> List[Sentence]:
        sentences: List[Sentence] = []
        for raw_sentence in self._tokenizer.pipe(text):
            tokens = tuple(
                Token(word=token.text, start=token.char_span[0], end=token.char_span[1])
                for token in raw_sentence
            )
            if not tokens:
                continue
            start, end = tokens[0].start, tokens[-1].end
            sentences.append(Sentence(text=text[start:end], start=start, tokens=tokens))
        return sentences


class NlpruleRules:
    """Grammar rule matching through nlprule."""

    def __init__(self, rules) -> None:
        self._rules = rules

    def apply_rules(self, sentence: Sentence) -> List[RawSuggestion]:
        suggestions = []
        for suggestion in self._rules.suggest(sentence.text):
            LOGGER.debug("Grammar: %r", suggestion)
            suggestions.append(
                RawSuggestion(
                    start=sentence.start + suggestion.start,
                    end=sentence.start + suggestion.end,
                    message=suggestion.message,
                    replacements=tuple(suggestion.replacements),
                    rule_id=suggestion.source,
                )
            )
        return suggestions


class NlpruleBackend:
    """Grammar backend reading nlprule ``tokenizer.bin`` / ``rules.bin`` files."""

    def load(self, tokenizer_path: Path, rules_path: Path) -> Tuple[NlpruleTokenizer, NlpruleRules]:
        nlprule = _import_nlprule()
        try:
            tokenizer = nlprule.Tokenizer(str(tokenizer_path))
            rules = nlprule.Rules(str(rules_path), tokenizer)
        except (OSError, ValueError) as exc:
            raise GrammarBackendError(
                f"Failed to load nlprule resources {tokenizer_path.name}, {rules_path.name}: {exc}"
            ) from exc
        return NlpruleTokenizer(tokenizer), NlpruleRules(rules)
