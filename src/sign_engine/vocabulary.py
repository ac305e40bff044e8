"""Vocabulary matching over the accumulated symbol sequence.

Priority is phrases, then words, then two-symbol shortcuts; only one match
is ever reported for a given sequence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

import yaml

from sign_engine.config import ConfigError

logger = logging.getLogger("sign_engine.vocabulary")


def _text(value, what: str) -> str:
    # YAML reads bare YES/NO/ON/OFF as booleans and digits as numbers.
    if not isinstance(value, str):
        raise ConfigError(
            f"Vocabulary {what} must be a string, got {value!r}; quote it in YAML (e.g. \"YES\")"
        )
    return value


def _token(value, what: str) -> str:
    return _text(value, what).strip().upper()


class MatchKind(Enum):
    PHRASE = "phrase"
    WORD = "word"


@dataclass(frozen=True)
class Phrase:
    """A token sequence with the text shown when it is spelled."""
    tokens: tuple[str, ...]
    meaning: str

    @property
    def text(self) -> str:
        # Symbols are concatenated without separators in the sequence buffer.
        return "".join(self.tokens)


@dataclass(frozen=True)
class MatchFound:
    kind: MatchKind
    text: str
    meaning: str = ""
    shortcut: bool = False


@dataclass(frozen=True)
class Vocabulary:
    """Static phrase, word and shortcut lists. Order is match priority."""
    phrases: tuple[Phrase, ...] = ()
    words: tuple[str, ...] = ()
    shortcuts: tuple[tuple[str, str], ...] = ()  # (two-symbol key, word)

    @classmethod
    def from_dict(cls, data: dict) -> Vocabulary:
        phrases = []
        for entry in data.get("phrases") or []:
            tokens = entry["tokens"]
            if isinstance(tokens, str):
                tokens = tokens.split()
            tokens = [_token(t, "phrase token") for t in tokens]
            meaning = entry.get("meaning")
            phrases.append(Phrase(
                tokens=tuple(tokens),
                meaning=_text(meaning, "phrase meaning") if meaning is not None else " ".join(tokens),
            ))

        words = tuple(_token(w, "word") for w in data.get("words") or [])
        for word in words:
            if not word or " " in word:
                raise ConfigError(f"Words must be bare tokens, got {word!r}")

        shortcuts = []
        for key, word in (data.get("shortcuts") or {}).items():
            key = _token(key, "shortcut key")
            if len(key) != 2:
                raise ConfigError(f"Shortcut keys must be two symbols, got {key!r}")
            shortcuts.append((key, _token(word, "shortcut word")))

        return cls(phrases=tuple(phrases), words=words, shortcuts=tuple(shortcuts))

    @classmethod
    def from_yaml(cls, path: str | Path) -> Vocabulary:
        """Load a vocabulary from a YAML file.

        Expected layout:
            phrases:
              - tokens: [THANK, YOU]
                meaning: Thank you
            words: [HELLO, "YES", "NO"]
            shortcuts: {BY: BYE, YY: "YES"}

        Quote YES, NO, ON and OFF: unquoted, YAML reads them as booleans.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        vocab = cls.from_dict(data)
        logger.info(
            "Loaded vocabulary from %s: %d phrases, %d words, %d shortcuts",
            path, len(vocab.phrases), len(vocab.words), len(vocab.shortcuts),
        )
        return vocab

    @classmethod
    def with_defaults(cls) -> Vocabulary:
        """Built-in vocabulary of common words and short phrases."""
        return cls.from_dict({
            "phrases": [
                {"tokens": ["THANK", "YOU"], "meaning": "Thank you"},
                {"tokens": ["HOW", "ARE", "YOU"], "meaning": "How are you?"},
                {"tokens": ["GOOD", "MORNING"], "meaning": "Good morning"},
                {"tokens": ["I", "LOVE", "YOU"], "meaning": "I love you"},
                {"tokens": ["SEE", "YOU"], "meaning": "See you later"},
            ],
            "words": [
                "HELLO", "PLEASE", "SORRY", "YES", "NO", "LOVE", "FRIEND",
                "HELP", "GOOD", "BAD", "HOW", "WHAT", "WHERE",
            ],
            "shortcuts": {
                "BY": "BYE",
                "LV": "LOVE",
                "YY": "YES",
                "KK": "OKAY",
            },
        })


class VocabularyMatcher:
    """Stateless matcher: accumulated sequence in, at most one match out."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or Vocabulary.with_defaults()

    def match(self, sequence: str | Sequence[str]) -> Optional[MatchFound]:
        """Match a sequence of symbols against the vocabulary.

        Args:
            sequence: The accumulated string, or a list of accepted symbols.
        """
        symbols = list(sequence)
        text = "".join(symbols)
        if not text:
            return None

        for phrase in self.vocabulary.phrases:
            if phrase.text in text:
                return MatchFound(kind=MatchKind.PHRASE, text=phrase.text, meaning=phrase.meaning)

        for word in self.vocabulary.words:
            if word in text:
                return MatchFound(kind=MatchKind.WORD, text=word, meaning=word)

        if len(symbols) >= 2:
            tail = "".join(symbols[-2:])
            for key, word in self.vocabulary.shortcuts:
                if tail == key:
                    return MatchFound(kind=MatchKind.WORD, text=word, meaning=word, shortcut=True)

        return None


@dataclass
class DisplayState:
    """What a UI would currently show; a phrase and a word never coexist."""
    phrase: Optional[MatchFound] = None
    word: Optional[MatchFound] = None

    def apply(self, match: Optional[MatchFound]):
        if match is None:
            return
        if match.kind is MatchKind.PHRASE:
            self.phrase, self.word = match, None
        else:
            self.phrase, self.word = None, match

    @property
    def current(self) -> Optional[MatchFound]:
        return self.phrase or self.word

    def clear(self):
        self.phrase = None
        self.word = None
