"""Free-text feature extraction for questionnaire answers.

Pure functions over a fixed vocabulary; no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from momentum.config.scoring import TextVocabulary

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_DIGIT = re.compile(r"\d")

# minimum length of a text token that may match inside a longer keyword
MIN_CONTAINED_TOKEN = 3


@dataclass(frozen=True)
class TextSignals:
    word_count: int = 0
    specificity_score: float = 0.0
    emotional_intensity: float = 0.0
    has_numbers: bool = False
    has_examples: bool = False
    has_personal_story: bool = False
    has_schedule_details: bool = False
    complexity: float = 0.0


EMPTY_SIGNALS = TextSignals()


class TextSignalAnalyzer:
    """Case-insensitive substring marker detection over a vocabulary."""

    def __init__(self, vocabulary: Optional[TextVocabulary] = None):
        self.vocabulary = vocabulary or TextVocabulary()

    def analyze(self, text: Optional[str]) -> TextSignals:
        if not text or not text.strip():
            return EMPTY_SIGNALS

        vocab = self.vocabulary
        lowered = text.lower()
        words = text.split()

        sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        avg_sentence = sum(len(s.split()) for s in sentences) / max(len(sentences), 1)

        return TextSignals(
            word_count=len(words),
            specificity_score=_ratio(lowered, vocab.specificity),
            emotional_intensity=_ratio(lowered, vocab.emotion),
            has_numbers=bool(_DIGIT.search(text)),
            has_examples=_contains_any(lowered, vocab.examples),
            has_personal_story=_contains_any(lowered, vocab.personal_story),
            has_schedule_details=_contains_any(lowered, vocab.schedule),
            complexity=min(avg_sentence / vocab.complexity_sentence_words, 1.0),
        )

    @staticmethod
    def similarity(a: Optional[str], b: Optional[str]) -> float:
        """Jaccard similarity of lower-cased whitespace token sets."""
        if not a or not b:
            return 0.0
        tokens_a = set(a.lower().split())
        tokens_b = set(b.lower().split())
        union = tokens_a | tokens_b
        if not union:
            return 0.0
        return len(tokens_a & tokens_b) / len(union)

    @staticmethod
    def find_relevant_keywords(text: Optional[str], keywords: Iterable[str]) -> list[str]:
        """Keywords that contain, or are contained in, any token of ``text``.

        A token only matches inside a longer keyword when it has at least
        ``MIN_CONTAINED_TOKEN`` characters.
        """
        tokens = (text or "").lower().split()
        if not tokens:
            return []
        relevant = []
        for keyword in keywords:
            kw = str(keyword).lower().strip()
            if not kw:
                continue
            if any(kw in token or (len(token) >= MIN_CONTAINED_TOKEN and token in kw)
                   for token in tokens):
                relevant.append(keyword)
        return relevant


def _contains_any(lowered: str, markers: tuple[str, ...]) -> bool:
    return any(m in lowered for m in markers)


def _ratio(lowered: str, markers: tuple[str, ...]) -> float:
    if not markers:
        return 0.0
    return sum(1 for m in markers if m in lowered) / len(markers)
