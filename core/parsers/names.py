"""Student-name extraction.

The cascade runs from the most anchored shape ("notes de Marie") to the
loosest one (any capitalized word). Each step may yield several candidates;
the first one that is not a stop-word is accepted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional, Pattern, Tuple

from core.patterns import PLURAL_STOP_STEMS, STOP_WORDS
from core.text_utils import title_case

_ANY_CASE_NAME = r"(?P<name>[A-ZÀ-ÖØ-Ý][a-zà-öø-ÿ'’-]+)"
_CAPITALIZED_NAME = r"(?P<name>[A-ZÀ-ÖØ-Ý][A-Za-zÀ-ÖØ-öø-ÿ'’-]+)"
_LEADING_FILLER = re.compile(r"^(?:les?|des?|la|pour|de)\s+", re.IGNORECASE)


@dataclass(frozen=True)
class NamePattern:
    label: str
    regex: Pattern[str]

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None

    def candidates(self, text: str) -> Iterator[str]:
        for match in self.regex.finditer(text):
            candidate = match.group("name").strip("'’-")
            if candidate:
                yield candidate


NAME_PATTERNS: Tuple[NamePattern, ...] = (
    NamePattern(
        "after_preposition",
        re.compile(rf"(?:\b(?i:de|pour|à)\s+|\b(?i:d)['’]\s*){_CAPITALIZED_NAME}"),
    ),
    NamePattern(
        "before_preposition",
        re.compile(rf"\b{_CAPITALIZED_NAME}\s+(?i:en|a|pour)\s+"),
    ),
    NamePattern(
        "after_intent_noun",
        re.compile(
            rf"\b(?:notes?|devoirs?|absences?|moyennes?|résultats?)\s+(?:de\s+|d['’]\s*|pour\s+){_ANY_CASE_NAME}",
            re.IGNORECASE,
        ),
    ),
    NamePattern("capitalized_word", re.compile(rf"\b{_CAPITALIZED_NAME}")),
)


def is_stop_word(word: str) -> bool:
    lowered = word.lower()
    if lowered in STOP_WORDS:
        return True
    # plural domain nouns ("Maths", "Notes")
    return lowered.endswith("s") and lowered[:-1] in PLURAL_STOP_STEMS


def extract_student_name(message: str) -> Optional[str]:
    """Return the Title-cased student name mentioned in ``message`` or None."""

    cleaned = _LEADING_FILLER.sub("", (message or "").strip(), count=1)
    if not cleaned:
        return None
    for pattern in NAME_PATTERNS:
        for candidate in pattern.candidates(cleaned):
            if is_stop_word(candidate):
                continue
            return title_case(candidate)
    return None


__all__ = ["NAME_PATTERNS", "NamePattern", "extract_student_name", "is_stop_word"]
