"""Common text-matching helpers shared across the entity parsers."""

from __future__ import annotations

import re
from typing import Iterable, Optional


def contains_keyword(text: str, keywords: Iterable[str]) -> bool:
    """Return True when any keyword is present in ``text``."""

    return first_keyword(text, keywords) is not None


def first_keyword(text: str, keywords: Iterable[str]) -> Optional[str]:
    """Return the first keyword (in declaration order) contained in ``text``."""

    for keyword in keywords:
        if keyword and keyword in text:
            return keyword
    return None


def contains_word(text: str, words: Iterable[str]) -> bool:
    """Return True when any entry of ``words`` appears as a whole word."""

    for word in words:
        if word and re.search(rf"(?<!\w){re.escape(word)}(?!\w)", text, re.IGNORECASE):
            return True
    return False


def matches_term(text: str, term: str) -> bool:
    """Match short abbreviations as whole words and longer terms as word prefixes.

    ``fr`` must not fire inside ``offre`` while ``math`` should still catch
    ``maths`` and ``mathématiques``.
    """

    if not term:
        return False
    if len(term) <= 3:
        pattern = rf"(?<!\w){re.escape(term)}(?!\w)"
    else:
        pattern = rf"(?<!\w){re.escape(term)}"
    return re.search(pattern, text, re.IGNORECASE) is not None


__all__ = [
    "contains_keyword",
    "contains_word",
    "first_keyword",
    "matches_term",
]
