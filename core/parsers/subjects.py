"""School-subject extraction against the subject synonym table."""

from __future__ import annotations

from typing import Optional

from core.parser_utils import matches_term
from core.patterns import SUBJECT_KEYWORDS, SUBJECT_LABELS


def extract_subject(message: str) -> Optional[str]:
    """Return the first subject key (table order) whose synonym appears in ``message``."""

    lowered = (message or "").strip().lower()
    if not lowered:
        return None
    for subject, keywords in SUBJECT_KEYWORDS.items():
        if any(matches_term(lowered, keyword) for keyword in keywords):
            return subject
    return None


def subject_matches(raw_subject: str, subject: str) -> bool:
    """Return True when a free-form subject label (e.g. "Mathématiques 4e") covers ``subject``.

    Combined labels such as "Histoire-Géographie" count for each subject they name.
    """

    lowered = (raw_subject or "").strip().lower()
    if not lowered:
        return False
    return any(matches_term(lowered, keyword) for keyword in SUBJECT_KEYWORDS.get(subject, ()))


def subject_label(subject: str) -> str:
    return SUBJECT_LABELS.get(subject, subject)


__all__ = ["extract_subject", "subject_label", "subject_matches"]
