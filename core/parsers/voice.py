"""Detect and strip "answer me by voice" framing around a request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Pattern, Tuple

from core.parser_utils import contains_word
from core.patterns import VOICE_END_PATTERNS, VOICE_START_PATTERNS, VOICE_TRIGGER_WORDS


@dataclass(frozen=True)
class FramingPattern:
    """One leading or trailing voice wrapper such as "lis-moi …" or "… en vocal"."""

    regex: Pattern[str]

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None

    def strip(self, text: str) -> str:
        return self.regex.sub("", text, count=1)


START_FRAMES: Tuple[FramingPattern, ...] = tuple(FramingPattern(regex) for regex in VOICE_START_PATTERNS)
END_FRAMES: Tuple[FramingPattern, ...] = tuple(FramingPattern(regex) for regex in VOICE_END_PATTERNS)


def is_voice_request(text: str) -> bool:
    """Return True when the message asks for a spoken answer."""

    lowered = (text or "").strip().lower()
    if not lowered:
        return False
    if any(frame.matches(lowered) for frame in START_FRAMES):
        return True
    if any(frame.matches(lowered) for frame in END_FRAMES):
        return True
    return contains_word(lowered, VOICE_TRIGGER_WORDS)


def strip_voice_framing(text: str) -> str:
    """Remove start then end framing; bare trigger words elsewhere stay in place."""

    cleaned = (text or "").strip()
    for frame in START_FRAMES:
        cleaned = frame.strip(cleaned)
    for frame in END_FRAMES:
        cleaned = frame.strip(cleaned)
    return cleaned.strip()


__all__ = ["FramingPattern", "START_FRAMES", "END_FRAMES", "is_voice_request", "strip_voice_framing"]
