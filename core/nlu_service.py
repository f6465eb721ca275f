"""Turn a raw parent message into a structured query.

Classification is two-tier: keyword containment against the pattern library
(greeting always first, then the declared intent order), then the trained
statistical classifier guarded by a confidence floor. Entity extraction runs
on the voice-stripped text and never raises to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from core.intent_classifier import ClassifierPrediction
from core.parser_utils import contains_keyword, first_keyword
from core.parsers import (
    TimeReference,
    extract_student_name,
    extract_subject,
    extract_time_reference,
    is_voice_request,
    strip_voice_framing,
)
from core.patterns import GREETING, INTENT_KEYWORDS, INTENT_LABELS, UNKNOWN

logger = logging.getLogger(__name__)

DEFAULT_CLASSIFIER_THRESHOLD = 0.4

T = TypeVar("T")


class StatisticalClassifier(Protocol):
    def predict(self, text: str) -> Optional[ClassifierPrediction]:
        ...


@dataclass
class StructuredQuery:
    intent: str
    student_name: Optional[str] = None
    subject: Optional[str] = None
    time_reference: Optional[TimeReference] = None
    voice_request: bool = False
    source: str = "keyword"

    def entities(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.student_name:
            payload["student_name"] = self.student_name
        if self.subject:
            payload["subject"] = self.subject
        if self.time_reference:
            payload["time_reference"] = self.time_reference.to_dict()
        if self.voice_request:
            payload["voice_request"] = True
        return payload


class NLUService:
    """Keyword tier + statistical fallback, plus entity extraction."""

    def __init__(
        self,
        *,
        classifier: Optional[StatisticalClassifier] = None,
        classifier_threshold: float = DEFAULT_CLASSIFIER_THRESHOLD,
    ) -> None:
        self._classifier = classifier
        self._classifier_threshold = classifier_threshold

    def classify(self, text: str) -> str:
        """Return the intent label for ``text``; ``unknown`` on any internal error."""

        intent, _ = self._classify_with_source(text)
        return intent

    # WHAT: build the full structured query for one inbound message.
    # HOW: voice detection on the raw text, framing stripped, classify, then extract entities unless it is a greeting.
    def interpret(self, text: str, *, today: Optional[date] = None) -> StructuredQuery:
        raw = text or ""
        voice_request = bool(self._safe("voice detection", is_voice_request, raw))
        cleaned = self._safe("voice stripping", strip_voice_framing, raw)
        if cleaned is None:
            cleaned = raw.strip()

        intent, source = self._classify_with_source(cleaned)
        query = StructuredQuery(intent=intent, voice_request=voice_request, source=source)
        if intent == GREETING:
            logger.info("Interpreted %r as greeting", raw)
            return query

        query.student_name = self._safe("student name", extract_student_name, cleaned)
        query.subject = self._safe("subject", extract_subject, cleaned)
        query.time_reference = self._safe(
            "time reference",
            lambda value: extract_time_reference(value, today=today),
            cleaned,
        )
        logger.info("Interpreted %r as %s %s", raw, intent, query.entities())
        return query

    def subject_of(self, text: str) -> Optional[str]:
        """Subject mentioned in an earlier message, voice framing ignored."""

        cleaned = self._safe("voice stripping", strip_voice_framing, text or "")
        return self._safe("subject", extract_subject, cleaned or "")

    def _classify_with_source(self, text: str) -> tuple[str, str]:
        try:
            lowered = (text or "").strip().lower()
            if not lowered:
                return UNKNOWN, "keyword"
            if contains_keyword(lowered, INTENT_KEYWORDS[GREETING]):
                return GREETING, "keyword"
            for intent, keywords in INTENT_KEYWORDS.items():
                if intent == GREETING:
                    continue
                keyword = first_keyword(lowered, keywords)
                if keyword:
                    logger.debug("Intent %s matched keyword %r", intent, keyword)
                    return intent, "keyword"
            return self._classify_statistically(lowered), "classifier"
        except Exception:
            logger.exception("Intent classification failed for %r", text)
            return UNKNOWN, "error"

    def _classify_statistically(self, text: str) -> str:
        if not self._classifier:
            return UNKNOWN
        prediction = self._classifier.predict(text)
        if not prediction:
            return UNKNOWN
        logger.info("Classifier predicted %s (score %.3f) for %r", prediction.intent, prediction.confidence, text)
        if prediction.confidence <= self._classifier_threshold:
            return UNKNOWN
        if prediction.intent not in INTENT_LABELS:
            return UNKNOWN
        return prediction.intent

    @staticmethod
    def _safe(label: str, fn: Callable[[str], T], text: str) -> Optional[T]:
        try:
            return fn(text)
        except Exception:
            logger.exception("Entity extraction (%s) failed for %r", label, text)
            return None


__all__ = ["DEFAULT_CLASSIFIER_THRESHOLD", "NLUService", "StructuredQuery"]
