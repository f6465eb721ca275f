from datetime import date
from typing import Optional

import pytest

from core.intent_classifier import ClassifierPrediction
from core.nlu_service import NLUService
from core.patterns import INTENT_KEYWORDS

TODAY = date(2024, 11, 14)


class _StubClassifier:
    def __init__(self, prediction: Optional[ClassifierPrediction]) -> None:
        self.prediction = prediction
        self.messages: list[str] = []

    def predict(self, text: str):
        self.messages.append(text)
        return self.prediction


class _ExplodingClassifier:
    def predict(self, text: str):
        raise RuntimeError("model exploded")


def _service(prediction: Optional[ClassifierPrediction] = None, threshold: float = 0.4) -> NLUService:
    return NLUService(classifier=_StubClassifier(prediction), classifier_threshold=threshold)


def test_greeting_wins_over_any_other_keyword():
    service = _service()
    for intent, keywords in INTENT_KEYWORDS.items():
        if intent == "greeting":
            continue
        for keyword in keywords:
            assert service.classify(f"Bonjour, {keyword} de Marie") == "greeting"


def test_keyword_tier_follows_declared_order():
    service = _service()

    assert service.classify("notes de Marie") == "grades"
    assert service.classify("Marie était absente ?") == "attendance"
    assert service.classify("devoirs pour demain") == "homework"
    assert service.classify("quelle école pour Paul") == "school"
    assert service.classify("aide") == "help"
    # grades is declared before homework
    assert service.classify("notes et devoirs de Paul") == "grades"


def test_classifier_floor_is_strict():
    at_floor = _service(ClassifierPrediction(intent="school", confidence=0.4))
    above_floor = _service(ClassifierPrediction(intent="school", confidence=0.41))

    assert at_floor.classify("où étudie Paul") == "unknown"
    assert above_floor.classify("où étudie Paul") == "school"


def test_classifier_receives_lowercased_text_only_without_keywords():
    classifier = _StubClassifier(ClassifierPrediction(intent="school", confidence=0.9))
    service = NLUService(classifier=classifier)

    service.classify("notes de Marie")
    service.classify("  Où Étudie Paul ")

    assert classifier.messages == ["où étudie paul"]


def test_classifier_unknown_label_is_rejected():
    service = _service(ClassifierPrediction(intent="weather", confidence=0.99))

    assert service.classify("il fait beau") == "unknown"


def test_classification_never_raises():
    service = NLUService(classifier=_ExplodingClassifier())

    assert service.classify("où étudie Paul") == "unknown"
    assert service.classify("") == "unknown"


def test_interpret_end_to_end_grades_query():
    query = _service().interpret("notes de Marie en maths", today=TODAY)

    assert query.intent == "grades"
    assert query.student_name == "Marie"
    assert query.subject == "mathematique"
    assert query.time_reference is None
    assert not query.voice_request


def test_interpret_greeting_skips_entities():
    query = _service().interpret("bonjour Marie, notes en maths demain", today=TODAY)

    assert query.intent == "greeting"
    assert query.student_name is None
    assert query.subject is None
    assert query.time_reference is None
    assert query.entities() == {}


def test_interpret_strips_voice_framing_before_extraction():
    query = _service().interpret("Lis-moi les devoirs de Paul pour demain", today=TODAY)

    assert query.voice_request
    assert query.intent == "homework"
    assert query.student_name == "Paul"
    assert query.time_reference.date == date(2024, 11, 15)
    assert query.entities()["voice_request"] is True


def test_voice_only_message_is_unknown_with_voice_request():
    query = _service().interpret("en vocal", today=TODAY)

    assert query.intent == "unknown"
    assert query.voice_request


def test_extractor_failure_degrades_to_missing_entity(monkeypatch):
    def broken(_text):
        raise ValueError("boom")

    monkeypatch.setattr("core.nlu_service.extract_subject", broken)
    query = _service().interpret("notes de Marie en maths", today=TODAY)

    assert query.intent == "grades"
    assert query.student_name == "Marie"
    assert query.subject is None


@pytest.mark.parametrize("text", ["notes en maths en vocal", "lis-moi les devoirs d'anglais"])
def test_subject_of_ignores_voice_framing(text):
    assert _service().subject_of(text) in {"mathematique", "anglais"}
