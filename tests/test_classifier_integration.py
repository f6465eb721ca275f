from __future__ import annotations

from datetime import date

from core import messages
from core.dialogue import DialogueResolver
from core.intent_classifier import ClassifierPrediction
from core.nlu_service import NLUService
from core.orchestrator import Orchestrator
from core.school_records import Child, Grade, Parent
from core.session_store import SessionStore

SENDER = "whatsapp:+33600000001"


class StubClassifier:
    def __init__(self, intent: str, confidence: float) -> None:
        self.prediction = ClassifierPrediction(intent=intent, confidence=confidence)
        self.texts = []

    def predict(self, text: str):
        self.texts.append(text)
        return self.prediction


class OneChildDirectory:
    def authenticate(self, sender_id):
        return Parent(id="P1")

    def children_of(self, parent_id):
        return [Child(id="E1", first_name="Marie", last_name="Dupont")]

    def grades_of(self, child_id):
        return [Grade("Mathématiques", 12.0), Grade("Anglais", 16.0)]


class CapturingLogger:
    def __init__(self) -> None:
        self.enabled = True
        self.turns = []

    def log_turn(self, record):
        self.turns.append(record)


def _orchestrator(classifier, logger=None) -> Orchestrator:
    return Orchestrator(
        NLUService(classifier=classifier),
        OneChildDirectory(),
        DialogueResolver(SessionStore()),
        logger=logger,
        today=lambda: date(2024, 11, 14),
    )


def test_classifier_label_drives_the_answer_when_no_keyword_matches():
    classifier = StubClassifier("grades", 0.9)
    logger = CapturingLogger()

    response = _orchestrator(classifier, logger).handle_message(SENDER, "comment va Marie en maths")

    assert classifier.texts == ["comment va marie en maths"]
    assert response.text == "Notes de Marie Dupont en mathématiques:\n\nMathématiques: 12.00/20"
    assert logger.turns[0].intent == "grades"
    assert logger.turns[0].outcome == "answered"


def test_prediction_at_the_floor_is_not_trusted():
    classifier = StubClassifier("grades", 0.4)

    response = _orchestrator(classifier).handle_message(SENDER, "comment va Marie")

    assert response.text == messages.NOT_UNDERSTOOD


def test_keyword_match_never_consults_the_classifier():
    classifier = StubClassifier("school", 0.99)

    response = _orchestrator(classifier).handle_message(SENDER, "moyenne de Marie")

    assert classifier.texts == []
    assert response.text.startswith("Notes de Marie Dupont:")
