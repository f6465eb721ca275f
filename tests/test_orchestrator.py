import json
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from core import messages
from core.dialogue import DialogueResolver
from core.learning_logger import LearningLogger
from core.nlu_service import NLUService
from core.orchestrator import Orchestrator
from core.response_composer import AudioClip, TextResponse, VoiceResponse
from core.school_records import AttendanceRecord, Child, Grade, HomeworkItem, Parent, School
from core.session_store import SessionStore
from tools.school_directory import DirectoryError
from tools.speech import SpeechServiceError

SENDER = "whatsapp:+33600000001"
TODAY = date(2024, 11, 14)
MARIE = Child(id="E001", first_name="Marie", last_name="Dupont")
PAUL = Child(id="E002", first_name="Paul", last_name="Dupont")


class StubDirectory:
    def __init__(self, children: Optional[List[Child]] = None) -> None:
        self.children = [MARIE, PAUL] if children is None else children
        self.grades: Dict[str, List[Grade]] = {
            MARIE.id: [Grade("Mathématiques", 15.0), Grade("Mathématiques", 13.0), Grade("Anglais", 18.0)],
            PAUL.id: [Grade("Histoire", 9.0)],
        }
        self.calls: List[str] = []
        self.fail = False

    def authenticate(self, sender_id: str) -> Optional[Parent]:
        if self.fail:
            raise DirectoryError("sheet unreachable")
        return Parent(id="P001") if sender_id == SENDER else None

    def children_of(self, parent_id: str) -> List[Child]:
        return list(self.children)

    def grades_of(self, child_id: str) -> List[Grade]:
        self.calls.append(f"grades:{child_id}")
        return self.grades.get(child_id, [])

    def attendance_of(self, child_id: str) -> List[AttendanceRecord]:
        self.calls.append(f"attendance:{child_id}")
        return [AttendanceRecord(date(2024, 11, 13), "absent"), AttendanceRecord(date(2024, 11, 14), "présent")]

    def homework_of(self, child_id: str) -> List[HomeworkItem]:
        self.calls.append(f"homework:{child_id}")
        return [
            HomeworkItem("Mathématiques", "Exercices p.52", date(2024, 11, 15)),
            HomeworkItem("Anglais", "Vocabulaire", date(2024, 11, 18)),
        ]

    def school_of(self, child_id: str) -> Optional[School]:
        return School(name="Collège Jean Moulin", class_name="4e B")


class StubSpeech:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.texts: List[str] = []

    def synthesize(self, text: str, lang: str = "fr") -> AudioClip:
        self.texts.append(text)
        if self.fail:
            raise SpeechServiceError("tts down")
        return AudioClip(path=Path("reply.mp3"), url="https://example.test/audio/reply.mp3")


def _orchestrator(directory=None, speech=None, logger=None, **resolver_kwargs) -> Orchestrator:
    return Orchestrator(
        NLUService(),
        directory or StubDirectory(),
        DialogueResolver(SessionStore(), **resolver_kwargs),
        speech=speech,
        logger=logger,
        today=lambda: TODAY,
    )


def test_grades_for_named_child_in_one_subject():
    directory = StubDirectory()
    orchestrator = _orchestrator(directory)

    response = orchestrator.handle_message(SENDER, "notes de Marie en maths")

    assert isinstance(response, TextResponse)
    assert response.text == "Notes de Marie Dupont en mathématiques:\n\nMathématiques: 14.00/20"
    assert directory.calls == ["grades:E001"]
    assert orchestrator.resolver.store.get(SENDER).selected_child_id == MARIE.id


@pytest.mark.parametrize("session_voice", [True, False])
def test_greeting_is_fixed_regardless_of_session(session_voice):
    orchestrator = _orchestrator()
    if session_voice:
        orchestrator.request_voice(SENDER)

    response = orchestrator.handle_message(SENDER, "bonjour")

    assert response == TextResponse(messages.GREETING)


def test_help_and_unknown_messages():
    orchestrator = _orchestrator()

    assert orchestrator.handle_message(SENDER, "aide").text == messages.HELP
    assert orchestrator.handle_message(SENDER, "il fait beau").text == messages.NOT_UNDERSTOOD
    assert orchestrator.handle_message(SENDER, "   ").text == messages.EMPTY_MESSAGE


def test_unknown_sender_is_unauthorized():
    response = _orchestrator().handle_message("whatsapp:+4912345", "notes de Marie")

    assert response.text == messages.UNAUTHORIZED


def test_unknown_sender_cannot_arm_voice_mode():
    orchestrator = _orchestrator()

    response = orchestrator.handle_message("whatsapp:+4912345", "en vocal")

    assert response.text == messages.UNAUTHORIZED
    assert not orchestrator.resolver.store.get("whatsapp:+4912345").voice_requested


def test_homework_question_with_task_verb_resolves_the_named_child():
    directory = StubDirectory()
    orchestrator = _orchestrator(directory)

    response = orchestrator.handle_message(SENDER, "Marie a des devoirs à faire ?")

    assert response.text.startswith("Devoirs à venir pour Marie Dupont:")
    assert "Exercices p.52" in response.text
    assert directory.calls == ["homework:E001"]


def test_disambiguation_then_name_follow_up_replays_question():
    directory = StubDirectory()
    orchestrator = _orchestrator(directory)

    prompt = orchestrator.handle_message(SENDER, "notes en maths")
    assert prompt.text == messages.multiple_children("- Marie Dupont\n- Paul Dupont")
    assert orchestrator.resolver.store.get(SENDER).selected_child_id is None

    answer = orchestrator.handle_message(SENDER, "Marie")
    assert answer.text.startswith("Notes de Marie Dupont en mathématiques")


def test_unknown_child_name():
    response = _orchestrator().handle_message(SENDER, "notes de Lucas")

    assert response.text == messages.child_not_found("Lucas")


def test_no_children_on_account():
    response = _orchestrator(StubDirectory(children=[])).handle_message(SENDER, "notes de Marie")

    assert response.text == messages.NO_CHILDREN


def test_pinned_child_and_subject_carried_from_last_message():
    orchestrator = _orchestrator()
    orchestrator.handle_message(SENDER, "notes de Paul en histoire")

    attendance = orchestrator.handle_message(SENDER, "il était absent hier ?")
    assert attendance.text == "Présence de Paul le 13/11/2024: absent"

    orchestrator.handle_message(SENDER, "notes d'anglais de Marie")
    grades = orchestrator.handle_message(SENDER, "et ses notes ?")
    assert grades.text.startswith("Notes de Marie Dupont en anglais")


def test_voice_request_then_spoken_answer_is_one_shot():
    speech = StubSpeech()
    orchestrator = _orchestrator(speech=speech)

    ack = orchestrator.handle_message(SENDER, "en vocal")
    assert ack.text == messages.VOICE_ACK
    assert orchestrator.resolver.store.get(SENDER).voice_requested

    spoken = orchestrator.handle_message(SENDER, "devoirs de Marie")
    assert isinstance(spoken, VoiceResponse)
    assert spoken.audio.url == "https://example.test/audio/reply.mp3"
    assert speech.texts == ["Le prochain devoir de Marie est en Mathématiques, à rendre pour le 15/11/2024."]

    session = orchestrator.resolver.store.get(SENDER)
    assert not session.in_voice
    assert not session.voice_requested
    assert isinstance(orchestrator.handle_message(SENDER, "devoirs de Marie"), TextResponse)


def test_grades_voice_sticky_keeps_voice_mode():
    orchestrator = _orchestrator(speech=StubSpeech(), grades_voice_sticky=True)

    first = orchestrator.handle_message(SENDER, "notes de Marie en vocal")
    second = orchestrator.handle_message(SENDER, "notes de Marie")

    assert isinstance(first, VoiceResponse)
    assert isinstance(second, VoiceResponse)


def test_speech_failure_degrades_to_text():
    orchestrator = _orchestrator(speech=StubSpeech(fail=True))

    response = orchestrator.handle_message(SENDER, "lis-moi les absences de Paul")

    assert isinstance(response, TextResponse)
    assert "Suivi de présence de Paul Dupont" in response.text
    assert not orchestrator.resolver.store.get(SENDER).in_voice


def test_transcribed_voice_note_is_answered_by_voice():
    orchestrator = _orchestrator(speech=StubSpeech())

    response = orchestrator.handle_message(SENDER, "école de Marie", voice_note=True)

    assert isinstance(response, VoiceResponse)
    assert response.text == "Marie est inscrit(e) à Collège Jean Moulin en classe de 4e B"


def test_directory_failure_is_an_apology_not_a_crash():
    directory = StubDirectory()
    directory.fail = True

    response = _orchestrator(directory).handle_message(SENDER, "notes de Marie")

    assert response.text == messages.TECHNICAL_ERROR


def test_clear_session_forgets_the_pinned_child():
    orchestrator = _orchestrator()
    orchestrator.handle_message(SENDER, "notes de Marie")

    orchestrator.clear_session(SENDER)

    assert orchestrator.handle_message(SENDER, "notes").text.startswith("Vous avez plusieurs enfants")


def test_turns_are_logged_with_hashed_sender(tmp_path: Path):
    log_path = tmp_path / "turns.jsonl"
    logger = LearningLogger(turn_log_path=log_path)
    orchestrator = _orchestrator(logger=logger)

    orchestrator.handle_message(SENDER, "notes de Marie en maths")
    orchestrator.handle_message(SENDER, "bonjour")

    records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert [record["outcome"] for record in records] == ["answered", "greeting"]
    assert records[0]["intent"] == "grades"
    assert records[0]["entities"]["subject"] == "mathematique"
    assert SENDER not in log_path.read_text(encoding="utf-8")
    assert records[0]["sender_hash"]
