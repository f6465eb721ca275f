"""Coordinate one parent turn between NLU, the dialogue state and the records.

The orchestrator is the assistant's entry point: it interprets the message,
short-circuits greetings/help/voice-mode requests, authenticates the sender,
resolves the target child through ``DialogueResolver``, fetches the records
and composes the reply. External failures (school records, speech) are caught
here, logged, and turned into an apologetic text reply; nothing propagates to
the transport layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Protocol

from core import messages
from core.dialogue import (
    DialogueResolver,
    DisambiguationPrompt,
    NoChildren,
    NotFound,
    ResolvedTarget,
    find_child,
)
from core.learning_logger import LearningLogger, TurnRecord
from core.nlu_service import NLUService, StructuredQuery
from core.patterns import ATTENDANCE, CHILD_INTENTS, GRADES, GREETING, HELP, HOMEWORK, SCHOOL, UNKNOWN
from core.response_composer import (
    AudioClip,
    ComposedAnswer,
    Response,
    ResponseComposer,
    TextResponse,
    VoiceResponse,
)
from core.school_records import AttendanceRecord, Child, Grade, HomeworkItem, Parent, School
from tools.school_directory import DirectoryError
from tools.speech import SpeechServiceError

logger = logging.getLogger(__name__)

DEFAULT_VOICE_LANGUAGE = "fr"


class SchoolRecords(Protocol):
    def authenticate(self, sender_id: str) -> Optional[Parent]:
        ...

    def children_of(self, parent_id: str) -> List[Child]:
        ...

    def grades_of(self, child_id: str) -> List[Grade]:
        ...

    def attendance_of(self, child_id: str) -> List[AttendanceRecord]:
        ...

    def homework_of(self, child_id: str) -> List[HomeworkItem]:
        ...

    def school_of(self, child_id: str) -> Optional[School]:
        ...


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str, lang: str = DEFAULT_VOICE_LANGUAGE) -> AudioClip:
        ...


@dataclass
class _TurnTrace:
    """Mutable breadcrumbs gathered while a turn is handled, flushed to the turn log."""

    intent: str = UNKNOWN
    entities: Dict[str, Any] = field(default_factory=dict)
    outcome: str = "unknown"


class Orchestrator:
    """Coordinates NLU, dialogue resolution, record lookups and speech."""

    def __init__(
        self,
        nlu: NLUService,
        directory: SchoolRecords,
        resolver: DialogueResolver,
        composer: Optional[ResponseComposer] = None,
        *,
        speech: Optional[SpeechSynthesizer] = None,
        logger: Optional[LearningLogger] = None,
        voice_language: str = DEFAULT_VOICE_LANGUAGE,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._nlu = nlu
        self._directory = directory
        self._resolver = resolver
        self._composer = composer or ResponseComposer()
        self._speech = speech
        self._logger = logger
        self._voice_language = voice_language
        self._today = today

    @property
    def resolver(self) -> DialogueResolver:
        return self._resolver

    def handle_message(self, sender_id: str, raw_text: str, *, voice_note: bool = False) -> Response:
        """Answer one inbound message; never raises.

        ``voice_note`` marks text transcribed from an audio note, which is
        answered by voice like an explicit "en vocal" request.
        """

        start = perf_counter()
        text = (raw_text or "").strip()
        trace = _TurnTrace()
        try:
            response = self._handle(sender_id, text, trace, voice_note=voice_note)
        except DirectoryError as exc:
            logger.error("School records unavailable: %s", exc)
            trace.outcome = "directory_error"
            response = TextResponse(messages.TECHNICAL_ERROR)
        except Exception:
            logger.exception("Unexpected failure while handling a message")
            trace.outcome = "error"
            response = TextResponse(messages.TECHNICAL_ERROR)

        latency_ms = int((perf_counter() - start) * 1000)
        self._emit_log(sender_id, text, trace, response, latency_ms)
        return response

    def request_voice(self, sender_id: str) -> str:
        """Arm voice mode for the sender's next answered request."""

        self._resolver.request_voice(sender_id)
        logger.info("Voice mode requested")
        return messages.VOICE_ACK

    def clear_session(self, sender_id: str) -> None:
        self._resolver.clear(sender_id)
        logger.info("Session cleared")

    # WHAT: the per-turn decision funnel.
    # HOW: fixed replies first, then identity, children, follow-up recovery, resolution, records, composition.
    def _handle(self, sender_id: str, text: str, trace: _TurnTrace, *, voice_note: bool) -> Response:
        if not text:
            trace.outcome = "empty"
            return TextResponse(messages.EMPTY_MESSAGE)

        query = self._nlu.interpret(text, today=self._today())
        if voice_note:
            query.voice_request = True
        trace.intent = query.intent
        trace.entities = query.entities()

        if query.intent == GREETING:
            trace.outcome = "greeting"
            return TextResponse(messages.GREETING)
        if query.intent == HELP:
            trace.outcome = "help"
            return TextResponse(messages.HELP)

        parent = self._directory.authenticate(sender_id)
        if parent is None:
            trace.outcome = "unauthorized"
            return TextResponse(messages.UNAUTHORIZED)

        if query.intent == UNKNOWN and query.voice_request and not query.student_name:
            trace.outcome = "voice_requested"
            return TextResponse(self.request_voice(sender_id))
        children = self._directory.children_of(parent.id)

        effective_text = text
        if query.intent == UNKNOWN:
            recovered = self._recover_follow_up(sender_id, query, children)
            if recovered is None:
                trace.outcome = "not_understood"
                return TextResponse(messages.NOT_UNDERSTOOD)
            query, effective_text = recovered
            trace.intent = query.intent
            trace.entities = query.entities()
            trace.entities["follow_up"] = True

        if query.intent not in CHILD_INTENTS:
            trace.outcome = "not_understood"
            return TextResponse(messages.NOT_UNDERSTOOD)

        resolution = self._resolver.resolve(sender_id, query, children, raw_text=effective_text)
        if isinstance(resolution, NoChildren):
            trace.outcome = "no_children"
            return TextResponse(messages.NO_CHILDREN)
        if isinstance(resolution, DisambiguationPrompt):
            trace.outcome = "disambiguation"
            return TextResponse(messages.multiple_children(resolution.listing()))
        if isinstance(resolution, NotFound):
            trace.outcome = "child_not_found"
            return TextResponse(messages.child_not_found(resolution.name))

        answer = self._compose(query, resolution)
        trace.outcome = "answered"
        trace.entities["child_id"] = resolution.child.id
        if not resolution.in_voice:
            return TextResponse(answer.text)
        return self._voice_reply(sender_id, query.intent, answer, trace)

    def _recover_follow_up(
        self,
        sender_id: str,
        query: StructuredQuery,
        children: List[Child],
    ) -> Optional[tuple[StructuredQuery, str]]:
        """A bare child name after a prompt re-runs the previous question for that child."""

        if not query.student_name or find_child(children, query.student_name) is None:
            return None
        previous_text = self._resolver.last_message(sender_id)
        if not previous_text:
            return None
        previous = self._nlu.interpret(previous_text, today=self._today())
        if previous.intent not in CHILD_INTENTS:
            return None
        logger.info("Follow-up name %s applied to previous %s request", query.student_name, previous.intent)
        merged = replace(
            previous,
            student_name=query.student_name,
            voice_request=previous.voice_request or query.voice_request,
        )
        return merged, previous_text

    def _compose(self, query: StructuredQuery, target: ResolvedTarget) -> ComposedAnswer:
        child = target.child
        intent = query.intent
        subject = query.subject
        if intent in (GRADES, HOMEWORK) and not subject and not query.student_name and target.previous_message:
            subject = self._nlu.subject_of(target.previous_message)
            if subject:
                logger.debug("Subject %s carried over from the previous message", subject)

        if intent == GRADES:
            return self._composer.grades(child, self._directory.grades_of(child.id), subject=subject)
        if intent == ATTENDANCE:
            return self._composer.attendance(
                child,
                self._directory.attendance_of(child.id),
                time_reference=query.time_reference,
            )
        if intent == HOMEWORK:
            due = query.time_reference.date if query.time_reference else None
            return self._composer.homework(
                child,
                self._directory.homework_of(child.id),
                today=self._today(),
                subject=subject,
                due=due,
            )
        if intent == SCHOOL:
            return self._composer.school(child, self._directory.school_of(child.id))
        raise ValueError(f"Unsupported child intent: {intent}")

    def _voice_reply(self, sender_id: str, intent: str, answer: ComposedAnswer, trace: _TurnTrace) -> Response:
        try:
            if self._speech is None:
                logger.warning("Voice answer requested but no speech service is configured")
                return TextResponse(answer.text)
            try:
                clip = self._speech.synthesize(answer.speech or answer.text, self._voice_language)
            except SpeechServiceError as exc:
                logger.error("Speech synthesis failed, answering in text: %s", exc)
                trace.outcome = "answered_speech_failed"
                return TextResponse(answer.text)
            return VoiceResponse(text=answer.text, audio=clip)
        finally:
            self._resolver.release_voice(sender_id, intent)

    def _emit_log(
        self,
        sender_id: str,
        text: str,
        trace: _TurnTrace,
        response: Response,
        latency_ms: int,
    ) -> None:
        if not self._logger or not self._logger.enabled:
            return
        record = TurnRecord.new(
            sender_id=sender_id,
            user_text=text,
            intent=trace.intent,
            entities=trace.entities,
            outcome=trace.outcome,
            response_text=response.text,
            voice=isinstance(response, VoiceResponse),
            latency_ms=latency_ms,
        )
        self._logger.log_turn(record)


__all__ = ["Orchestrator", "SchoolRecords", "SpeechSynthesizer"]
