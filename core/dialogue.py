"""Resolve which child a parent's query targets, across turns.

``DialogueResolver`` is the only component that reads or writes the dialogue
fields of a session. Every resolution runs as a single read-modify-write under
the sender's lock; callers fetch the child list before calling ``resolve`` and
fetch domain data after it returns, so no external I/O happens under the lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from core.nlu_service import StructuredQuery
from core.patterns import GRADES
from core.school_records import Child
from core.session_store import Session, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedTarget:
    child: Child
    in_voice: bool = False
    previous_message: Optional[str] = None


@dataclass(frozen=True)
class DisambiguationPrompt:
    children: tuple[Child, ...]

    def listing(self) -> str:
        return "\n".join(f"- {child.first_name} {child.last_name}" for child in self.children)


@dataclass(frozen=True)
class NotFound:
    name: str


@dataclass(frozen=True)
class NoChildren:
    pass


Resolution = Union[ResolvedTarget, DisambiguationPrompt, NotFound, NoChildren]


def find_child(children: Sequence[Child], name: Optional[str]) -> Optional[Child]:
    """Case-insensitive exact match on first OR last name; first hit wins."""

    if not name:
        return None
    for child in children:
        if child.answers_to(name):
            return child
    return None


class DialogueResolver:
    """Child selection and voice latching on top of a ``SessionStore``."""

    def __init__(self, store: SessionStore, *, grades_voice_sticky: bool = False) -> None:
        self._store = store
        self._grades_voice_sticky = grades_voice_sticky

    @property
    def store(self) -> SessionStore:
        return self._store

    def resolve(
        self,
        sender_id: str,
        query: StructuredQuery,
        children: Sequence[Child],
        *,
        raw_text: Optional[str] = None,
    ) -> Resolution:
        """Pick the target child for ``query`` and update the sender's session.

        ``raw_text`` (when given) becomes the session's ``last_message`` once
        the decision has been made; the previous value is handed back on
        resolved outcomes so callers can re-derive a subject from it.
        """

        children = tuple(children)
        with self._store.locked(sender_id) as session:
            previous_message = session.last_message
            outcome = self._decide(session, query, children)
            if isinstance(outcome, Child):
                self._latch_voice(session, query)
                outcome = ResolvedTarget(
                    child=outcome,
                    in_voice=session.in_voice,
                    previous_message=previous_message,
                )
            if raw_text is not None:
                session.last_message = raw_text

        if isinstance(outcome, ResolvedTarget):
            logger.info("Sender resolved to child %s (voice=%s)", outcome.child.id, outcome.in_voice)
        else:
            logger.info("Sender resolution ended with %s", type(outcome).__name__)
        return outcome

    # WHAT: the ordered decision table for child selection.
    # HOW: empty list, ambiguity without a name, explicit name (re-pins), pinned selection, single child, fallback prompt.
    @staticmethod
    def _decide(
        session: Session,
        query: StructuredQuery,
        children: tuple[Child, ...],
    ) -> Union[Child, DisambiguationPrompt, NotFound, NoChildren]:
        if not children:
            return NoChildren()

        name = query.student_name
        if len(children) > 1 and not session.selected_child_id and not name:
            return DisambiguationPrompt(children)

        if name:
            match = find_child(children, name)
            if match is None:
                return NotFound(name)
            session.selected_child_id = match.id
            return match

        if session.selected_child_id:
            for child in children:
                if child.id == session.selected_child_id:
                    return child

        if len(children) == 1:
            session.selected_child_id = children[0].id
            return children[0]

        return DisambiguationPrompt(children)

    @staticmethod
    def _latch_voice(session: Session, query: StructuredQuery) -> None:
        if session.voice_requested:
            session.in_voice = True
            session.voice_requested = False
        if query.voice_request:
            session.in_voice = True

    def request_voice(self, sender_id: str) -> None:
        """Arm the one-shot latch: the next resolved answer is spoken."""

        with self._store.locked(sender_id) as session:
            session.voice_requested = True

    def release_voice(self, sender_id: str, intent: str) -> None:
        """Clear ``in_voice`` after a voiced answer.

        Grades answers keep the flag when ``grades_voice_sticky`` is set.
        """

        if self._grades_voice_sticky and intent == GRADES:
            return
        with self._store.locked(sender_id) as session:
            session.in_voice = False

    def last_message(self, sender_id: str) -> Optional[str]:
        return self._store.get(sender_id).last_message

    def clear(self, sender_id: str) -> None:
        self._store.clear(sender_id)


__all__ = [
    "DialogueResolver",
    "DisambiguationPrompt",
    "NoChildren",
    "NotFound",
    "Resolution",
    "ResolvedTarget",
    "find_child",
]
