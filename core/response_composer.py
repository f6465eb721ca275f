"""Turn a resolved child plus fetched school data into reply text.

Every compose method returns a ``ComposedAnswer`` holding the full written
answer and a short spoken-style summary; the caller decides whether the summary
is sent to speech synthesis. Replies leave the assistant as a tagged
``TextResponse`` or ``VoiceResponse``.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core import messages
from core.parsers import TimeReference, subject_label, subject_matches
from core.school_records import AttendanceRecord, Child, Grade, HomeworkItem, School

ABSENT_STATUS = "absent"

# (floor, remark), checked top-down against the overall average.
GRADE_REMARKS: Tuple[Tuple[float, str], ...] = (
    (16.0, "Excellents résultats !"),
    (14.0, "Très bons résultats."),
    (12.0, "Bons résultats."),
    (10.0, "Résultats satisfaisants."),
)
GRADE_REMARK_FLOOR = "Des efforts sont nécessaires pour améliorer ces résultats."


@dataclass(frozen=True)
class AudioClip:
    path: Path
    url: Optional[str] = None
    content_type: str = "audio/mpeg"


@dataclass(frozen=True)
class TextResponse:
    text: str


@dataclass(frozen=True)
class VoiceResponse:
    text: str
    audio: AudioClip


Response = Union[TextResponse, VoiceResponse]


@dataclass(frozen=True)
class ComposedAnswer:
    text: str
    speech: Optional[str] = None


def grade_remark(average: float) -> str:
    for floor, remark in GRADE_REMARKS:
        if average >= floor:
            return remark
    return GRADE_REMARK_FLOOR


def format_date(value: Optional[date], raw: str = "") -> str:
    if value is None:
        return raw or "date inconnue"
    return value.strftime("%d/%m/%Y")


def format_score(value: float) -> str:
    return f"{value:.2f}"


def average_by_subject(grades: Iterable[Grade]) -> "OrderedDict[str, float]":
    """Average numeric scores per raw subject label, in first-seen order."""

    totals: "OrderedDict[str, List[float]]" = OrderedDict()
    for grade in grades:
        if grade.score is None:
            continue
        totals.setdefault(grade.subject, []).append(grade.score)
    return OrderedDict((subject, sum(scores) / len(scores)) for subject, scores in totals.items())


class ResponseComposer:
    """Formats grades, attendance, homework and school answers."""

    def grades(self, child: Child, grades: Sequence[Grade], *, subject: Optional[str] = None) -> ComposedAnswer:
        first = child.first_name
        if not grades:
            return ComposedAnswer(messages.NO_GRADES.format(name=first))

        selected = list(grades)
        label = subject_label(subject) if subject else None
        if subject:
            selected = [grade for grade in selected if subject_matches(grade.subject, subject)]
            if not selected:
                return ComposedAnswer(messages.NO_GRADES_FOR_SUBJECT.format(subject=label, name=first))

        averages = average_by_subject(selected)
        scores = [grade.score for grade in selected if grade.score is not None]
        if not scores:
            if label:
                return ComposedAnswer(messages.NO_GRADES_FOR_SUBJECT.format(subject=label, name=first))
            return ComposedAnswer(messages.NO_GRADES.format(name=first))

        header = f"Notes de {child.full_name}"
        if label:
            header += f" en {label}"
        lines = [header + ":", ""]
        lines.extend(f"{name}: {format_score(avg)}/20" for name, avg in averages.items())

        spoken = [f"Voici les notes de {first}."]
        if label:
            first_average = next(iter(averages.values()))
            spoken.append(f"En {label}, la moyenne est de {format_score(first_average)} sur 20.")
        else:
            overall = sum(scores) / len(scores)
            lines.append("")
            lines.append(f"Moyenne générale: {format_score(overall)}/20")
            lines.append(grade_remark(overall))
            spoken.extend(
                f"En {name}, la moyenne est de {format_score(avg)} sur 20." for name, avg in averages.items()
            )
            spoken.append(f"La moyenne générale est de {format_score(overall)} sur 20.")
        return ComposedAnswer("\n".join(lines), " ".join(spoken))

    def attendance(
        self,
        child: Child,
        records: Sequence[AttendanceRecord],
        *,
        time_reference: Optional[TimeReference] = None,
    ) -> ComposedAnswer:
        first = child.first_name
        if not records:
            return ComposedAnswer(messages.NO_ATTENDANCE.format(name=first))

        if time_reference is not None:
            when = format_date(time_reference.date)
            matches = [record for record in records if record.date == time_reference.date]
            if not matches:
                return ComposedAnswer(messages.NO_ATTENDANCE_FOR_DATE.format(name=first, date=when))
            status = matches[-1].status
            return ComposedAnswer(
                f"Présence de {first} le {when}: {status}",
                f"Le {when}, {first} était {status}.",
            )

        ordered = sorted(records, key=lambda record: (record.date is not None, record.date or date.min), reverse=True)
        latest = ordered[0]
        absences = sum(1 for record in records if record.status.strip().lower() == ABSENT_STATUS)
        text = "\n".join(
            [
                f"Suivi de présence de {child.full_name}:",
                "",
                f"Dernière mise à jour: {format_date(latest.date, latest.raw_date)}",
                f"Statut actuel: {latest.status}",
                f"Total des absences: {absences} jour(s)",
            ]
        )
        speech = f"{first} est actuellement {latest.status} et totalise {absences} jours d'absence."
        return ComposedAnswer(text, speech)

    def homework(
        self,
        child: Child,
        items: Sequence[HomeworkItem],
        *,
        today: date,
        subject: Optional[str] = None,
        due: Optional[date] = None,
    ) -> ComposedAnswer:
        first = child.first_name
        if not items:
            return ComposedAnswer(messages.NO_HOMEWORK.format(name=first))

        if due is not None:
            selected = [item for item in items if item.due_date == due]
        else:
            selected = [item for item in items if item.due_date is not None and item.due_date >= today]
        if subject:
            selected = [item for item in selected if subject_matches(item.subject, subject)]
        selected.sort(key=lambda item: item.due_date or date.max)

        if not selected:
            return ComposedAnswer(
                messages.NO_UPCOMING_HOMEWORK.format(name=first),
                f"{first} n'a pas de devoirs à venir.",
            )

        header = f"Devoirs à venir pour {child.full_name}"
        if subject:
            header += f" en {subject_label(subject)}"
        if due is not None:
            header += f" pour le {format_date(due)}"
        blocks = [header + ":"]
        for index, item in enumerate(selected, start=1):
            blocks.append(
                f"{index}. {item.subject}: {item.description}\n"
                f"   À rendre pour le: {format_date(item.due_date, item.raw_due_date)}"
            )
        upcoming = selected[0]
        speech = (
            f"Le prochain devoir de {first} est en {upcoming.subject}, "
            f"à rendre pour le {format_date(upcoming.due_date, upcoming.raw_due_date)}."
        )
        return ComposedAnswer("\n\n".join(blocks), speech)

    def school(self, child: Child, school: Optional[School]) -> ComposedAnswer:
        if school is None:
            return ComposedAnswer(messages.NO_SCHOOL.format(name=child.first_name))
        class_name = school.class_name or child.class_name
        text = f"{child.first_name} est inscrit(e) à {school.name}"
        if class_name:
            text += f" en classe de {class_name}"
        return ComposedAnswer(text, text + ".")


def response_payload(response: Response) -> Dict[str, object]:
    """Plain-dict view of a response for JSON transports."""

    payload: Dict[str, object] = {"type": "text", "text": response.text}
    if isinstance(response, VoiceResponse):
        payload["type"] = "voice"
        payload["audio_url"] = response.audio.url
        payload["audio_path"] = str(response.audio.path)
    return payload


__all__ = [
    "AudioClip",
    "ComposedAnswer",
    "GRADE_REMARKS",
    "Response",
    "ResponseComposer",
    "TextResponse",
    "VoiceResponse",
    "average_by_subject",
    "format_date",
    "grade_remark",
    "response_payload",
]
