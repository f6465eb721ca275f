from datetime import date
from pathlib import Path

import pytest

from core.parsers import TimeReference
from core.response_composer import (
    AudioClip,
    ResponseComposer,
    TextResponse,
    VoiceResponse,
    average_by_subject,
    grade_remark,
    response_payload,
)
from core.school_records import AttendanceRecord, Child, Grade, HomeworkItem, School

MARIE = Child(id="E001", first_name="Marie", last_name="Dupont", class_name="4e B")
TODAY = date(2024, 11, 14)


@pytest.fixture
def composer() -> ResponseComposer:
    return ResponseComposer()


@pytest.mark.parametrize(
    "average, remark",
    [
        (16.0, "Excellents résultats !"),
        (15.99, "Très bons résultats."),
        (14.0, "Très bons résultats."),
        (12.0, "Bons résultats."),
        (10.0, "Résultats satisfaisants."),
        (9.99, "Des efforts sont nécessaires pour améliorer ces résultats."),
    ],
)
def test_grade_remark_thresholds(average, remark):
    assert grade_remark(average) == remark


def test_average_by_subject_skips_missing_scores():
    grades = [Grade("Maths", 12.0), Grade("Maths", 14.0), Grade("Français", None), Grade("Français", 9.0)]

    assert dict(average_by_subject(grades)) == {"Maths": 13.0, "Français": 9.0}


def test_grades_without_subject_include_overall_average(composer):
    grades = [Grade("Mathématiques", 15.5), Grade("Mathématiques", 13.0), Grade("Anglais", 17.0)]

    answer = composer.grades(MARIE, grades)

    assert answer.text == (
        "Notes de Marie Dupont:\n\n"
        "Mathématiques: 14.25/20\n"
        "Anglais: 17.00/20\n\n"
        "Moyenne générale: 15.17/20\n"
        "Très bons résultats."
    )
    assert "La moyenne générale est de 15.17 sur 20." in answer.speech


def test_grades_subject_filter_shows_only_that_subject(composer):
    grades = [Grade("Mathématiques", 15.5), Grade("Mathématiques", 13.0), Grade("Anglais", 17.0)]

    answer = composer.grades(MARIE, grades, subject="mathematique")

    assert answer.text == "Notes de Marie Dupont en mathématiques:\n\nMathématiques: 14.25/20"
    assert "Moyenne générale" not in answer.text
    assert answer.speech == "Voici les notes de Marie. En mathématiques, la moyenne est de 14.25 sur 20."


def test_grades_subject_filter_accepts_combined_labels(composer):
    grades = [Grade("Histoire-Géographie", 14.0), Grade("Anglais", 17.0)]

    answer = composer.grades(MARIE, grades, subject="geographie")

    assert answer.text == "Notes de Marie Dupont en géographie:\n\nHistoire-Géographie: 14.00/20"


def test_grades_subject_without_matches(composer):
    answer = composer.grades(MARIE, [Grade("Anglais", 17.0)], subject="histoire")

    assert answer.text == "Aucune note disponible en histoire pour Marie."
    assert answer.speech is None


def test_no_grades(composer):
    assert composer.grades(MARIE, []).text == "Aucune note disponible pour Marie."


def test_attendance_summary_uses_latest_record(composer):
    records = [
        AttendanceRecord(date(2024, 11, 12), "présent"),
        AttendanceRecord(date(2024, 11, 14), "présent"),
        AttendanceRecord(date(2024, 11, 13), "Absent"),
        AttendanceRecord(None, "absent", raw_date="?"),
    ]

    answer = composer.attendance(MARIE, records)

    assert "Dernière mise à jour: 14/11/2024" in answer.text
    assert "Statut actuel: présent" in answer.text
    assert "Total des absences: 2 jour(s)" in answer.text
    assert answer.speech == "Marie est actuellement présent et totalise 2 jours d'absence."


def test_attendance_for_a_requested_date(composer):
    records = [AttendanceRecord(date(2024, 11, 13), "absent"), AttendanceRecord(date(2024, 11, 14), "présent")]
    yesterday = TimeReference(label="hier", offset=-1, date=date(2024, 11, 13))

    answer = composer.attendance(MARIE, records, time_reference=yesterday)

    assert answer.text == "Présence de Marie le 13/11/2024: absent"


def test_attendance_for_a_date_without_record(composer):
    records = [AttendanceRecord(date(2024, 11, 14), "présent")]
    other_day = TimeReference(label="explicit_date", date=date(2024, 10, 1))

    answer = composer.attendance(MARIE, records, time_reference=other_day)

    assert answer.text == "Aucune information de présence pour Marie le 01/10/2024."


def test_homework_lists_upcoming_items_sorted(composer):
    items = [
        HomeworkItem("Mathématiques", "Exercices p.52", date(2024, 11, 20)),
        HomeworkItem("Français", "Rédaction", date(2024, 11, 15)),
        HomeworkItem("Histoire", "Leçon", date(2024, 11, 1)),
    ]

    answer = composer.homework(MARIE, items, today=TODAY)

    assert answer.text.index("Français") < answer.text.index("Mathématiques")
    assert "Histoire" not in answer.text
    assert "1. Français: Rédaction\n   À rendre pour le: 15/11/2024" in answer.text
    assert answer.speech == "Le prochain devoir de Marie est en Français, à rendre pour le 15/11/2024."


def test_homework_subject_and_due_date_filters(composer):
    items = [
        HomeworkItem("Mathématiques", "Exercices p.52", date(2024, 11, 15)),
        HomeworkItem("Français", "Rédaction", date(2024, 11, 15)),
        HomeworkItem("Mathématiques", "Contrôle", date(2024, 11, 20)),
    ]

    answer = composer.homework(MARIE, items, today=TODAY, subject="mathematique", due=date(2024, 11, 15))

    assert "Exercices p.52" in answer.text
    assert "Rédaction" not in answer.text
    assert "Contrôle" not in answer.text


def test_homework_nothing_upcoming(composer):
    items = [HomeworkItem("Histoire", "Leçon", date(2024, 11, 1))]

    answer = composer.homework(MARIE, items, today=TODAY)

    assert answer.text == "Aucun devoir à venir pour Marie."


def test_school_answer(composer):
    answer = composer.school(MARIE, School(name="Collège Jean Moulin", class_name="4e B"))

    assert answer.text == "Marie est inscrit(e) à Collège Jean Moulin en classe de 4e B"
    assert composer.school(MARIE, None).text == "Information non disponible pour Marie."


def test_response_payload_tags_voice_replies(tmp_path: Path):
    clip = AudioClip(path=tmp_path / "reply.mp3", url="https://example.test/audio/reply.mp3")

    assert response_payload(TextResponse("ok")) == {"type": "text", "text": "ok"}
    payload = response_payload(VoiceResponse(text="ok", audio=clip))
    assert payload["type"] == "voice"
    assert payload["audio_url"] == "https://example.test/audio/reply.mp3"
