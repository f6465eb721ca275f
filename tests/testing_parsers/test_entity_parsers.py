from datetime import date

import pytest

from core.parsers import (
    extract_student_name,
    extract_subject,
    extract_time_reference,
    is_voice_request,
    strip_voice_framing,
    subject_matches,
)
from core.parsers.names import NAME_PATTERNS, is_stop_word
from core.patterns import EXPLICIT_DATE_LABEL, STOP_WORDS

TODAY = date(2024, 11, 14)


@pytest.mark.parametrize(
    "message, expected",
    [
        ("notes de Marie en maths", "Marie"),
        ("les devoirs pour paul", "Paul"),
        ("Lucas a quelles notes ?", "Lucas"),
        ("absences d'Emma", "Emma"),
        ("notes de maths pour Paul", "Paul"),
        ("Comment va Hugo cette semaine", "Hugo"),
        ("notes de mARIE", "Marie"),
        ("Marie a des devoirs à faire ?", "Marie"),
        ("devoirs de Marie pour lundi", "Marie"),
        ("Venus a des devoirs", "Venus"),
    ],
)
def test_student_name_cascade(message, expected):
    assert extract_student_name(message) == expected


@pytest.mark.parametrize(
    "message",
    [
        "notes de mon fils",
        "Devoirs pour demain",
        "Quelles sont les Notes ?",
        "Bonjour",
        "Voir les Absences",
        "moyenne en Maths",
        "devoirs à rendre",
        "devoirs pour lundi",
        "exercices à faire pour la semaine prochaine",
        "",
    ],
)
def test_student_name_skips_stop_words(message):
    assert extract_student_name(message) is None


def test_name_patterns_never_return_stop_words():
    for word in sorted(STOP_WORDS):
        for template in ("notes de {w}", "{w} en maths", "{W}", "devoirs pour {W}"):
            text = template.format(w=word, W=word.capitalize())
            result = extract_student_name(text)
            assert result is None or result.lower() not in STOP_WORDS, text


def test_name_pattern_objects_expose_matches():
    after_preposition = NAME_PATTERNS[0]
    assert after_preposition.matches("notes de Marie")
    assert list(after_preposition.candidates("de la part de Paul")) == ["Paul"]
    assert list(after_preposition.candidates("devoirs à faire pour mardi")) == []


def test_plural_rule_only_covers_domain_nouns():
    assert is_stop_word("Notes")
    assert is_stop_word("Maths")
    assert is_stop_word("Contrôles")
    assert not is_stop_word("Venus")


@pytest.mark.parametrize(
    "message, expected",
    [
        ("notes en maths", "mathematique"),
        ("moyenne de mathématiques", "mathematique"),
        ("devoirs d'anglais", "anglais"),
        ("note en SVT", "svt"),
        ("contrôle de géo", "geographie"),
        ("une offre", None),
        ("notes de Marie", None),
    ],
)
def test_extract_subject(message, expected):
    assert extract_subject(message) == expected


def test_subject_matches_free_form_labels():
    assert subject_matches("Mathématiques 4e", "mathematique")
    assert subject_matches("Français", "francais")
    assert not subject_matches("Histoire-Géo", "anglais")
    assert subject_matches("Histoire-Géographie", "histoire")
    assert subject_matches("Histoire-Géographie", "geographie")
    assert subject_matches("Physique-Chimie", "chimie")
    assert not subject_matches("", "histoire")


def test_relative_time_reference_is_offset_from_today():
    reference = extract_time_reference("devoirs pour demain", today=TODAY)

    assert reference is not None
    assert reference.label == "demain"
    assert reference.offset == 1
    assert reference.date == date(2024, 11, 15)


def test_compound_time_labels_win_over_their_suffix():
    assert extract_time_reference("absent avant-hier ?", today=TODAY).offset == -2
    assert extract_time_reference("pour après-demain", today=TODAY).offset == 2
    assert extract_time_reference("le cahier de textes", today=TODAY) is None


def test_explicit_date_two_digit_year():
    reference = extract_time_reference("absence le 05/03/23", today=TODAY)

    assert reference.label == EXPLICIT_DATE_LABEL
    assert reference.date == date(2023, 3, 5)
    assert reference.offset is None


def test_explicit_date_without_year_uses_current_year():
    assert extract_time_reference("devoirs du 2-12", today=TODAY).date == date(2024, 12, 2)


def test_invalid_calendar_date_is_ignored():
    assert extract_time_reference("présence le 31/02/2024", today=TODAY) is None


@pytest.mark.parametrize(
    "message",
    ["lis-moi les notes de Marie", "en vocal: devoirs de Paul", "notes de Marie en vocal", "absences à voix haute", "vocal"],
)
def test_voice_request_detected(message):
    assert is_voice_request(message)


@pytest.mark.parametrize("message", ["notes de Marie", "notes en english", "absences de Lisa"])
def test_voice_request_not_detected(message):
    assert not is_voice_request(message)


def test_strip_voice_framing_keeps_the_request():
    assert strip_voice_framing("Lis-moi les notes de Marie") == "les notes de Marie"
    assert strip_voice_framing("notes de Marie en maths en vocal ?") == "notes de Marie en maths"
    assert strip_voice_framing("en audio, devoirs de Paul") == "devoirs de Paul"
    assert strip_voice_framing("en vocal") == ""


def test_bare_trigger_words_are_left_in_place():
    assert strip_voice_framing("notes de Marie, vocal si possible") == "notes de Marie, vocal si possible"
