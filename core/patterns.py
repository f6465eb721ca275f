"""Static keyword tables and ordered text patterns shared by the NLU layer.

Everything here is immutable data: the intent classifier reads the intent
groups, the entity extractors read the subject/time/voice/name tables. Order
is significant wherever a mapping or tuple is declared; the first match wins.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Pattern, Tuple

GREETING = "greeting"
HELP = "help"
GRADES = "grades"
ATTENDANCE = "attendance"
HOMEWORK = "homework"
SCHOOL = "school"
UNKNOWN = "unknown"

# Intents that target a specific child and go through the dialogue resolver.
CHILD_INTENTS = frozenset({GRADES, ATTENDANCE, HOMEWORK, SCHOOL})

INTENT_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        GREETING: (
            "bonjour",
            "bonsoir",
            "salut",
            "hello",
            "coucou",
            "hey",
            "bonne journée",
            "bonne soirée",
        ),
        HELP: (
            "aide",
            "help",
            "menu",
            "que peux-tu faire",
            "que sais-tu faire",
            "commandes",
        ),
        GRADES: (
            "notes",
            "note",
            "moyenne",
            "bulletin",
            "résultat",
            "évaluation",
            "contrôle",
            "examen",
            "test",
        ),
        ATTENDANCE: (
            "absence",
            "présence",
            "présent",
            "absent",
            "retard",
            "assiduité",
            "était",
            "venue",
            "venu",
            "là",
            "assisté",
        ),
        HOMEWORK: (
            "devoir",
            "exercice",
            "travail",
            "leçon",
            "à faire",
            "révisions",
        ),
        SCHOOL: (
            "école",
            "ecole",
            "lycée",
            "college",
            "collège",
            "établissement",
            "institut",
            "scolarité",
            "classe",
            "niveau",
            "section",
        ),
    }
)

SUBJECT_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "mathematique": ("math", "mathematique", "mathématique", "calcul"),
        "francais": ("francais", "français", "fr", "french", "littérature", "dictée"),
        "anglais": ("anglais", "eng", "english", "langue anglaise"),
        "histoire": ("histoire", "history", "hist"),
        "geographie": ("geographie", "géographie", "geo", "géo"),
        "physique": ("physique", "physics", "phys"),
        "chimie": ("chimie", "chemistry", "chim"),
        "svt": ("svt", "science", "biologie", "sciences naturelles", "bio"),
    }
)

SUBJECT_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "mathematique": "mathématiques",
        "francais": "français",
        "anglais": "anglais",
        "histoire": "histoire",
        "geographie": "géographie",
        "physique": "physique",
        "chimie": "chimie",
        "svt": "SVT",
    }
)

# Compound labels come before the shorter labels they contain ("avant-hier" / "hier").
TIME_REFERENCES: Mapping[str, int] = MappingProxyType(
    {
        "avant-hier": -2,
        "après-demain": 2,
        "apres-demain": 2,
        "aujourd'hui": 0,
        "aujourd’hui": 0,
        "hier": -1,
        "demain": 1,
    }
)

EXPLICIT_DATE_LABEL = "explicit_date"

VOICE_TRIGGER_WORDS: Tuple[str, ...] = (
    "lis",
    "lire",
    "lit",
    "lecture",
    "vocal",
    "audio",
    "voix",
    "parle",
    "dire",
    "dis",
    "écouter",
    "écoute",
    "entendre",
)

VOICE_START_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^(?:lis|lire|dis|dire|parle)(?:[- ]moi)?\s+", re.IGNORECASE),
    re.compile(r"^en\s+(?:vocal|audio|voix)\b[\s,:]*", re.IGNORECASE),
    re.compile(r"^écouter\s+", re.IGNORECASE),
)

VOICE_END_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\s*\ben\s+(?:vocal|audio|voix)\s*[?!.]*$", re.IGNORECASE),
    re.compile(r"\s*\bà\s+voix\s+haute\s*[?!.]*$", re.IGNORECASE),
)

_STOP_WORDS_BASE = {
    # determiners, prepositions, possessives
    "les", "des", "de", "la", "le", "du", "un", "une", "en", "et", "ou", "a", "à",
    "au", "aux", "pour", "sur", "par", "avec", "dans",
    "mon", "ma", "mes", "son", "sa", "ses", "notre", "nos", "votre", "vos",
    # pronouns and interrogatives
    "je", "tu", "il", "elle", "on", "nous", "vous", "ils", "elles", "moi", "me", "lui",
    "qui", "que", "quoi", "quel", "quels", "quelle", "quelles", "combien", "comment",
    "quand", "pourquoi", "où", "est", "est-ce", "ce", "ça", "cette", "ces",
    # command verbs and politeness
    "voir", "consulter", "obtenir", "donner", "donne", "donnez", "montre", "montrez",
    "affiche", "envoie", "peux", "pouvez", "veux", "voudrais", "merci", "svp", "stp",
    "voici", "oui", "non", "ok",
    # task verbs following "à" / "pour" in homework questions
    "faire", "rendre", "réviser", "reviser", "apprendre", "préparer", "preparer", "finir",
    "terminer", "travailler", "étudier", "etudier", "lire", "écrire", "ecrire", "savoir",
    # calendar nouns and qualifiers
    "lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche",
    "semaine", "week-end", "weekend", "mois", "trimestre", "semestre", "année", "annee",
    "jour", "jours", "matin", "soir", "midi", "prochain", "prochaine", "dernier", "dernière",
    "vacances", "rentrée",
    # family nouns
    "fils", "fille", "enfant", "enfants",
    # domain nouns not covered by the keyword tables
    "moyennes", "bulletins", "résultats", "absences", "retards", "devoirs", "exercices",
    "leçons", "matière", "matières", "aujourd", "hui", "journée", "soirée", "bonne",
}


def _build_stop_words() -> frozenset:
    words = set(_STOP_WORDS_BASE)
    for keywords in INTENT_KEYWORDS.values():
        words.update(keywords)
    for keywords in SUBJECT_KEYWORDS.values():
        words.update(keywords)
    words.update(SUBJECT_LABELS.values())
    words.update(TIME_REFERENCES.keys())
    words.update(VOICE_TRIGGER_WORDS)
    return frozenset(word.lower() for word in words)


STOP_WORDS = _build_stop_words()


def _build_plural_stop_stems() -> frozenset:
    stems = {"absence", "présence", "retard", "absent", "présent", "matière", "enfant", "jour"}
    for intent in (GRADES, HOMEWORK, SCHOOL):
        stems.update(INTENT_KEYWORDS[intent])
    for keywords in SUBJECT_KEYWORDS.values():
        stems.update(keywords)
    stems.update(SUBJECT_LABELS.values())
    return frozenset(stem.lower() for stem in stems if " " not in stem)


# Nouns whose "-s" plural is also never a name ("Notes", "Maths"); verbs and
# participles ("venu") stay out so names like "Venus" survive.
PLURAL_STOP_STEMS = _build_plural_stop_stems()

# Fillers for the ``*`` slots of the classifier training templates.
NAME_SLOT_FILLERS: Tuple[str, ...] = ("Marie", "Paul", "Lucas", "Emma", "Léa", "Hugo")
SUBJECT_SLOT_FILLERS: Tuple[str, ...] = ("maths", "français", "anglais", "histoire", "physique")

INTENT_LABELS: Tuple[str, ...] = tuple(INTENT_KEYWORDS.keys()) + (UNKNOWN,)


__all__ = [
    "ATTENDANCE",
    "CHILD_INTENTS",
    "EXPLICIT_DATE_LABEL",
    "GRADES",
    "GREETING",
    "HELP",
    "HOMEWORK",
    "INTENT_KEYWORDS",
    "INTENT_LABELS",
    "NAME_SLOT_FILLERS",
    "PLURAL_STOP_STEMS",
    "SCHOOL",
    "STOP_WORDS",
    "SUBJECT_KEYWORDS",
    "SUBJECT_LABELS",
    "SUBJECT_SLOT_FILLERS",
    "TIME_REFERENCES",
    "UNKNOWN",
    "VOICE_END_PATTERNS",
    "VOICE_START_PATTERNS",
    "VOICE_TRIGGER_WORDS",
]
