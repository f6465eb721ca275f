"""Fixed French texts sent back to parents."""

from __future__ import annotations

GREETING = (
    "Bonjour ! Je suis l'assistant de l'école. Je peux vous donner les notes, "
    "les absences, les devoirs ou des informations sur l'école. "
    "Comment puis-je vous aider ?"
)

HELP = (
    "Voici ce que je peux faire :\n"
    "- Consulter les notes (par matière)\n"
    "- Vérifier les absences\n"
    "- Voir les devoirs\n"
    "- Informations sur l'école\n"
    "Vous pouvez aussi demander une réponse vocale en ajoutant 'en vocal' à votre message."
)

NOT_UNDERSTOOD = "Je n'ai pas compris votre demande. " + HELP

UNAUTHORIZED = (
    "Désolé, je ne reconnais pas votre numéro. Contactez l'établissement pour "
    "vous assurer que votre numéro est bien enregistré."
)

NO_CHILDREN = "Aucun enfant n'est associé à votre compte."

MULTIPLE_CHILDREN = (
    "Vous avez plusieurs enfants :\n{list}\n"
    "Veuillez préciser lequel (par exemple: \"notes pour [prénom]\")"
)

CHILD_NOT_FOUND = "Je ne trouve pas d'enfant nommé {name} associé à votre compte."

NO_GRADES = "Aucune note disponible pour {name}."
NO_GRADES_FOR_SUBJECT = "Aucune note disponible en {subject} pour {name}."
NO_ATTENDANCE = "Aucune information de présence pour {name}."
NO_ATTENDANCE_FOR_DATE = "Aucune information de présence pour {name} le {date}."
NO_HOMEWORK = "Aucun devoir pour {name}."
NO_UPCOMING_HOMEWORK = "Aucun devoir à venir pour {name}."
NO_SCHOOL = "Information non disponible pour {name}."

VOICE_ACK = "Je vais répondre par message vocal."
SESSION_CLEARED = "C'est noté, je repars de zéro."

EMPTY_MESSAGE = "Je n'ai reçu aucun texte. " + HELP
TECHNICAL_ERROR = "Je suis désolé, j'ai rencontré une erreur. Veuillez réessayer."
TRANSCRIPTION_FAILED = (
    "Désolé, je n'ai pas pu traiter votre message vocal. Veuillez réessayer en texte."
)


def multiple_children(listing: str) -> str:
    return MULTIPLE_CHILDREN.format(list=listing)


def child_not_found(name: str) -> str:
    return CHILD_NOT_FOUND.format(name=name)
