"""Assemble the assistant and run the interactive CLI loop."""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from app.config import (
    get_audio_dir,
    get_audio_max_age_seconds,
    get_classifier_min_score,
    get_classifier_model_path,
    get_google_credentials_path,
    get_google_sheet_id,
    get_intent_templates_path,
    get_llm_api_key,
    get_log_backup_count,
    get_log_level,
    get_log_max_bytes,
    get_log_redaction_patterns,
    get_public_base_url,
    get_school_data_backend,
    get_school_data_path,
    get_session_max_entries,
    get_session_ttl_seconds,
    get_speech_to_text_model,
    get_tts_model,
    get_tts_voice,
    get_turn_log_path,
    get_voice_language,
    is_grades_voice_sticky,
    is_log_redaction_enabled,
    is_logging_enabled,
)
from core import messages
from core.dialogue import DialogueResolver
from core.intent_classifier import IntentClassifier
from core.learning_logger import LearningLogger
from core.nlu_service import NLUService
from core.orchestrator import Orchestrator
from core.response_composer import VoiceResponse
from core.session_store import SessionStore
from tools import build_school_directory
from tools.speech import OpenAISpeechService

DEFAULT_CLI_SENDER = "whatsapp:+33600000001"


def configure_logging(level: Optional[int] = None) -> None:
    logging.basicConfig(
        level=level if level is not None else get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_speech_service() -> OpenAISpeechService:
    return OpenAISpeechService(
        api_key=get_llm_api_key(),
        audio_dir=get_audio_dir(),
        public_base_url=get_public_base_url(),
        tts_model=get_tts_model(),
        tts_voice=get_tts_voice(),
        stt_model=get_speech_to_text_model(),
        max_age_seconds=get_audio_max_age_seconds(),
    )


# -- Orchestrator construction -------------------------------------------------
def build_orchestrator(speech: Optional[OpenAISpeechService] = None) -> Orchestrator:
    """Wire up the assistant for the CLI and the web API.

    WHAT: instantiate the NLU (keyword tier + trained classifier), the session
    store and dialogue resolver, the school records backend, speech and the
    turn logger.
    HOW: pull runtime configuration from ``app.config`` helpers and hand the
    resulting instances to ``core.orchestrator.Orchestrator``.
    """
    classifier = IntentClassifier(
        get_classifier_model_path(),
        templates_path=get_intent_templates_path(),
    )
    nlu = NLUService(classifier=classifier, classifier_threshold=get_classifier_min_score())
    store = SessionStore(
        ttl_seconds=get_session_ttl_seconds(),
        max_entries=get_session_max_entries(),
    )
    resolver = DialogueResolver(store, grades_voice_sticky=is_grades_voice_sticky())
    directory = build_school_directory(
        get_school_data_backend(),
        data_path=get_school_data_path(),
        sheet_id=get_google_sheet_id(),
        credentials_path=get_google_credentials_path(),
    )
    turn_logger = LearningLogger(
        turn_log_path=get_turn_log_path(),
        enabled=is_logging_enabled(),
        redact=is_log_redaction_enabled(),
        patterns=get_log_redaction_patterns(),
        max_bytes=get_log_max_bytes(),
        backup_count=get_log_backup_count(),
    )
    return Orchestrator(
        nlu,
        directory,
        resolver,
        speech=speech if speech is not None else build_speech_service(),
        logger=turn_logger,
        voice_language=get_voice_language(),
    )


# -- Interactive CLI loop ------------------------------------------------------
def main(argv: Optional[Sequence[str]] = None) -> None:
    """Minimal CLI driver that proxies stdin to the assistant.

    Lines starting with ``/`` are commands: ``/vocal`` arms voice mode and
    ``/reset`` clears the conversation; ``quit`` or ``exit`` stop the loop.
    """
    parser = argparse.ArgumentParser(description="Chat with the school assistant from a terminal.")
    parser.add_argument("--sender", default=DEFAULT_CLI_SENDER, help="Sender id used to authenticate the parent.")
    args = parser.parse_args(argv)

    configure_logging()
    orchestrator = build_orchestrator()
    print("Assistant ready. Type 'quit' or 'exit' to stop.")

    while True:
        try:
            message = input("Vous: ")
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        command = message.strip().lower()
        if command in {"quit", "exit"}:
            print("Goodbye!")
            break
        if command == "/vocal":
            print(f"Assistant: {orchestrator.request_voice(args.sender)}")
            continue
        if command == "/reset":
            orchestrator.clear_session(args.sender)
            print(f"Assistant: {messages.SESSION_CLEARED}")
            continue

        response = orchestrator.handle_message(args.sender, message)
        print()
        print(f"Assistant: {response.text}")
        if isinstance(response, VoiceResponse):
            print(f"[audio: {response.audio.url or response.audio.path}]")
        print()


if __name__ == "__main__":
    main()
