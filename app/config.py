"""Centralize defaults and environment lookups for the assistant."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Default configuration values
# ---------------------------------------------------------------------------
_DEFAULT_CLASSIFIER_MODEL_PATH = "models/intent_classifier.pkl"
_DEFAULT_CLASSIFIER_MIN_SCORE = 0.4
_DEFAULT_INTENT_TEMPLATES_PATH = "config/intent_templates.yml"
_DEFAULT_CLASSIFIER_REPORT_PATH = "reports/intent_classifier.json"
_DEFAULT_LOGGING_ENABLED: bool = True
_DEFAULT_LOG_REDACTION_ENABLED: bool = True
_DEFAULT_LOG_DIR = "logs"
_TURN_LOG_FILENAME = "turns.jsonl"
_DEFAULT_LOG_REDACTION_PATTERNS = "email,phone,credit_card,url"
_DEFAULT_LOG_MAX_BYTES = 1_000_000
_DEFAULT_LOG_BACKUP_COUNT = 5
_DEFAULT_LOG_LEVEL = "INFO"
_DEFAULT_SCHOOL_DATA_BACKEND = "json"
_DEFAULT_SCHOOL_DATA_PATH = "data/school_directory.json"
_DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60
_DEFAULT_SESSION_MAX_ENTRIES = 10_000
_DEFAULT_VOICE_LANGUAGE = "fr"
_DEFAULT_TTS_MODEL = "tts-1"
_DEFAULT_TTS_VOICE = "alloy"
_DEFAULT_SPEECH_TO_TEXT_MODEL = "whisper-1"
_DEFAULT_AUDIO_DIR = "data/audio"
_DEFAULT_AUDIO_MAX_AGE_SECONDS = 60 * 60
_DEFAULT_WEB_HOST = "127.0.0.1"
_DEFAULT_WEB_PORT = 3000
_DEFAULT_GRADES_VOICE_STICKY: bool = False

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _source(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return env if env is not None else os.environ


def _flag(env: Mapping[str, str] | None, key: str, default: bool) -> bool:
    raw = _source(env).get(key)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _FALSE_VALUES:
        return False
    if normalized in _TRUE_VALUES:
        return True
    return default


def _int(env: Mapping[str, str] | None, key: str, default: int) -> int:
    raw = _source(env).get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Intent classifier
# ---------------------------------------------------------------------------
def get_classifier_model_path(env: Dict[str, str] | None = None) -> Path:
    """Return the on-disk path to the serialized intent classifier."""

    override = _source(env).get("CLASSIFIER_MODEL_PATH")
    return Path(override) if override else Path(_DEFAULT_CLASSIFIER_MODEL_PATH)


def get_classifier_min_score(env: Dict[str, str] | None = None) -> float:
    """Return the confidence a classifier label must strictly exceed to be trusted."""

    raw = _source(env).get("CLASSIFIER_MIN_SCORE")
    if raw is None:
        return _DEFAULT_CLASSIFIER_MIN_SCORE
    try:
        value = float(raw)
    except ValueError:
        return _DEFAULT_CLASSIFIER_MIN_SCORE
    return min(max(value, 0.0), 1.0)


def get_intent_templates_path(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("INTENT_TEMPLATES_PATH")
    return Path(override) if override else Path(_DEFAULT_INTENT_TEMPLATES_PATH)


def get_classifier_report_path(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("CLASSIFIER_REPORT_PATH")
    return Path(override) if override else Path(_DEFAULT_CLASSIFIER_REPORT_PATH)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
def is_logging_enabled(env: Dict[str, str] | None = None) -> bool:
    """Determine whether per-turn JSONL logging is active."""

    return _flag(env, "LOGGING_ENABLED", _DEFAULT_LOGGING_ENABLED)


def get_log_dir(env: Dict[str, str] | None = None) -> Path:
    """Return the base directory for turn-by-turn logs."""

    override = _source(env).get("LOG_DIR")
    return Path(override) if override else Path(_DEFAULT_LOG_DIR)


def get_turn_log_path(env: Dict[str, str] | None = None) -> Path:
    """Return the full path for the turn log JSONL file."""

    return get_log_dir(env) / _TURN_LOG_FILENAME


def is_log_redaction_enabled(env: Dict[str, str] | None = None) -> bool:
    """Determine whether sensitive values should be scrubbed before logging."""

    return _flag(env, "LOG_REDACTION_ENABLED", _DEFAULT_LOG_REDACTION_ENABLED)


def get_log_redaction_patterns(env: Dict[str, str] | None = None) -> List[str]:
    """Return the list of redaction pattern keys to apply."""

    raw = _source(env).get("LOG_REDACTION_PATTERNS")
    values = raw if raw is not None else _DEFAULT_LOG_REDACTION_PATTERNS
    parts = [segment.strip().lower() for segment in values.split(",") if segment.strip()]
    return [part for part in parts if part]


def get_log_max_bytes(env: Dict[str, str] | None = None) -> int:
    """Return the maximum size in bytes before rotating log files."""

    return max(_int(env, "LOG_MAX_BYTES", _DEFAULT_LOG_MAX_BYTES), 0)


def get_log_backup_count(env: Dict[str, str] | None = None) -> int:
    """Return the number of rotated log files to retain."""

    return max(_int(env, "LOG_BACKUP_COUNT", _DEFAULT_LOG_BACKUP_COUNT), 0)


def get_log_level(env: Dict[str, str] | None = None) -> int:
    """Return the ``logging`` level named by ``LOG_LEVEL`` (INFO when unknown)."""

    name = _source(env).get("LOG_LEVEL", _DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


# ---------------------------------------------------------------------------
# School records
# ---------------------------------------------------------------------------
def get_school_data_backend(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("SCHOOL_DATA_BACKEND", _DEFAULT_SCHOOL_DATA_BACKEND).strip().lower()


def get_school_data_path(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("SCHOOL_DATA_PATH")
    return Path(override) if override else Path(_DEFAULT_SCHOOL_DATA_PATH)


def get_google_sheet_id(env: Dict[str, str] | None = None) -> str | None:
    return _source(env).get("GOOGLE_SHEET_ID")


def get_google_credentials_path(env: Dict[str, str] | None = None) -> Path | None:
    override = _source(env).get("GOOGLE_CREDENTIALS_PATH")
    return Path(override) if override else None


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
def get_session_ttl_seconds(env: Dict[str, str] | None = None) -> int:
    """Return how long an idle conversation is remembered (0 disables expiry)."""

    return max(_int(env, "SESSION_TTL_SECONDS", _DEFAULT_SESSION_TTL_SECONDS), 0)


def get_session_max_entries(env: Dict[str, str] | None = None) -> int:
    return max(_int(env, "SESSION_MAX_ENTRIES", _DEFAULT_SESSION_MAX_ENTRIES), 1)


def is_grades_voice_sticky(env: Dict[str, str] | None = None) -> bool:
    """Keep voice mode on after a spoken grades answer (legacy behavior)."""

    return _flag(env, "GRADES_VOICE_STICKY", _DEFAULT_GRADES_VOICE_STICKY)


# ---------------------------------------------------------------------------
# Speech
# ---------------------------------------------------------------------------
def get_llm_api_key(env: Dict[str, str] | None = None) -> str | None:
    """Return the OpenAI API key used for speech synthesis and transcription.

    Args:
        env: Optional mapping used instead of ``os.environ`` to simplify testing.

    Returns:
        The API key string if present, otherwise ``None``.
    """

    return _source(env).get("OPENAI_API_KEY")


def get_voice_language(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("VOICE_LANGUAGE", _DEFAULT_VOICE_LANGUAGE)


def get_tts_model(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("TTS_MODEL", _DEFAULT_TTS_MODEL)


def get_tts_voice(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("TTS_VOICE", _DEFAULT_TTS_VOICE)


def get_speech_to_text_model(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("SPEECH_TO_TEXT_MODEL", _DEFAULT_SPEECH_TO_TEXT_MODEL)


def get_audio_dir(env: Dict[str, str] | None = None) -> Path:
    """Return where synthesized replies are written (served under ``/audio``)."""

    override = _source(env).get("AUDIO_DIR")
    return Path(override) if override else Path(_DEFAULT_AUDIO_DIR)


def get_audio_max_age_seconds(env: Dict[str, str] | None = None) -> int:
    """Return how long synthesized replies are kept on disk (0 keeps them forever)."""

    return max(_int(env, "AUDIO_MAX_AGE_SECONDS", _DEFAULT_AUDIO_MAX_AGE_SECONDS), 0)


def get_public_base_url(env: Dict[str, str] | None = None) -> str:
    """Return the externally reachable base URL used to build audio links."""

    return _source(env).get("PUBLIC_BASE_URL", "").rstrip("/")


# ---------------------------------------------------------------------------
# Messaging transport and web server
# ---------------------------------------------------------------------------
def get_twilio_account_sid(env: Dict[str, str] | None = None) -> str | None:
    return _source(env).get("TWILIO_ACCOUNT_SID")


def get_twilio_auth_token(env: Dict[str, str] | None = None) -> str | None:
    return _source(env).get("TWILIO_AUTH_TOKEN")


def get_web_host(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("WEB_HOST", _DEFAULT_WEB_HOST)


def get_web_port(env: Dict[str, str] | None = None) -> int:
    value = _int(env, "PORT", _int(env, "WEB_PORT", _DEFAULT_WEB_PORT))
    return value if 0 < value <= 65535 else _DEFAULT_WEB_PORT
