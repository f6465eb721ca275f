"""OpenAI-backed speech helpers: text-to-speech replies and Whisper transcripts."""

from __future__ import annotations

import io
import logging
import time
from pathlib import Path
from typing import Optional, Tuple
from uuid import uuid4

import requests
from openai import OpenAI

from core.response_composer import AudioClip

logger = logging.getLogger(__name__)

DEFAULT_TTS_MODEL = "tts-1"
DEFAULT_TTS_VOICE = "alloy"
DEFAULT_STT_MODEL = "whisper-1"
MEDIA_DOWNLOAD_TIMEOUT = 20
DEFAULT_AUDIO_MAX_AGE_SECONDS = 60 * 60
REPLY_GLOB = "reply_*.mp3"

_CONTENT_TYPE_EXTENSIONS = {
    "audio/ogg": ".ogg",
    "audio/opus": ".ogg",
    "audio/webm": ".webm",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/amr": ".amr",
    "audio/wav": ".wav",
}


class SpeechServiceError(Exception):
    """Raised when a synthesis, transcription or media download cannot complete."""


def infer_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    suffix = Path(filename or "").suffix if filename else ""
    if suffix:
        return suffix.lower()
    if content_type:
        base = content_type.split(";", 1)[0].strip().lower()
        return _CONTENT_TYPE_EXTENSIONS.get(base, ".ogg")
    return ".ogg"


class OpenAISpeechService:
    """Synthesizes replies into ``audio_dir`` and transcribes inbound voice notes."""

    def __init__(
        self,
        *,
        api_key: Optional[str],
        audio_dir: Path | str,
        public_base_url: str = "",
        tts_model: str = DEFAULT_TTS_MODEL,
        tts_voice: str = DEFAULT_TTS_VOICE,
        stt_model: str = DEFAULT_STT_MODEL,
        max_age_seconds: int = DEFAULT_AUDIO_MAX_AGE_SECONDS,
        client: Optional[OpenAI] = None,
    ) -> None:
        self._api_key = api_key
        self._audio_dir = Path(audio_dir)
        self._public_base_url = public_base_url.rstrip("/")
        self._tts_model = tts_model
        self._tts_voice = tts_voice
        self._stt_model = stt_model
        self._max_age_seconds = max(max_age_seconds, 0)
        self._client = client

    @property
    def audio_dir(self) -> Path:
        return self._audio_dir

    def _openai(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise SpeechServiceError("OPENAI_API_KEY is required for speech features.")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def synthesize(self, text: str, lang: str = "fr") -> AudioClip:
        """Render ``text`` to an mp3 clip and return where it can be fetched."""

        if not text or not text.strip():
            raise SpeechServiceError("Cannot synthesize an empty text.")
        client = self._openai()
        try:
            response = client.audio.speech.create(
                model=self._tts_model,
                voice=self._tts_voice,
                input=text,
            )
        except Exception as exc:  # pragma: no cover - network/SDK errors
            raise SpeechServiceError(f"Speech synthesis failed: {exc}") from exc

        self.prune_audio()
        filename = f"reply_{uuid4().hex}.mp3"
        path = self._audio_dir / filename
        try:
            self._audio_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(response.content)
        except OSError as exc:
            raise SpeechServiceError(f"Could not store synthesized audio: {exc}") from exc
        url = f"{self._public_base_url}/audio/{filename}" if self._public_base_url else None
        logger.info("Synthesized %d chars (%s) into %s", len(text), lang, path.name)
        return AudioClip(path=path, url=url)

    def prune_audio(self, now: Optional[float] = None) -> int:
        """Delete synthesized replies older than ``max_age_seconds``; return how many went.

        Other files in ``audio_dir`` are left alone. A zero max age disables pruning.
        """

        if self._max_age_seconds <= 0 or not self._audio_dir.is_dir():
            return 0
        cutoff = (time.time() if now is None else now) - self._max_age_seconds
        removed = 0
        for path in self._audio_dir.glob(REPLY_GLOB):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove stale audio %s: %s", path.name, exc)
        if removed:
            logger.info("Pruned %d stale audio replies from %s", removed, self._audio_dir)
        return removed

    def transcribe(self, payload: bytes, filename: str, lang: str = "fr") -> str:
        """Call OpenAI Whisper and return the transcript text."""

        if not payload:
            raise SpeechServiceError("Audio payload is empty.")
        client = self._openai()
        buffer = io.BytesIO(payload)
        buffer.name = filename
        try:
            response = client.audio.transcriptions.create(model=self._stt_model, file=buffer, language=lang)
        except Exception as exc:  # pragma: no cover - network/SDK errors
            raise SpeechServiceError(f"Transcription request failed: {exc}") from exc

        text: Optional[str]
        if isinstance(response, dict):
            text = response.get("text")
        else:
            text = getattr(response, "text", None)
        if not text:
            raise SpeechServiceError("Transcription response did not include text.")
        return str(text).strip()


def download_media(
    url: str,
    *,
    auth: Optional[Tuple[str, str]] = None,
    timeout: float = MEDIA_DOWNLOAD_TIMEOUT,
) -> Tuple[bytes, Optional[str]]:
    """Fetch an inbound media attachment (Twilio basic auth when ``auth`` is set)."""

    try:
        response = requests.get(url, auth=auth, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise SpeechServiceError(f"Could not download media: {exc}") from exc
    return response.content, response.headers.get("Content-Type")


__all__ = [
    "DEFAULT_AUDIO_MAX_AGE_SECONDS",
    "DEFAULT_STT_MODEL",
    "DEFAULT_TTS_MODEL",
    "DEFAULT_TTS_VOICE",
    "OpenAISpeechService",
    "SpeechServiceError",
    "download_media",
    "infer_extension",
]
