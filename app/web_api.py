"""FastAPI application exposing the assistant to WhatsApp (Twilio) and JSON clients."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
from uuid import uuid4
from xml.sax.saxutils import escape

from fastapi import FastAPI, Form, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from app.config import (
    get_audio_dir,
    get_twilio_account_sid,
    get_twilio_auth_token,
    get_voice_language,
)
from app.main import build_orchestrator, build_speech_service, configure_logging
from core import messages
from core.orchestrator import Orchestrator
from core.response_composer import Response as AssistantResponse
from core.response_composer import TextResponse, VoiceResponse, response_payload
from tools.speech import SpeechServiceError, download_media, infer_extension

logger = logging.getLogger(__name__)

TWIML_MEDIA_TYPE = "application/xml"

MediaFetcher = Callable[..., Tuple[bytes, Optional[str]]]


class Transcriber(Protocol):
    def transcribe(self, payload: bytes, filename: str, lang: str = "fr") -> str:
        ...


class ChatRequest(BaseModel):
    sender_id: str = Field(..., min_length=1)
    message: str


class SenderRequest(BaseModel):
    sender_id: str = Field(..., min_length=1)


def render_twiml(reply: AssistantResponse) -> str:
    """Inline TwiML answer: one ``<Message>``, plus ``<Media>`` for a reachable audio clip."""

    parts = [f"<Body>{escape(reply.text)}</Body>"]
    if isinstance(reply, VoiceResponse) and reply.audio.url:
        parts.append(f"<Media>{escape(reply.audio.url)}</Media>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{''.join(parts)}</Message></Response>"
    )


def create_app(
    orchestrator: Optional[Orchestrator] = None,
    *,
    transcriber: Optional[Transcriber] = None,
    media_fetcher: MediaFetcher = download_media,
    media_auth: Optional[Tuple[str, str]] = None,
    audio_dir: Optional[Path] = None,
    voice_language: Optional[str] = None,
) -> FastAPI:
    """WHAT: instantiate FastAPI around the assistant.

    HOW: accept dependency overrides (tests), otherwise build the same stack
    as the CLI, keep collaborators on ``app.state``, mount the synthesized
    audio directory under ``/audio`` and register the routes. Handlers are
    plain ``def`` functions so concurrent senders run on the thread pool.
    """
    if orchestrator is None:
        speech = build_speech_service()
        orch = build_orchestrator(speech=speech)
        transcriber = transcriber or speech
    else:
        orch = orchestrator
    if media_auth is None:
        sid, token = get_twilio_account_sid(), get_twilio_auth_token()
        media_auth = (sid, token) if sid and token else None
    audio_root = audio_dir or get_audio_dir()

    app = FastAPI(title="School Assistant API", version="1.0.0")
    app.state.orchestrator = orch
    app.state.transcriber = transcriber
    app.state.media_fetcher = media_fetcher
    app.state.media_auth = media_auth
    app.state.voice_language = voice_language or get_voice_language()
    app.state.audio_dir = audio_root

    app.mount("/audio", StaticFiles(directory=audio_root, check_dir=False), name="audio")

    def _transcribe_media(url: str, content_type: Optional[str]) -> str:
        if app.state.transcriber is None:
            raise SpeechServiceError("No transcription service is configured.")
        payload, fetched_type = app.state.media_fetcher(url, auth=app.state.media_auth)
        filename = f"voice_{uuid4().hex}{infer_extension(None, content_type or fetched_type)}"
        return app.state.transcriber.transcribe(payload, filename, app.state.voice_language)

    @app.get("/api/health")
    def health_check() -> Dict[str, Any]:
        """Inexpensive uptime probe that never touches the assistant."""
        return {
            "status": "ok",
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }

    # WHAT: Twilio WhatsApp webhook answered inline with TwiML.
    # HOW: audio notes are downloaded and transcribed first, then everything goes through ``handle_message``.
    @app.post("/webhook")
    def whatsapp_webhook(
        From: str = Form(...),
        Body: str = Form(""),
        NumMedia: int = Form(0),
        MediaContentType0: Optional[str] = Form(None),
        MediaUrl0: Optional[str] = Form(None),
    ) -> Response:
        is_audio = NumMedia > 0 and bool(MediaUrl0) and (MediaContentType0 or "").lower().startswith("audio")
        if is_audio:
            try:
                transcript = _transcribe_media(MediaUrl0, MediaContentType0)
            except SpeechServiceError as exc:
                logger.error("Voice note could not be transcribed: %s", exc)
                reply: AssistantResponse = TextResponse(messages.TRANSCRIPTION_FAILED)
            else:
                logger.info("Transcribed voice note (%d chars)", len(transcript))
                reply = app.state.orchestrator.handle_message(From, transcript, voice_note=True)
        else:
            reply = app.state.orchestrator.handle_message(From, Body)
        return Response(content=render_twiml(reply), media_type=TWIML_MEDIA_TYPE)

    @app.post("/api/chat")
    def chat(payload: ChatRequest) -> Dict[str, Any]:
        reply = app.state.orchestrator.handle_message(payload.sender_id, payload.message)
        return response_payload(reply)

    @app.post("/api/voice-mode")
    def voice_mode(payload: SenderRequest) -> Dict[str, Any]:
        return {"type": "text", "text": app.state.orchestrator.request_voice(payload.sender_id)}

    @app.post("/api/session/clear")
    def clear_session(payload: SenderRequest) -> Dict[str, Any]:
        app.state.orchestrator.clear_session(payload.sender_id)
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    from app.config import get_web_host, get_web_port

    configure_logging()
    uvicorn.run(
        "app.web_api:app",
        host=get_web_host(),
        port=get_web_port(),
        reload=False,
    )
