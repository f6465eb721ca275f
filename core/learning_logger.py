"""Structured per-turn logging for the parent assistant.

Each handled message is appended to a JSONL file as a ``TurnRecord`` so the
conversation flow (intent, entities, dialogue outcome, reply) can be replayed
and audited. The sender id is stored hashed, free-text fields are scrubbed of
PII before they hit the disk, and the file is rotated by size.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Pattern, Tuple

from core.text_utils import hash_text

logger = logging.getLogger(__name__)

# Applied in this order: card numbers before the looser phone pattern.
REDACTION_PATTERNS: Dict[str, Pattern[str]] = {
    "credit_card": re.compile(r"\b(?:\d[ -]*){13,19}\b"),
    "email": re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE),
    "phone": re.compile(r"(?:\+?\d[\d\s\-().]{6,}\d)"),
    "url": re.compile(r"https?://[^\s]+", re.IGNORECASE),
}
SCRUBBED_FIELDS = frozenset({"user_text", "response_text", "entities"})


@dataclass
class TurnRecord:
    """WHAT: structured schema for a single handled message.

    HOW: dataclass of the turn attributes plus a ``new`` factory that stamps
    the timestamp and hashes the sender id so call sites never see either.
    """

    timestamp: str
    sender_hash: str
    user_text: str
    intent: str
    entities: Dict[str, Any] = field(default_factory=dict)
    outcome: str = "unknown"
    response_text: str = ""
    voice: bool = False
    latency_ms: int | None = None

    @classmethod
    def new(
        cls,
        *,
        sender_id: str,
        user_text: str,
        intent: str,
        entities: Dict[str, Any] | None = None,
        outcome: str = "unknown",
        response_text: str = "",
        voice: bool = False,
        latency_ms: int | None = None,
    ) -> "TurnRecord":
        return cls(
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            sender_hash=hash_text(sender_id),
            user_text=user_text,
            intent=intent,
            entities=dict(entities or {}),
            outcome=outcome,
            response_text=response_text,
            voice=voice,
            latency_ms=latency_ms,
        )


class Redactor:
    """Replace PII substrings with ``[REDACTED_<KIND>]`` in nested payloads."""

    def __init__(self, kinds: Iterable[str] | None = None) -> None:
        wanted = set(kinds) if kinds else set(REDACTION_PATTERNS)
        self._patterns: List[Tuple[str, Pattern[str]]] = [
            (f"[REDACTED_{kind.upper()}]", pattern)
            for kind, pattern in REDACTION_PATTERNS.items()
            if kind in wanted
        ]

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            for token, pattern in self._patterns:
                value = pattern.sub(token, value)
            return value
        if isinstance(value, dict):
            return {key: self.scrub(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.scrub(item) for item in value)
        return value


def rotate_file(path: Path, *, max_bytes: int, backup_count: int, incoming_bytes: int) -> None:
    """Make room for ``incoming_bytes`` by shifting ``path`` to ``path.1`` .. ``path.N``.

    With ``backup_count == 0`` the file is simply truncated. ``max_bytes <= 0``
    disables rotation.
    """

    if max_bytes <= 0 or not path.exists():
        return
    if path.stat().st_size + incoming_bytes <= max_bytes:
        return
    if backup_count <= 0:
        path.unlink()
        return
    for index in range(backup_count - 1, 0, -1):
        older = Path(f"{path}.{index}")
        if older.exists():
            older.replace(Path(f"{path}.{index + 1}"))
    path.replace(Path(f"{path}.1"))


class LearningLogger:
    """WHAT: JSONL writer for turn records.

    WHY: every reply must be traceable without leaking parents' contact data.
    HOW: scrub the free-text fields, rotate when the size limit would be
    crossed, then append one line; writes share a lock because senders are
    handled on different threads.
    """

    def __init__(
        self,
        *,
        turn_log_path: Path,
        enabled: bool = True,
        redact: bool = True,
        patterns: Iterable[str] | None = None,
        max_bytes: int = 0,
        backup_count: int = 0,
    ) -> None:
        self._turn_log_path = Path(turn_log_path)
        self._enabled = enabled
        self._redactor = Redactor(patterns) if redact else None
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._write_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def turn_log_path(self) -> Path:
        return self._turn_log_path

    def log_turn(self, record: TurnRecord) -> None:
        """Append ``record`` to the turn log; write failures are logged, never raised."""

        if not self._enabled:
            return
        payload = asdict(record)
        if self._redactor:
            payload = {
                key: self._redactor.scrub(value) if key in SCRUBBED_FIELDS else value
                for key, value in payload.items()
            }
        line = json.dumps(payload, ensure_ascii=False) + "\n"
        try:
            with self._write_lock:
                self._turn_log_path.parent.mkdir(parents=True, exist_ok=True)
                rotate_file(
                    self._turn_log_path,
                    max_bytes=self._max_bytes,
                    backup_count=self._backup_count,
                    incoming_bytes=len(line.encode("utf-8")),
                )
                with self._turn_log_path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
        except OSError as exc:
            logger.warning("Could not write turn log %s: %s", self._turn_log_path, exc)


__all__ = ["LearningLogger", "Redactor", "TurnRecord", "rotate_file"]
