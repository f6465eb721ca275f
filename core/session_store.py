"""In-memory per-sender conversation state.

Sessions are created lazily, never persisted, and guarded by one mutex per
sender so a read-modify-write on a session is never interleaved with another
turn from the same sender. Different senders never wait on each other except
for the short critical section that looks up their entry.

Memory is bounded operationally: idle entries expire after ``ttl_seconds``
and the least recently used entries are evicted beyond ``max_entries``. An
entry that a turn is currently using is never evicted.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, Optional


@dataclass
class Session:
    selected_child_id: Optional[str] = None
    in_voice: bool = False
    voice_requested: bool = False
    last_message: Optional[str] = None

    def reset(self) -> None:
        self.selected_child_id = None
        self.in_voice = False
        self.voice_requested = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "selected_child_id": self.selected_child_id,
            "in_voice": self.in_voice,
            "voice_requested": self.voice_requested,
            "last_message": self.last_message,
        }


@dataclass
class _Entry:
    session: Session
    lock: threading.Lock = field(default_factory=threading.Lock)
    touched_at: float = 0.0
    users: int = 0


class SessionStore:
    """Keyed session map with per-sender serialization."""

    def __init__(
        self,
        *,
        ttl_seconds: float = 24 * 60 * 60,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()

    def _entry(self, sender_id: str) -> _Entry:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(sender_id)
            if entry is not None and self._expired(entry, now) and not entry.users:
                del self._entries[sender_id]
                entry = None
            if entry is None:
                entry = _Entry(session=Session())
                self._entries[sender_id] = entry
            entry.touched_at = now
            entry.users += 1
            self._entries.move_to_end(sender_id)
            self._evict(now, keep=sender_id)
            return entry

    def _expired(self, entry: _Entry, now: float) -> bool:
        return self._ttl_seconds > 0 and now - entry.touched_at > self._ttl_seconds

    def _evict(self, now: float, *, keep: str) -> None:
        for key in list(self._entries.keys()):
            if key == keep:
                continue
            if len(self._entries) <= self._max_entries:
                expired = self._expired(self._entries[key], now)
                if not expired:
                    break
            entry = self._entries[key]
            if entry.users:
                continue
            del self._entries[key]

    @contextmanager
    def locked(self, sender_id: str) -> Iterator[Session]:
        """Hold the sender's lock and yield the live session for mutation."""

        entry = self._entry(sender_id)
        try:
            with entry.lock:
                yield entry.session
        finally:
            with self._lock:
                entry.users -= 1
                entry.touched_at = self._clock()

    def get(self, sender_id: str) -> Session:
        """Return a snapshot of the sender's session, creating it if needed."""

        with self.locked(sender_id) as session:
            return replace(session)

    def put(self, sender_id: str, session: Session) -> None:
        with self.locked(sender_id) as current:
            current.selected_child_id = session.selected_child_id
            current.in_voice = session.in_voice
            current.voice_requested = session.voice_requested
            current.last_message = session.last_message

    def clear(self, sender_id: str) -> None:
        """Reset selection and voice flags without discarding the entry."""

        with self.locked(sender_id) as session:
            session.reset()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, sender_id: object) -> bool:
        with self._lock:
            return sender_id in self._entries


__all__ = ["Session", "SessionStore"]
