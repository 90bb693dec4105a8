"""
Session state storage.

``SessionStore`` is the interface the rest of the service depends on.
``FallbackSessionStore`` keeps an in-process map in front of a primary session
backend that may drop entries (the cookie session layer does not reliably
retain writes made from the websocket side). The map is authoritative when it
holds a record.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

from resume_achievements.core.config import SessionSettings
from resume_achievements.core.errors import SessionMissError
from resume_achievements.models.session import SessionField, SessionRecord

logger = logging.getLogger(__name__)

ExpiryListener = Callable[[str], None]
FileReleaser = Callable[[SessionRecord], int]


class InMemorySessionBackend:
    """Primary session backend with a rolling TTL.

    Expired ids are only reported when ``purge_expired`` runs, mirroring how
    cookie-session stores prune lazily.
    """

    def __init__(self, max_age_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._max_age = max_age_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, SessionRecord | None]] = {}
        self._listeners: list[ExpiryListener] = []
        self._lock = threading.Lock()

    def add_expiry_listener(self, listener: ExpiryListener) -> None:
        self._listeners.append(listener)

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            entry = self._entries.get(session_id)
        if entry is None:
            return None
        expires_at, record = entry
        if expires_at <= self._clock():
            return None
        return record

    def set(self, session_id: str, record: SessionRecord | None = None) -> None:
        with self._lock:
            existing = self._entries.get(session_id)
            if record is None and existing is not None:
                record = existing[1]
            self._entries[session_id] = (self._clock() + self._max_age, record)

    def touch(self, session_id: str) -> None:
        self.set(session_id)

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def purge_expired(self) -> list[str]:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, (expires_at, _) in self._entries.items() if expires_at <= now]
            for sid in expired:
                del self._entries[sid]
        for sid in expired:
            for listener in self._listeners:
                try:
                    listener(sid)
                except Exception:  # noqa: BLE001 - one bad listener must not stop the purge
                    logger.exception("Session expiry listener failed", extra={"session_id": sid})
        return expired


class SessionStore(ABC):
    """Storage contract for per-session pipeline state."""

    @abstractmethod
    def get(self, session_id: str) -> SessionRecord | None: ...

    @abstractmethod
    def save(self, record: SessionRecord) -> None: ...

    @abstractmethod
    def destroy(self, session_id: str) -> None: ...

    @abstractmethod
    def find_by_predicate(self, field: SessionField) -> SessionRecord | None: ...

    @abstractmethod
    def handle_expired(self, session_id: str) -> None: ...

    @abstractmethod
    def destroy_later(self, session_id: str, delay_seconds: float) -> None: ...

    def touch(self, session_id: str) -> None:
        """Mark a session as active; backends without TTLs ignore this."""

    def resolve(self, session_id: str | None, field: SessionField) -> SessionRecord:
        """Return the caller's record holding ``field``, recovering if needed."""
        record = self.get(session_id) if session_id else None
        if record is not None and record.has(field):
            return record
        recovered = self.find_by_predicate(field)
        if recovered is not None:
            logger.warning(
                "Recovered session state from another identity",
                extra={"requested": session_id, "recovered": recovered.session_id, "field": field},
            )
            return recovered
        raise SessionMissError(_MISSING_MESSAGES[field])


_MISSING_MESSAGES: dict[str, str] = {
    "dataset": "No CSV data found. Please upload a file first.",
    "summary": "No processed data available. Please process a file first.",
    "final": "No processed data available",
}


class FallbackSessionStore(SessionStore):
    """In-process map layered over a primary backend that may lose entries."""

    def __init__(
        self,
        primary: InMemorySessionBackend,
        *,
        release_files: FileReleaser | None = None,
        recovery_enabled: bool = True,
        expiry_grace_seconds: float = 600.0,
    ) -> None:
        self._primary = primary
        self._release_files = release_files
        self._recovery_enabled = recovery_enabled
        self._grace = expiry_grace_seconds
        self._records: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()
        primary.add_expiry_listener(self.handle_expired)

    @classmethod
    def from_settings(
        cls,
        settings: SessionSettings,
        *,
        release_files: FileReleaser | None = None,
    ) -> "FallbackSessionStore":
        return cls(
            InMemorySessionBackend(settings.max_age_seconds),
            release_files=release_files,
            recovery_enabled=settings.fallback_recovery,
            expiry_grace_seconds=settings.expiry_grace_seconds,
        )

    @property
    def primary(self) -> InMemorySessionBackend:
        return self._primary

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            record = self._records.get(session_id)
        if record is not None:
            return record
        return self._primary.get(session_id)

    def save(self, record: SessionRecord) -> None:
        try:
            record.touch()
            with self._lock:
                self._records[record.session_id] = record
            self._primary.set(record.session_id, record)
        except Exception:  # noqa: BLE001 - caching must not break the caller's flow
            logger.exception("Failed to save session", extra={"session_id": record.session_id})

    def touch(self, session_id: str) -> None:
        self._primary.touch(session_id)

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)
        self._primary.destroy(session_id)

    def find_by_predicate(self, field: SessionField) -> SessionRecord | None:
        if not self._recovery_enabled:
            return None
        with self._lock:
            candidates = [record for record in self._records.values() if record.has(field)]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.updated_at)

    def handle_expired(self, session_id: str) -> None:
        with self._lock:
            record = self._records.get(session_id)
        if record is None:
            return
        logger.info(
            "Session expired; releasing data after grace period",
            extra={"session_id": session_id, "grace_seconds": self._grace},
        )
        stamp = record.updated_at
        self._schedule(self._grace, lambda: self._release_if_unchanged(session_id, stamp))

    def destroy_later(self, session_id: str, delay_seconds: float) -> None:
        self._schedule(delay_seconds, lambda: self.release(session_id))

    def release(self, session_id: str) -> None:
        """Release a session's files and forget it. Idempotent."""
        with self._lock:
            record = self._records.get(session_id)
        if record is None:
            record = self._primary.get(session_id)
        if record is not None and self._release_files is not None:
            self._release_files(record)
        self.destroy(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _release_if_unchanged(self, session_id: str, stamp: object) -> None:
        with self._lock:
            record = self._records.get(session_id)
        if record is None or record.updated_at != stamp:
            return
        self.release(session_id)

    @staticmethod
    def _schedule(delay_seconds: float, callback: Callable[[], None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; running deferred cleanup now")
            callback()
            return
        loop.call_later(max(0.0, delay_seconds), callback)


__all__ = [
    "FallbackSessionStore",
    "InMemorySessionBackend",
    "SessionStore",
]
