"""
auth/sessions.py -- Server-side session storage with expiry (SessionStore).

SessionStore is the contract; InMemorySessionStore is the only backend. The
app builds one in create_app() and hands the same instance to
SessionMiddleware, AuthService and the sweep task -- there is no module-level
session map.

Limitation: InMemorySessionStore lives and dies with the process. Restarting
the server logs everyone out, and two server processes do not see each
other's sessions. A shared backend (e.g. Redis) would implement the same
set/get/delete/sweep contract; nothing else would change.

Usage:
    store = InMemorySessionStore()
    store.set(record.session_id, record, ttl=86400)
    store.get(record.session_id)      # SessionRecord or None once expired
    store.sweep()                     # call periodically to trim old entries
"""

from __future__ import annotations

import abc
import dataclasses
import logging
import threading
import time
from collections.abc import Callable

from auth.models import SessionRecord

logger = logging.getLogger("reelguard.sessions")


class SessionStore(abc.ABC):
    @abc.abstractmethod
    def set(self, session_id: str, record: SessionRecord, ttl: float) -> SessionRecord:
        """Store record under session_id for ttl seconds. Returns the stamped record."""

    @abc.abstractmethod
    def get(self, session_id: str) -> SessionRecord | None:
        """Return the live record, or None if absent or expired."""

    @abc.abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove session_id. Returns True if something was removed."""

    @abc.abstractmethod
    def sweep(self) -> int:
        """Remove every expired record. Returns the number removed."""

    @abc.abstractmethod
    def __len__(self) -> int: ...


class InMemorySessionStore(SessionStore):
    """Dict-backed store guarded by a single lock.

    Sync route handlers run in Starlette's thread pool and the sweep runs via
    asyncio.to_thread, so every access takes the lock. Records are frozen
    dataclasses: a reader gets either the old or the new record, never a mix.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, SessionRecord] = {}

    def set(self, session_id: str, record: SessionRecord, ttl: float) -> SessionRecord:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        stamped = dataclasses.replace(record, expires_at=self._clock() + ttl)
        with self._lock:
            self._records[session_id] = stamped
        return stamped

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if record.expires_at <= self._clock():
                del self._records[session_id]
                return None
            return record

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._records.pop(session_id, None) is not None

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, record in self._records.items() if record.expires_at <= now]
            for sid in expired:
                del self._records[sid]
            remaining = len(self._records)
        logger.info("Swept %d expired sessions. Active sessions: %d", len(expired), remaining)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
