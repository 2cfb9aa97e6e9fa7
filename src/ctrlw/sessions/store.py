"""Session storage.

The store is the only shared mutable resource. Correctness relies on three
primitives every implementation must provide atomically:

- insert with uniqueness on (pairing code among active sessions)
- numeric increment (message/file counters, with an activity touch)
- compare-and-swap replace keyed on the session's version
"""

import asyncio
import logging
from typing import Optional, Protocol

from ctrlw.errors import ConflictError, NotFoundError
from ctrlw.sessions.models import PairingSession, SessionStatus

logger = logging.getLogger(__name__)

COUNTER_FIELDS = frozenset({"message_count", "file_count"})


class SessionStore(Protocol):
    """Protocol for session persistence."""

    async def insert(self, session: PairingSession) -> PairingSession:
        """Insert a new session; ConflictError if its code is held."""
        ...

    async def get(self, session_id: str) -> Optional[PairingSession]:
        """Get a session by id."""
        ...

    async def find_active_by_code(self, code: str) -> Optional[PairingSession]:
        """Get the active session holding a pairing code."""
        ...

    async def replace(self, session: PairingSession, expected_version: int) -> bool:
        """Replace a session only if its stored version still matches."""
        ...

    async def increment(self, session_id: str, field: str, now: float) -> int:
        """Atomically increment a counter and touch last activity.

        NotFoundError if the session is missing or no longer live at ``now``.
        """
        ...

    async def touch(self, session_id: str, now: float) -> None:
        """Atomically set last activity; same liveness rule as increment."""
        ...

    async def delete(self, session_id: str) -> bool:
        """Delete a session."""
        ...

    async def list_reapable(self, now: float) -> list[PairingSession]:
        """List sessions past their deadline or already EXPIRED, any status."""
        ...

    async def list_active(self) -> list[PairingSession]:
        """List sessions stored with ACTIVE status."""
        ...


class MemorySessionStore:
    """In-process session store.

    A single asyncio.Lock serialises every operation, which gives each
    method the atomicity the SessionStore protocol requires. Sessions are
    copied in and out so callers never alias stored state.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, PairingSession] = {}
        self._active_codes: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def _index(self, session: PairingSession) -> None:
        if session.status == SessionStatus.ACTIVE:
            self._active_codes[session.pairing_code] = session.session_id
        elif self._active_codes.get(session.pairing_code) == session.session_id:
            del self._active_codes[session.pairing_code]

    async def insert(self, session: PairingSession) -> PairingSession:
        async with self._lock:
            if session.session_id in self._sessions:
                raise ConflictError(f"Session {session.session_id[:8]} already exists")
            if session.pairing_code in self._active_codes:
                raise ConflictError("Pairing code already in use")

            stored = session.copy()
            self._sessions[stored.session_id] = stored
            self._index(stored)
            return stored.copy()

    async def get(self, session_id: str) -> Optional[PairingSession]:
        async with self._lock:
            session = self._sessions.get(session_id)
            return session.copy() if session else None

    async def find_active_by_code(self, code: str) -> Optional[PairingSession]:
        async with self._lock:
            session_id = self._active_codes.get(code)
            if session_id is None:
                return None
            return self._sessions[session_id].copy()

    async def replace(self, session: PairingSession, expected_version: int) -> bool:
        async with self._lock:
            current = self._sessions.get(session.session_id)
            if current is None or current.version != expected_version:
                return False

            stored = session.copy()
            stored.version = expected_version + 1
            self._sessions[stored.session_id] = stored
            self._index(stored)
            session.version = stored.version
            return True

    async def increment(self, session_id: str, field: str, now: float) -> int:
        if field not in COUNTER_FIELDS:
            raise ValueError(f"Unknown counter: {field}")
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_live(now):
                raise NotFoundError("Session not found")
            value = getattr(session, field) + 1
            setattr(session, field, value)
            session.last_activity = now
            return value

    async def touch(self, session_id: str, now: float) -> None:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_live(now):
                raise NotFoundError("Session not found")
            session.last_activity = now

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False
            if self._active_codes.get(session.pairing_code) == session_id:
                del self._active_codes[session.pairing_code]
            return True

    async def list_reapable(self, now: float) -> list[PairingSession]:
        async with self._lock:
            return [s.copy() for s in self._sessions.values() if s.is_expired(now)]

    async def list_active(self) -> list[PairingSession]:
        async with self._lock:
            return [
                s.copy()
                for s in self._sessions.values()
                if s.status == SessionStatus.ACTIVE
            ]

    def __len__(self) -> int:
        return len(self._sessions)
