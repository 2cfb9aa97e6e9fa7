"""Pairing session lifecycle management.

SessionManager runs the session state machine against a SessionStore.
Participant changes are applied as read, mutate, compare-and-swap; a lost
race re-reads and re-applies instead of overwriting a concurrent join or
leave. Counter updates go straight to the store's atomic increment.
"""

import logging
import time
from typing import Callable, Optional

from ctrlw.errors import NotFoundError, TransientStoreError
from ctrlw.retry import StoreCall, call_store
from ctrlw.sessions.allocator import PairingCodeAllocator
from ctrlw.sessions.models import PairingSession, SessionStatus
from ctrlw.sessions.store import SessionStore
from ctrlw.sessions.validation import (
    validate_connection_id,
    validate_device_label,
    validate_minutes,
    validate_pairing_code,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 30


class SessionManager:
    """Creates pairing sessions and mutates their participants and counters."""

    # Re-read/re-apply rounds before a contended update gives up
    MAX_CAS_ATTEMPTS = 5

    def __init__(
        self,
        store: SessionStore,
        allocator: PairingCodeAllocator,
        ttl_minutes: float = DEFAULT_TTL_MINUTES,
        clock: Callable[[], float] = time.time,
        call: StoreCall = call_store,
    ):
        """Initialize session manager.

        Args:
            store: Session store providing the atomic primitives.
            allocator: Pairing code allocator.
            ttl_minutes: Lifetime of a new session.
            clock: Returns the current Unix time (injectable for testing).
            call: Wraps every store call with timeout and transient retry.
        """
        self._store = store
        self._allocator = allocator
        self._ttl_minutes = validate_minutes(ttl_minutes)
        self._clock = clock
        self._call = call

    @property
    def ttl_minutes(self) -> float:
        return self._ttl_minutes

    async def create(self, owner_id: Optional[str] = None) -> PairingSession:
        """Create an active session under a freshly allocated code.

        Raises:
            ExhaustionError: If no free code was found within the retry budget.
        """

        async def claim(code: str) -> PairingSession:
            session = PairingSession.create(
                code, self._ttl_minutes, owner_id=owner_id, now=self._clock()
            )
            return await self._call(lambda: self._store.insert(session))

        session = await self._allocator.allocate(claim)
        logger.info(f"Session created: {session.session_id[:8]}...")
        return session

    async def get(self, session_id: str) -> PairingSession:
        """Get a session that has not expired.

        Raises:
            NotFoundError: If the session is missing or logically expired.
        """
        session = await self._call(lambda: self._store.get(session_id))
        if session is None or session.is_expired(self._clock()):
            raise NotFoundError("Session not found")
        return session

    async def find_by_code(self, code: str) -> PairingSession:
        """Resolve a pairing code to its live session.

        Raises:
            ValidationError: If the code is malformed.
            NotFoundError: If no live session holds the code.
        """
        validate_pairing_code(code)
        session = await self._call(lambda: self._store.find_active_by_code(code))
        if session is None or not session.is_live(self._clock()):
            raise NotFoundError("Session not found")
        return session

    async def list_active(self) -> list[PairingSession]:
        """List live sessions."""
        now = self._clock()
        sessions = await self._call(self._store.list_active)
        return [s for s in sessions if s.is_live(now)]

    async def add_participant(
        self,
        session_id: str,
        connection_id: str,
        device_label: Optional[str] = "Unknown",
    ) -> PairingSession:
        """Join a device to a session (idempotent per connection id).

        Raises:
            ValidationError: If the connection id is malformed.
            NotFoundError: If the session is missing, expired or closed.
        """
        validate_connection_id(connection_id)
        label = validate_device_label(device_label)

        def apply(session: PairingSession, now: float) -> bool:
            if not session.is_live(now):
                raise NotFoundError("Session not found")
            return session.add_participant(connection_id, label, now)

        session, changed = await self._update(session_id, apply)
        if changed:
            logger.debug(
                f"Participant joined {session_id[:8]}... "
                f"({len(session.participants)} connected)"
            )
        return session

    async def remove_participant(
        self, session_id: str, connection_id: str
    ) -> Optional[PairingSession]:
        """Remove a device; closes the session when the last one leaves.

        Disconnects are best-effort: an unknown connection id or a session
        that is already gone is a no-op. A session past its deadline counts
        as gone whether or not the reaper has deleted it yet.

        Returns:
            The session after the change, or None if it no longer exists.
        """
        validate_connection_id(connection_id)

        def apply(session: PairingSession, now: float) -> bool:
            return session.remove_participant(connection_id, now)

        try:
            session, changed = await self._update(session_id, apply)
        except NotFoundError:
            return None

        if not changed and session.is_expired(self._clock()):
            return None
        if changed and session.status == SessionStatus.CLOSED:
            logger.info(f"Session closed: {session_id[:8]}...")
        return session

    async def extend_expiration(self, session_id: str, minutes: float) -> PairingSession:
        """Push the deadline to now + minutes.

        Silently leaves terminal or logically expired sessions unchanged, and
        never moves a deadline earlier; check ``status`` and ``expires_at``
        on the result before relying on the extension.

        Raises:
            ValidationError: If minutes is not positive.
            NotFoundError: If the session does not exist.
        """
        minutes = validate_minutes(minutes)

        def apply(session: PairingSession, now: float) -> bool:
            return session.extend_expiration(minutes, now)

        session, _ = await self._update(session_id, apply)
        return session

    async def touch_activity(self, session_id: str) -> None:
        """Record activity on a session."""
        now = self._clock()
        await self._call(lambda: self._store.touch(session_id, now))

    async def increment_message_count(self, session_id: str) -> int:
        """Count a new message; returns the updated count."""
        now = self._clock()
        return await self._call(
            lambda: self._store.increment(session_id, "message_count", now)
        )

    async def increment_file_count(self, session_id: str) -> int:
        """Count a new file; returns the updated count."""
        now = self._clock()
        return await self._call(
            lambda: self._store.increment(session_id, "file_count", now)
        )

    async def _update(
        self,
        session_id: str,
        apply: Callable[[PairingSession, float], bool],
    ) -> tuple[PairingSession, bool]:
        """Read, mutate and conditionally replace a session.

        Args:
            session_id: Session to update.
            apply: Mutates the session in place, returns True if it changed.

        Returns:
            (session, changed) where session reflects the stored state.

        Raises:
            NotFoundError: If the session does not exist.
            TransientStoreError: If the update lost every CAS round.
        """
        for _ in range(self.MAX_CAS_ATTEMPTS):
            session = await self._call(lambda: self._store.get(session_id))
            if session is None:
                raise NotFoundError("Session not found")

            expected_version = session.version
            if not apply(session, self._clock()):
                return session, False

            replaced = await self._call(
                lambda: self._store.replace(session, expected_version)
            )
            if replaced:
                return session, True

            logger.debug(f"Concurrent update on {session_id[:8]}..., retrying")

        raise TransientStoreError(
            f"Session {session_id[:8]}... is too contended, try again"
        )
