"""Pairing session state machine.

A session is ACTIVE from creation until it either expires (its deadline
passes, enforced lazily by readers and physically by the reaper) or closes
(its last participant leaves). EXPIRED and CLOSED are terminal.

All methods are pure with respect to time: callers pass ``now`` so the
store-backed manager and the tests control the clock.
"""

import copy
import math
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SessionStatus(Enum):
    """Pairing session states."""

    ACTIVE = "active"
    EXPIRED = "expired"
    CLOSED = "closed"


TERMINAL_STATES = frozenset({SessionStatus.EXPIRED, SessionStatus.CLOSED})


@dataclass
class Participant:
    """A device connected to a session.

    Attributes:
        connection_id: Opaque transport connection id (unique per session).
        device_label: Free-form device description.
        joined_at: Unix timestamp of the first join.
    """

    connection_id: str
    device_label: str = "Unknown"
    joined_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "device_label": self.device_label,
            "joined_at": self.joined_at,
        }


@dataclass
class PairingSession:
    """Represents a pairing session.

    Attributes:
        session_id: Unique session identifier (32 hex chars).
        pairing_code: 6-digit code, unique among active sessions.
        expires_at: Unix timestamp after which the session is expired.
        owner_id: Identity that created the session, if logged in.
        participants: Connected devices, in join order.
        status: Current lifecycle state.
        message_count: Messages sent in this session.
        file_count: Files shared in this session.
        created_at: Unix timestamp of creation.
        last_activity: Unix timestamp of the last join/leave/message/file.
        version: Store revision, bumped on every conditional replace.
    """

    session_id: str
    pairing_code: str
    expires_at: float
    owner_id: Optional[str] = None
    participants: list[Participant] = field(default_factory=list)
    status: SessionStatus = SessionStatus.ACTIVE
    message_count: int = 0
    file_count: int = 0
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    version: int = 0

    @classmethod
    def create(
        cls,
        pairing_code: str,
        ttl_minutes: float,
        owner_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> "PairingSession":
        """Create a new active session expiring ``ttl_minutes`` from now.

        Raises:
            ValueError: If ttl_minutes is not a positive finite number.
        """
        if not math.isfinite(ttl_minutes) or ttl_minutes <= 0:
            raise ValueError("ttl_minutes must be positive")
        now = time.time() if now is None else now
        return cls(
            session_id=secrets.token_hex(16),
            pairing_code=pairing_code,
            expires_at=now + ttl_minutes * 60,
            owner_id=owner_id,
            created_at=now,
            last_activity=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if the deadline has passed.

        Must be consulted on every read: the reaper runs on a coarse
        interval, so an expired session can still be stored as ACTIVE.
        """
        if self.status == SessionStatus.EXPIRED:
            return True
        now = time.time() if now is None else now
        return self.expires_at < now

    def is_live(self, now: Optional[float] = None) -> bool:
        """Active and not logically expired."""
        return self.status == SessionStatus.ACTIVE and not self.is_expired(now)

    def has_participant(self, connection_id: str) -> bool:
        return any(p.connection_id == connection_id for p in self.participants)

    def touch_activity(self, now: float) -> None:
        self.last_activity = now

    def add_participant(
        self, connection_id: str, device_label: str, now: float
    ) -> bool:
        """Append a participant.

        Idempotent: an existing connection id is left untouched, including
        its original join time.

        Returns:
            True if a participant was added, False otherwise.
        """
        if not self.is_live(now):
            return False
        if self.has_participant(connection_id):
            return False

        self.participants.append(
            Participant(
                connection_id=connection_id,
                device_label=device_label,
                joined_at=now,
            )
        )
        self.touch_activity(now)
        return True

    def remove_participant(self, connection_id: str, now: float) -> bool:
        """Remove a participant, closing the session once it is empty.

        Returns:
            True if the session changed, False otherwise.
        """
        if not self.is_live(now):
            return False

        remaining = [p for p in self.participants if p.connection_id != connection_id]
        if len(remaining) == len(self.participants):
            return False

        self.participants = remaining
        self.touch_activity(now)
        if not self.participants:
            self.status = SessionStatus.CLOSED
        return True

    def extend_expiration(self, minutes: float, now: float) -> bool:
        """Reset the deadline to ``now + minutes``.

        The deadline only ever moves forward: a reset that would not land
        after the current deadline is refused. Also a no-op on terminal or
        logically expired sessions; callers should check the returned flag
        or the state before relying on the extension.
        """
        if not math.isfinite(minutes) or minutes <= 0 or not self.is_live(now):
            return False
        deadline = now + minutes * 60
        if not math.isfinite(deadline) or deadline <= self.expires_at:
            return False
        self.expires_at = deadline
        self.touch_activity(now)
        return True

    def mark_expired(self, now: float) -> bool:
        """Transition ACTIVE -> EXPIRED once the deadline has passed."""
        if self.status != SessionStatus.ACTIVE or not self.is_expired(now):
            return False
        self.status = SessionStatus.EXPIRED
        return True

    def copy(self) -> "PairingSession":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Summary for the transport layer."""
        return {
            "session_id": self.session_id,
            "pairing_code": self.pairing_code,
            "owner_id": self.owner_id,
            "status": self.status.value,
            "participants": [p.to_dict() for p in self.participants],
            "expires_at": self.expires_at,
            "message_count": self.message_count,
            "file_count": self.file_count,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
        }
