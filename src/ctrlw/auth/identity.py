"""Identity records for returning users."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Role(Enum):
    """Identity roles."""

    USER = "user"
    ADMIN = "admin"


def utc_iso(timestamp: Optional[float] = None) -> str:
    """Format a Unix timestamp (default now) as ISO 8601 UTC with 'Z'."""
    if timestamp is None:
        dt = datetime.now(timezone.utc)
    else:
        dt = datetime.fromtimestamp(timestamp, timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def new_identity_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Identity:
    """A registered user.

    Attributes:
        identity_id: Unique identifier.
        email: Normalised (lower-case) email, unique.
        credential_hash: Opaque value from the CredentialStore.
        role: USER or ADMIN.
        is_active: Inactive identities cannot log in or refresh.
        refresh_token: The single live refresh token, or None.
        last_login: ISO timestamp of the last successful login.
        created_at: ISO timestamp of registration.
    """

    identity_id: str
    email: str
    credential_hash: str = ""
    role: Role = Role.USER
    is_active: bool = True
    refresh_token: Optional[str] = None
    last_login: Optional[str] = None
    created_at: str = field(default_factory=utc_iso)

    def summary(self) -> dict[str, Any]:
        """Public view; never includes the credential hash or refresh token."""
        return {
            "id": self.identity_id,
            "email": self.email,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "last_login": self.last_login,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "identity_id": self.identity_id,
            "email": self.email,
            "credential_hash": self.credential_hash,
            "role": self.role.value,
            "is_active": self.is_active,
            "refresh_token": self.refresh_token,
            "last_login": self.last_login,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Identity":
        """Create from dictionary."""
        return cls(
            identity_id=d["identity_id"],
            email=d["email"],
            credential_hash=d.get("credential_hash", ""),
            role=Role(d.get("role", Role.USER.value)),
            is_active=d.get("is_active", True),
            refresh_token=d.get("refresh_token"),
            last_login=d.get("last_login"),
            created_at=d.get("created_at") or utc_iso(),
        )
