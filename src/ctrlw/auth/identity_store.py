"""Identity storage.

Required atomic primitives:
- insert with uniqueness on email (case-insensitive)
- compare-and-swap on the refresh-token slot, which is what makes refresh
  rotation safe under concurrent calls presenting the same token
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from ctrlw.auth.identity import Identity
from ctrlw.errors import ConflictError, NotFoundError, TransientStoreError

logger = logging.getLogger(__name__)


class IdentityStore(Protocol):
    """Protocol for identity persistence."""

    async def insert(self, identity: Identity) -> None:
        """Insert a new identity; ConflictError on duplicate email."""
        ...

    async def get(self, identity_id: str) -> Optional[Identity]:
        """Get an identity by id."""
        ...

    async def get_by_email(self, email: str) -> Optional[Identity]:
        """Get an identity by (normalised) email."""
        ...

    async def set_refresh_token(
        self,
        identity_id: str,
        token: Optional[str],
        last_login: Optional[str] = None,
    ) -> None:
        """Overwrite the refresh slot (and optionally last login)."""
        ...

    async def compare_and_set_refresh_token(
        self, identity_id: str, expected: str, new: Optional[str]
    ) -> bool:
        """Replace the refresh slot only if it still holds ``expected``."""
        ...

    async def set_active(self, identity_id: str, active: bool) -> None:
        """Enable or disable an identity."""
        ...

    async def all(self) -> list[Identity]:
        """List all identities."""
        ...


class MemoryIdentityStore:
    """In-process identity store.

    Every method runs under one asyncio.Lock. Mutations build a new copy of
    the affected record and hand it to ``_commit``, so a failed commit
    leaves the stored state untouched.
    """

    def __init__(self) -> None:
        self._identities: dict[str, Identity] = {}
        self._lock = asyncio.Lock()

    async def _commit(self, identity: Identity) -> None:
        self._identities[identity.identity_id] = identity

    def _copy(self, identity: Optional[Identity]) -> Optional[Identity]:
        return Identity.from_dict(identity.to_dict()) if identity else None

    def _require(self, identity_id: str) -> Identity:
        identity = self._identities.get(identity_id)
        if identity is None:
            raise NotFoundError("Identity not found")
        return Identity.from_dict(identity.to_dict())

    async def insert(self, identity: Identity) -> None:
        async with self._lock:
            email = identity.email.lower()
            if identity.identity_id in self._identities:
                raise ConflictError("Identity already exists")
            if any(i.email.lower() == email for i in self._identities.values()):
                raise ConflictError("Email already registered")
            await self._commit(self._copy(identity))

    async def get(self, identity_id: str) -> Optional[Identity]:
        async with self._lock:
            return self._copy(self._identities.get(identity_id))

    async def get_by_email(self, email: str) -> Optional[Identity]:
        email = email.lower()
        async with self._lock:
            for identity in self._identities.values():
                if identity.email.lower() == email:
                    return self._copy(identity)
            return None

    async def set_refresh_token(
        self,
        identity_id: str,
        token: Optional[str],
        last_login: Optional[str] = None,
    ) -> None:
        async with self._lock:
            identity = self._require(identity_id)
            identity.refresh_token = token
            if last_login is not None:
                identity.last_login = last_login
            await self._commit(identity)

    async def compare_and_set_refresh_token(
        self, identity_id: str, expected: str, new: Optional[str]
    ) -> bool:
        async with self._lock:
            identity = self._require(identity_id)
            if identity.refresh_token is None or identity.refresh_token != expected:
                return False
            identity.refresh_token = new
            await self._commit(identity)
            return True

    async def set_active(self, identity_id: str, active: bool) -> None:
        async with self._lock:
            identity = self._require(identity_id)
            identity.is_active = active
            if not active:
                identity.refresh_token = None
            await self._commit(identity)

    async def all(self) -> list[Identity]:
        async with self._lock:
            return [self._copy(i) for i in self._identities.values()]

    def __len__(self) -> int:
        return len(self._identities)


class JsonIdentityStore(MemoryIdentityStore):
    """Identity store persisted to a JSON file.

    Security features:
    - File permissions 600, parent directory 700
    - Atomic writes (temp file + rename), so a crash never truncates the file
    """

    def __init__(self, path: Path | str):
        """Initialize identity store.

        Args:
            path: Path to JSON file for persistence.
        """
        super().__init__()
        self.path = Path(path).expanduser()

    async def load(self) -> None:
        """Load identities from file.

        A missing file is an empty store; malformed entries are skipped.
        """
        identities = await asyncio.to_thread(self._load_sync)
        async with self._lock:
            self._identities = identities

    def _load_sync(self) -> dict[str, Identity]:
        identities: dict[str, Identity] = {}
        if not self.path.exists():
            logger.debug(f"No identities file at {self.path}")
            return identities

        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse identities file: {e}")
            return identities
        except OSError as e:
            logger.error(f"Failed to read identities file: {e}")
            return identities

        if not isinstance(data, dict):
            logger.error("Identities file has unexpected layout, ignoring it")
            return identities

        for item in data.get("identities", []):
            try:
                identity = Identity.from_dict(item)
                identities[identity.identity_id] = identity
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed identity entry: {e}")

        logger.debug(f"Loaded {len(identities)} identities")
        return identities

    async def _commit(self, identity: Identity) -> None:
        snapshot = dict(self._identities)
        snapshot[identity.identity_id] = identity
        try:
            await asyncio.to_thread(self._save_sync, list(snapshot.values()))
        except OSError as e:
            raise TransientStoreError(f"Failed to save identities: {e}") from e
        self._identities = snapshot

    def _save_sync(self, identities: list[Identity]) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            os.chmod(self.path.parent, 0o700)

        data = json.dumps({"identities": [i.to_dict() for i in identities]}, indent=2)

        temp_path = self.path.with_suffix(".tmp")
        fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            os.write(fd, data.encode())
        finally:
            os.close(fd)
        os.replace(temp_path, self.path)

        logger.debug(f"Saved {len(identities)} identities")
