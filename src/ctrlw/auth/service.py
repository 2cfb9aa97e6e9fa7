"""Token issuance and rotation.

Each identity has a single refresh-token slot:

- register and login write a fresh refresh token into the slot, so login
  implicitly revokes whatever token an earlier login or refresh issued
- refresh only succeeds if the presented token is byte-for-byte the one in
  the slot, and swaps in the replacement with a compare-and-swap keyed on
  the presented token; of two concurrent refreshes with the same token at
  most one can win, the other sees RevokedToken
- logout empties the slot

Access tokens are verified statelessly and stay valid until they expire,
even after logout. Keep the access lifetime short.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from ctrlw.auth.credentials import CredentialStore
from ctrlw.auth.identity import Identity, new_identity_id, utc_iso
from ctrlw.auth.identity_store import IdentityStore
from ctrlw.auth.tokens import REFRESH, TokenCodec
from ctrlw.auth.validation import (
    normalize_email,
    validate_email,
    validate_password,
    validate_role,
)
from ctrlw.crypto import constant_time_equals
from ctrlw.errors import InvalidCredentials, NotFoundError, RevokedToken
from ctrlw.retry import StoreCall, call_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """A freshly issued access/refresh pair."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Result of register/login: identity summary plus tokens."""

    identity: dict[str, Any]
    access_token: str
    refresh_token: str


class TokenService:
    """Issues, verifies, rotates and revokes token pairs."""

    def __init__(
        self,
        identities: IdentityStore,
        credentials: CredentialStore,
        codec: TokenCodec,
        clock: Callable[[], float] = time.time,
        call: StoreCall = call_store,
    ):
        """Initialize token service.

        Args:
            identities: Identity store providing the refresh-slot CAS.
            credentials: Opaque credential hashing/verification.
            codec: Token signer/verifier.
            clock: Returns the current Unix time (injectable for testing).
            call: Wraps every store call with timeout and transient retry.
        """
        self._identities = identities
        self._credentials = credentials
        self._codec = codec
        self._clock = clock
        self._call = call

    async def register(
        self, email: str, password: str, role: str = "user"
    ) -> AuthResult:
        """Create an identity and issue its first token pair.

        Raises:
            ValidationError: Malformed email, short password or unknown role.
            ConflictError: If the email is already registered.
        """
        email = validate_email(email)
        validate_password(password)
        resolved_role = validate_role(role)

        now = self._clock()
        identity = Identity(
            identity_id=new_identity_id(),
            email=email,
            role=resolved_role,
            created_at=utc_iso(now),
        )
        identity.credential_hash = await asyncio.to_thread(
            self._credentials.store, identity, password
        )

        pair = self._issue(identity, now)
        identity.refresh_token = pair.refresh_token
        # The insert enforces email uniqueness; no separate existence check.
        await self._call(lambda: self._identities.insert(identity))

        logger.info(f"Identity registered: {identity.identity_id[:8]}...")
        return AuthResult(
            identity={
                "id": identity.identity_id,
                "email": identity.email,
                "role": identity.role.value,
                "created_at": identity.created_at,
            },
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and issue a fresh token pair.

        Overwrites the refresh slot, invalidating any earlier refresh token.

        Raises:
            InvalidCredentials: Unknown email, wrong password or inactive identity.
        """
        email = normalize_email(email)
        if not email or not isinstance(password, str):
            raise InvalidCredentials("Invalid credentials")

        identity = await self._call(lambda: self._identities.get_by_email(email))
        if identity is None:
            raise InvalidCredentials("Invalid credentials")

        matches = await asyncio.to_thread(self._credentials.verify, identity, password)
        if not matches or not identity.is_active:
            raise InvalidCredentials("Invalid credentials")

        now = self._clock()
        pair = self._issue(identity, now)
        last_login = utc_iso(now)
        await self._call(
            lambda: self._identities.set_refresh_token(
                identity.identity_id, pair.refresh_token, last_login=last_login
            )
        )

        logger.info(f"Identity logged in: {identity.identity_id[:8]}...")
        return AuthResult(
            identity={
                "id": identity.identity_id,
                "email": identity.email,
                "role": identity.role.value,
                "last_login": last_login,
            },
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    def verify_access(self, token: str) -> dict[str, Any]:
        """Stateless access token check; no store round trip.

        Raises:
            ExpiredToken: Token past its expiry.
            InvalidSignature: Anything else wrong with the token.
        """
        return self._codec.decode(token)

    async def refresh(self, token: str) -> TokenPair:
        """Rotate a refresh token.

        Raises:
            ExpiredToken: Refresh token past its expiry.
            InvalidSignature: Malformed/foreign token or not a refresh token.
            RevokedToken: Token is no longer the identity's live refresh token.
        """
        claims = self._codec.decode(token, REFRESH)
        identity_id = claims["sub"]

        identity = await self._call(lambda: self._identities.get(identity_id))
        if identity is None or not identity.is_active:
            raise RevokedToken("Refresh token has been revoked")

        if not constant_time_equals(identity.refresh_token, token):
            logger.warning(f"Stale refresh token presented for {identity_id[:8]}...")
            raise RevokedToken("Refresh token has been revoked")

        pair = self._issue(identity, self._clock())
        swapped = await self._call(
            lambda: self._identities.compare_and_set_refresh_token(
                identity_id, token, pair.refresh_token
            )
        )
        if not swapped:
            logger.warning(f"Concurrent refresh lost for {identity_id[:8]}...")
            raise RevokedToken("Refresh token has been revoked")

        logger.info(f"Tokens refreshed: {identity_id[:8]}...")
        return pair

    async def logout(self, identity_id: str) -> None:
        """Clear the refresh slot.

        Access tokens already issued stay valid until they expire.

        Raises:
            NotFoundError: If the identity does not exist.
        """
        await self._call(lambda: self._identities.set_refresh_token(identity_id, None))
        logger.info(f"Identity logged out: {identity_id[:8]}...")

    async def verify_for_transport(self, token: str) -> str:
        """Authenticate a realtime connection.

        Returns:
            The identity id from a valid access token of an active identity.

        Raises:
            ExpiredToken, InvalidSignature: As verify_access.
            RevokedToken: If the identity no longer exists or is inactive.
        """
        claims = self.verify_access(token)
        identity_id = claims["sub"]

        identity = await self._call(lambda: self._identities.get(identity_id))
        if identity is None or not identity.is_active:
            raise RevokedToken("Identity not found or inactive")
        return identity_id

    async def get_identity(self, identity_id: str) -> Identity:
        """Look up an identity.

        Raises:
            NotFoundError: If the identity does not exist.
        """
        identity = await self._call(lambda: self._identities.get(identity_id))
        if identity is None:
            raise NotFoundError("Identity not found")
        return identity

    async def set_active(self, identity_id: str, active: bool) -> None:
        """Enable or disable an identity; disabling also clears its refresh slot.

        Raises:
            NotFoundError: If the identity does not exist.
        """
        await self._call(lambda: self._identities.set_active(identity_id, active))
        logger.info(
            f"Identity {'enabled' if active else 'disabled'}: {identity_id[:8]}..."
        )

    def _issue(self, identity: Identity, now: float) -> TokenPair:
        return TokenPair(
            access_token=self._codec.issue_access(identity, now),
            refresh_token=self._codec.issue_refresh(identity.identity_id, now),
        )
