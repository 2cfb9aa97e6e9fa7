"""Signed access and refresh tokens.

Tokens use the compact JWS layout (``header.payload.signature``, unpadded
base64url) with HMAC-SHA256. Access and refresh tokens are signed with
different keys, so neither can be replayed as the other.

Access claims:  sub, email, role, type="access",  iat, exp, iss, aud, jti
Refresh claims: sub,              type="refresh", iat, exp, iss, aud, jti

``jti`` is random: two tokens for the same identity issued within the same
second still differ, which refresh rotation depends on.

Verification is pure computation: structure, signature, issuer, audience,
type, then expiry. Everything except an expired-but-genuine token is
reported as InvalidSignature.
"""

import json
import logging
import secrets
import time
from typing import Any, Callable, Optional

from ctrlw.auth.identity import Identity
from ctrlw.config import TokensConfig
from ctrlw.crypto import (
    b64url_decode,
    b64url_encode,
    compute_hmac,
    derive_key,
    generate_secret,
    verify_hmac,
)
from ctrlw.errors import ExpiredToken, InvalidSignature

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

_HEADER = b64url_encode(
    json.dumps({"alg": "HS256", "typ": "JWT"}, separators=(",", ":")).encode()
)


class TokenCodec:
    """Issues and verifies access/refresh tokens."""

    def __init__(
        self,
        access_key: bytes,
        refresh_key: bytes,
        issuer: str,
        audience: str,
        access_ttl: int,
        refresh_ttl: int,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize codec.

        Args:
            access_key: 32-byte key signing access tokens.
            refresh_key: 32-byte key signing refresh tokens.
            issuer: Expected ``iss`` claim.
            audience: Expected ``aud`` claim.
            access_ttl: Access token lifetime in seconds.
            refresh_ttl: Refresh token lifetime in seconds.
            clock: Returns the current Unix time (injectable for testing).
        """
        if access_ttl <= 0 or refresh_ttl <= 0:
            raise ValueError("Token lifetimes must be positive")
        self._keys = {ACCESS: access_key, REFRESH: refresh_key}
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_config(
        cls, config: TokensConfig, clock: Callable[[], float] = time.time
    ) -> "TokenCodec":
        """Build a codec from configuration.

        Missing secrets are replaced by random per-process ones; tokens then
        stop verifying after a restart.
        """
        access_secret: bytes | str | None = config.access_secret
        refresh_secret: bytes | str | None = config.refresh_secret
        if not access_secret or not refresh_secret:
            logger.warning(
                "Token secrets not configured, using ephemeral secrets "
                "(tokens will not survive a restart)"
            )
            access_secret = access_secret or generate_secret()
            refresh_secret = refresh_secret or generate_secret()

        return cls(
            access_key=derive_key(access_secret, "ctrlw-access"),
            refresh_key=derive_key(refresh_secret, "ctrlw-refresh"),
            issuer=config.issuer,
            audience=config.audience,
            access_ttl=config.access_ttl_seconds,
            refresh_ttl=config.refresh_ttl_seconds,
            clock=clock,
        )

    def issue_access(self, identity: Identity, now: Optional[float] = None) -> str:
        """Issue an access token for an identity."""
        return self._encode(
            ACCESS,
            {"sub": identity.identity_id, "email": identity.email, "role": identity.role.value},
            self.access_ttl,
            now,
        )

    def issue_refresh(self, identity_id: str, now: Optional[float] = None) -> str:
        """Issue a refresh token for an identity."""
        return self._encode(REFRESH, {"sub": identity_id}, self.refresh_ttl, now)

    def decode(self, token: str, token_type: str = ACCESS) -> dict[str, Any]:
        """Verify a token and return its claims.

        Args:
            token: Compact token string.
            token_type: ACCESS or REFRESH.

        Raises:
            InvalidSignature: Malformed, tampered, foreign or wrong-type token.
            ExpiredToken: Genuine token past its expiry.
        """
        key = self._keys[token_type]

        if not isinstance(token, str) or token.count(".") != 2:
            raise InvalidSignature(f"Malformed {token_type} token")

        header_b64, payload_b64, signature_b64 = token.split(".")
        try:
            signature = b64url_decode(signature_b64)
        except ValueError:
            raise InvalidSignature(f"Malformed {token_type} token") from None

        signing_input = f"{header_b64}.{payload_b64}".encode("ascii", "replace")
        if not verify_hmac(key, signing_input, signature):
            raise InvalidSignature(f"Invalid {token_type} token")

        try:
            header = json.loads(b64url_decode(header_b64))
            claims = json.loads(b64url_decode(payload_b64))
        except ValueError:
            raise InvalidSignature(f"Malformed {token_type} token") from None

        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise InvalidSignature(f"Unsupported {token_type} token algorithm")
        if not isinstance(claims, dict):
            raise InvalidSignature(f"Malformed {token_type} token")

        if claims.get("iss") != self.issuer or claims.get("aud") != self.audience:
            raise InvalidSignature(f"Invalid {token_type} token issuer or audience")
        if claims.get("type") != token_type:
            raise InvalidSignature("Invalid token type")
        if not isinstance(claims.get("sub"), str):
            raise InvalidSignature(f"Invalid {token_type} token subject")

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidSignature(f"Invalid {token_type} token expiry")
        if self._clock() >= exp:
            raise ExpiredToken(f"{token_type.capitalize()} token has expired")

        return claims

    def _encode(
        self,
        token_type: str,
        claims: dict[str, Any],
        ttl: int,
        now: Optional[float],
    ) -> str:
        issued_at = int(self._clock() if now is None else now)
        payload = {
            **claims,
            "type": token_type,
            "iat": issued_at,
            "exp": issued_at + ttl,
            "iss": self.issuer,
            "aud": self.audience,
            "jti": secrets.token_hex(8),
        }
        payload_b64 = b64url_encode(
            json.dumps(payload, separators=(",", ":")).encode("utf-8")
        )
        signing_input = f"{_HEADER}.{payload_b64}"
        signature = compute_hmac(self._keys[token_type], signing_input.encode("ascii"))
        return f"{signing_input}.{b64url_encode(signature)}"
