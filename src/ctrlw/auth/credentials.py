"""Credential storage.

The token service treats credential checking as an opaque capability: it
hands a raw secret to ``store`` and keeps whatever string comes back, and
later asks ``verify`` whether a candidate matches. The raw secret never
leaves the credential store.
"""

import base64
import binascii
import secrets
from typing import Protocol

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ctrlw.auth.identity import Identity

SALT_LENGTH = 16
HASH_LENGTH = 32
SCHEME = "scrypt"


def _secret_bytes(secret: str) -> bytes:
    # surrogatepass: any Python str hashes, including lone surrogates
    return secret.encode("utf-8", "surrogatepass")


class CredentialStore(Protocol):
    """Protocol for credential hashing and verification."""

    def store(self, identity: Identity, raw_secret: str) -> str:
        """Hash a secret for an identity; returns the opaque hash."""
        ...

    def verify(self, identity: Identity, candidate_secret: str) -> bool:
        """Check a candidate secret against the identity's stored hash."""
        ...


class ScryptCredentialStore:
    """Credential store backed by scrypt.

    Hash format: ``scrypt$<n>$<r>$<p>$<salt b64>$<hash b64>``. Parameters are
    stored with the hash so they can be raised later without invalidating
    existing credentials.
    """

    def __init__(self, n: int = 2**14, r: int = 8, p: int = 1):
        """Initialize with scrypt cost parameters.

        Args:
            n: CPU/memory cost (power of two).
            r: Block size.
            p: Parallelisation.
        """
        self.n = n
        self.r = r
        self.p = p

    def _kdf(self, salt: bytes, n: int, r: int, p: int) -> Scrypt:
        return Scrypt(salt=salt, length=HASH_LENGTH, n=n, r=r, p=p)

    def store(self, identity: Identity, raw_secret: str) -> str:
        salt = secrets.token_bytes(SALT_LENGTH)
        digest = self._kdf(salt, self.n, self.r, self.p).derive(_secret_bytes(raw_secret))
        return "$".join(
            [
                SCHEME,
                str(self.n),
                str(self.r),
                str(self.p),
                base64.b64encode(salt).decode("ascii"),
                base64.b64encode(digest).decode("ascii"),
            ]
        )

    def verify(self, identity: Identity, candidate_secret: str) -> bool:
        try:
            scheme, n, r, p, salt_b64, hash_b64 = identity.credential_hash.split("$")
            if scheme != SCHEME:
                return False
            salt = base64.b64decode(salt_b64)
            expected = base64.b64decode(hash_b64)
            kdf = self._kdf(salt, int(n), int(r), int(p))
        except (ValueError, binascii.Error):
            return False

        try:
            kdf.verify(_secret_bytes(candidate_secret), expected)
        except InvalidKey:
            return False
        return True
