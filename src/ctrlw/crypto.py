"""Cryptographic helpers for token signing.

This module provides:
- Secure secret generation
- Signing-key derivation from configured secrets using HKDF
- HMAC-SHA256 signing with constant-time verification
- Unpadded base64url codec used by the compact token format

Security notes:
- Uses the `cryptography` library for key derivation
- Signing keys are always 32 bytes, whatever the configured secret length
- Constant-time comparison for every signature or token check
"""

import base64
import binascii
import hashlib
import hmac
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

__all__ = [
    "KEY_LENGTH",
    "generate_secret",
    "derive_key",
    "compute_hmac",
    "verify_hmac",
    "constant_time_equals",
    "b64url_encode",
    "b64url_decode",
]

KEY_LENGTH = 32  # 256 bits


def generate_secret() -> bytes:
    """Generate a 32-byte cryptographically secure secret.

    Returns:
        32-byte random secret.
    """
    return secrets.token_bytes(KEY_LENGTH)


def derive_key(secret: bytes | str, purpose: str) -> bytes:
    """Derive a purpose-specific 32-byte key using HKDF-SHA256.

    Args:
        secret: Configured secret (text or raw bytes).
        purpose: Info string, e.g. "ctrlw-access".

    Returns:
        32-byte derived key.

    Raises:
        ValueError: If secret is empty.
    """
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise ValueError("Secret must not be empty")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=purpose.encode(),
    )
    return hkdf.derive(secret)


def compute_hmac(key: bytes, data: bytes) -> bytes:
    """Compute HMAC-SHA256.

    Args:
        key: HMAC key (32 bytes recommended).
        data: Data to authenticate.

    Returns:
        32-byte HMAC digest.
    """
    return hmac.new(key, data, hashlib.sha256).digest()


def verify_hmac(key: bytes, data: bytes, expected: bytes) -> bool:
    """Verify HMAC-SHA256 in constant time.

    Args:
        key: HMAC key.
        data: Data that was authenticated.
        expected: Expected HMAC value.

    Returns:
        True if HMAC matches, False otherwise.
    """
    computed = compute_hmac(key, data)
    return hmac.compare_digest(computed, expected)


def constant_time_equals(a: str | None, b: str | None) -> bool:
    """Compare two token strings byte-for-byte in constant time."""
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def b64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Decode unpadded base64url.

    Raises:
        ValueError: If data is not valid base64url.
    """
    padding = "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode((data + padding).encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Invalid base64url: {e}") from e
