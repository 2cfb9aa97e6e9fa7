"""Base exceptions for the ctrlw pairing core.

Every error carries a stable ``kind`` so the transport layer can map it to
its own status signalling (conflict, unauthorized, not-found, ...).
"""


class CtrlwError(Exception):
    """Base exception for all ctrlw errors."""

    kind = "error"


class ValidationError(CtrlwError):
    """Malformed pairing code, email, password or participant id."""

    kind = "validation"


class ConflictError(CtrlwError):
    """Duplicate unique key (email, active pairing code)."""

    kind = "conflict"


class NotFoundError(CtrlwError):
    """Missing (or logically expired) session or identity."""

    kind = "not_found"


class ExhaustionError(CtrlwError):
    """Pairing code allocation ran out of retries."""

    kind = "exhausted"


class AuthError(CtrlwError):
    """Authentication error."""

    kind = "auth"


class ExpiredToken(AuthError):
    """Token is past its expiry."""

    kind = "expired_token"


class InvalidSignature(AuthError):
    """Token is malformed, tampered with, or not meant for us."""

    kind = "invalid_signature"


class RevokedToken(AuthError):
    """Refresh token no longer matches the stored slot."""

    kind = "revoked_token"


class InvalidCredentials(AuthError):
    """Unknown email or wrong password."""

    kind = "invalid_credentials"


class TransientStoreError(CtrlwError):
    """Store timeout or connection failure; safe to retry."""

    kind = "transient"
