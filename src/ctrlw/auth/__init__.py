"""Identity authentication and token rotation for the ctrlw core."""

from .credentials import CredentialStore, ScryptCredentialStore
from .identity import Identity, Role
from .identity_store import IdentityStore, JsonIdentityStore, MemoryIdentityStore
from .service import AuthResult, TokenPair, TokenService
from .tokens import TokenCodec

__all__ = [
    "AuthResult",
    "CredentialStore",
    "Identity",
    "IdentityStore",
    "JsonIdentityStore",
    "MemoryIdentityStore",
    "Role",
    "ScryptCredentialStore",
    "TokenCodec",
    "TokenPair",
    "TokenService",
]
