"""Pairing session lifecycle for the ctrlw core."""

from ctrlw.sessions.allocator import PairingCodeAllocator
from ctrlw.sessions.manager import SessionManager
from ctrlw.sessions.models import Participant, PairingSession, SessionStatus
from ctrlw.sessions.reaper import ExpiryReaper
from ctrlw.sessions.store import MemorySessionStore, SessionStore
from ctrlw.sessions.validation import (
    validate_connection_id,
    validate_device_label,
    validate_minutes,
    validate_pairing_code,
)

__all__ = [
    "ExpiryReaper",
    "MemorySessionStore",
    "PairingCodeAllocator",
    "PairingSession",
    "Participant",
    "SessionManager",
    "SessionStatus",
    "SessionStore",
    "validate_connection_id",
    "validate_device_label",
    "validate_minutes",
    "validate_pairing_code",
]
