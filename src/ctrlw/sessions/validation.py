"""Input validation for pairing sessions."""

import math
import re

from ctrlw.errors import ValidationError

PAIRING_CODE_PATTERN = re.compile(r"^[0-9]{6}$")

MAX_CONNECTION_ID_LENGTH = 128
MAX_DEVICE_LABEL_LENGTH = 100


def validate_pairing_code(code: str) -> str:
    """Validate a pairing code.

    Raises:
        ValidationError: If code is not exactly six ASCII digits.
    """
    if not isinstance(code, str) or not PAIRING_CODE_PATTERN.fullmatch(code):
        raise ValidationError("Pairing code must be 6 digits")
    return code


def validate_connection_id(connection_id: str) -> str:
    """Validate an opaque transport connection identifier."""
    if not isinstance(connection_id, str) or not connection_id.strip():
        raise ValidationError("Connection id is required")
    if len(connection_id) > MAX_CONNECTION_ID_LENGTH:
        raise ValidationError(
            f"Connection id exceeds {MAX_CONNECTION_ID_LENGTH} characters"
        )
    return connection_id


def validate_device_label(label: str | None) -> str:
    """Normalise a device label, falling back to "Unknown"."""
    if label is None:
        return "Unknown"
    label = str(label).strip()
    if not label:
        return "Unknown"
    return label[:MAX_DEVICE_LABEL_LENGTH]


def validate_minutes(minutes: int | float) -> float:
    """Validate an expiry extension; must be strictly positive."""
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        raise ValidationError("Minutes must be a number")
    if not math.isfinite(minutes):
        raise ValidationError("Minutes must be finite")
    if minutes <= 0:
        raise ValidationError("Minutes must be positive")
    return float(minutes)
