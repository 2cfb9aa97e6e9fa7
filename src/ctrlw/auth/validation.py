"""Input validation for registration and login."""

import re

from ctrlw.auth.identity import Role
from ctrlw.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 6
MAX_EMAIL_LENGTH = 254


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address."""
    if not isinstance(email, str):
        raise ValidationError("Email is required")
    return email.strip().lower()


def validate_email(email: str) -> str:
    """Normalise and validate an email address.

    Returns:
        The normalised email.

    Raises:
        ValidationError: If the email is missing or malformed.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    if len(email) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Please provide a valid email address")
    return email


def validate_password(password: str) -> str:
    if not isinstance(password, str) or not password:
        raise ValidationError("Password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return password


def validate_role(role: str | Role) -> Role:
    """Resolve a role name to a Role."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        raise ValidationError(f"Invalid role: {role}") from None
