"""
Input Validation Module

Validates operator-supplied identifiers before they reach Firestore.
"""

import re
from typing import Optional

from app.core.security.constants import MAX_EMAIL_LENGTH, MAX_UID_LENGTH

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_UID_RE = re.compile(r"^[A-Za-z0-9_:-]+$")


class ValidationError(ValueError):
    """Raised when input validation fails."""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


def validate_email(email: str) -> str:
    """
    Validate and normalize an email address.

    Raises:
        ValidationError: If the email is missing or malformed.

    Returns:
        Stripped email.
    """
    if not email or not isinstance(email, str):
        raise ValidationError("Email is required", field="email")

    email = email.strip()
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError(f"Email exceeds maximum length of {MAX_EMAIL_LENGTH}", field="email")
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email address", field="email")
    return email


def validate_uid(uid: str, field: str = "uid") -> str:
    """Validate a Firebase uid (Firestore document id)."""
    if not uid or not isinstance(uid, str):
        raise ValidationError("User ID is required", field=field)

    uid = uid.strip()
    if len(uid) > MAX_UID_LENGTH:
        raise ValidationError(f"User ID exceeds maximum length of {MAX_UID_LENGTH}", field=field)
    if not _UID_RE.match(uid):
        raise ValidationError("User ID contains invalid characters", field=field)
    return uid
