"""
Security module for PracticePlan.

Provides:
- Input validation
- Request ID tracking
- Security event logging
"""

from app.core.security.constants import (
    MAX_EMAIL_LENGTH,
    MAX_FEATURE_KEY_LENGTH,
    MAX_UID_LENGTH,
    REQUEST_ID_HEADER,
)
from app.core.security.validation import (
    ValidationError,
    validate_email,
    validate_uid,
)
from app.core.security.utils import (
    generate_request_id,
    get_request_id,
    mask_sensitive_data,
    log_security_event,
)

__all__ = [
    # Constants
    "MAX_EMAIL_LENGTH",
    "MAX_FEATURE_KEY_LENGTH",
    "MAX_UID_LENGTH",
    "REQUEST_ID_HEADER",
    # Validation
    "ValidationError",
    "validate_email",
    "validate_uid",
    # Utils
    "generate_request_id",
    "get_request_id",
    "mask_sensitive_data",
    "log_security_event",
]
