"""
Security Utilities

Request ID tracking, log masking, and security event logging.
"""

import re
import secrets
from typing import Any, Dict, Optional, Union

from fastapi import Request, WebSocket

from app.config import logger
from app.core.security.constants import REQUEST_ID_HEADER

_REQUEST_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")

SENSITIVE_KEYS = frozenset({"token", "password", "secret", "key", "authorization", "signature"})

Connection = Union[Request, WebSocket]


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return secrets.token_hex(16)


def get_request_id(connection: Connection) -> str:
    """
    Request ID for an HTTP request or WebSocket.

    Prefers the ID already assigned by RequestIDMiddleware, then a well formed
    X-Request-ID header, then a fresh one.
    """
    assigned = getattr(connection.state, "request_id", None)
    if assigned:
        return assigned
    header = connection.headers.get(REQUEST_ID_HEADER)
    if header and _REQUEST_ID_RE.match(header):
        return header
    return generate_request_id()


def mask_sensitive_data(data: Dict[str, Any], sensitive_keys: frozenset = SENSITIVE_KEYS) -> Dict[str, Any]:
    """Copy of `data` with credential-like values replaced by [REDACTED]."""
    masked = {}
    for key, value in data.items():
        if any(s in key.lower() for s in sensitive_keys):
            masked[key] = "[REDACTED]"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value, sensitive_keys)
        else:
            masked[key] = value
    return masked


def _client_ip(connection: Connection) -> str:
    forwarded = connection.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return connection.client.host if connection.client else "unknown"


def log_security_event(
    event_type: str,
    request: Optional[Connection] = None,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    level: str = "warning",
) -> None:
    """
    Log a security-relevant event (rejected webhooks, admin access denials,
    failed WebSocket authentication) with structured context.
    """
    log_data: Dict[str, Any] = {
        "security_event": event_type,
        "user_id": user_id,
    }

    if request is not None:
        log_data["client_ip"] = _client_ip(request)
        log_data["path"] = request.url.path
        # WebSocket objects don't have a method attribute
        log_data["method"] = getattr(request, "method", "WEBSOCKET")
        log_data["request_id"] = get_request_id(request)

    if details:
        log_data["details"] = mask_sensitive_data(details)

    log_func = getattr(logger, level, logger.warning)
    log_func("Security event: %s | %s", event_type, log_data)
