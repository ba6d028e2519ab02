"""
Security Constants

Centralized constants for security module.
"""

# Maximum lengths for user inputs
MAX_EMAIL_LENGTH = 254
MAX_UID_LENGTH = 128
MAX_FEATURE_KEY_LENGTH = 64

# Request ID header
REQUEST_ID_HEADER = "X-Request-ID"
