from basedintern.security.redaction import (
    REDACTED,
    is_secret_key,
    mask_secret,
    redact_data,
    sanitize_mapping,
    sanitize_text,
)

__all__ = [
    "REDACTED",
    "is_secret_key",
    "mask_secret",
    "redact_data",
    "sanitize_mapping",
    "sanitize_text",
]
