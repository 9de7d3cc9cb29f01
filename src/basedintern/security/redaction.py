"""Secret masking for log payloads and error text.

Mapping keys that name a credential have their value masked outright. Free text is
scrubbed of header- and env-style credentials (``Authorization: Bearer ...``,
``OPENAI_API_KEY=...``) and of OAuth header parameters.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "***REDACTED***"

_SECRET_KEY_MARKERS = (
    "api_key",
    "apikey",
    "secret",
    "password",
    "authorization",
    "private_key",
    "cookie",
    "signature",
)
_SECRET_KEY_EXACT = frozenset({"token", "auth", "bearer"})

_ASSIGNMENT = re.compile(
    r"(?i)\b(authorization|x-api-key|private_key|password|token|\w*api_key|\w*_secret|\w*_token)"
    r"(\s*[:=]\s*)((?:bearer|oauth)\s+)?([^\s,;]+)"
)
_OAUTH_PARAM = re.compile(r'(?i)(oauth_\w*(?:signature|token|key)=")([^"]*)(")')
_BEARER = re.compile(r"(?i)\b(bearer\s+)([A-Za-z0-9._~+/=-]{8,})")


def is_secret_key(key: object) -> bool:
    # "token_balance" and "token_address" are data; "x_access_token" is a credential.
    name = str(key).strip().lower().replace("-", "_")
    if name in _SECRET_KEY_EXACT or name.endswith("_token"):
        return True
    return any(marker in name for marker in _SECRET_KEY_MARKERS)


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return REDACTED
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


def sanitize_text(text: str, known_secrets: Iterable[str] = ()) -> str:
    result = str(text)
    for secret in known_secrets:
        if secret:
            result = result.replace(secret, mask_secret(secret))
    result = _OAUTH_PARAM.sub(
        lambda m: f"{m.group(1)}{mask_secret(m.group(2))}{m.group(3)}", result
    )
    result = _ASSIGNMENT.sub(
        lambda m: f"{m.group(1)}{m.group(2)}{m.group(3) or ''}[REDACTED]", result
    )
    return _BEARER.sub(lambda m: f"{m.group(1)}{mask_secret(m.group(2))}", result)


def sanitize_mapping(data: Mapping[Any, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if is_secret_key(key):
            sanitized[str(key)] = REDACTED if value is None else mask_secret(str(value))
        else:
            sanitized[str(key)] = redact_data(value)
    return sanitized


def redact_data(value: Any) -> Any:
    if isinstance(value, Mapping):
        return sanitize_mapping(value)
    if isinstance(value, list):
        return [redact_data(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact_data(item) for item in value)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
