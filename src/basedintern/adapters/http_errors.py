from __future__ import annotations

from enum import StrEnum

import httpx

from basedintern.errors import ExternalCallFailure
from basedintern.security.redaction import sanitize_text

_SNIPPET_LIMIT = 240


class HttpErrorCategory(StrEnum):
    RATE_LIMIT = "rate_limit"
    TRANSIENT = "transient"
    AUTH = "auth"
    REJECT = "reject"
    UNCERTAIN = "uncertain"
    FATAL = "fatal"


def classify_http_error(exc: Exception) -> HttpErrorCategory:
    if isinstance(exc, httpx.TimeoutException):
        return HttpErrorCategory.UNCERTAIN
    if isinstance(exc, httpx.ConnectError | httpx.NetworkError):
        return HttpErrorCategory.TRANSIENT
    status = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None

    if status == 429:
        return HttpErrorCategory.RATE_LIMIT
    if status in {401, 403}:
        return HttpErrorCategory.AUTH
    if status is not None and status >= 500:
        return HttpErrorCategory.TRANSIENT
    if status is not None and 400 <= status < 500:
        return HttpErrorCategory.REJECT
    if isinstance(exc, httpx.TransportError):
        return HttpErrorCategory.TRANSIENT
    if isinstance(exc, TimeoutError):
        return HttpErrorCategory.UNCERTAIN
    return HttpErrorCategory.FATAL


def response_snippet(response: httpx.Response) -> str:
    text = response.text.strip().replace("\n", " ")
    return sanitize_text(text[:_SNIPPET_LIMIT])


def wrap_http_error(
    exc: httpx.HTTPError, *, what: str, error_cls: type[ExternalCallFailure] = ExternalCallFailure
) -> ExternalCallFailure:
    """Turn an httpx error into the collaborator's failure type, body redacted."""
    category = classify_http_error(exc)
    if isinstance(exc, httpx.HTTPStatusError):
        message = f"{what} failed: HTTP {exc.response.status_code} {response_snippet(exc.response)}"
    else:
        message = f"{what} failed: {type(exc).__name__}: {sanitize_text(str(exc))}"
    return error_cls(message, category=str(category))
