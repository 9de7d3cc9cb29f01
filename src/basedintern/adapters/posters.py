from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote, urlsplit

import httpx

from basedintern.adapters.http_errors import classify_http_error, response_snippet
from basedintern.config import Settings, secret_value
from basedintern.errors import ConfigurationError
from basedintern.security.redaction import sanitize_text

logger = logging.getLogger(__name__)

DUPLICATE = "duplicate"


@dataclass(frozen=True)
class PostOutcome:
    success: bool
    channel: str
    detail: str | None = None
    post_id: str | None = None
    category: str | None = None

    @property
    def counts_as_failure(self) -> bool:
        """A rejected duplicate is not the channel's fault and must not trip its breaker."""
        return not self.success and self.category != DUPLICATE


class Poster(Protocol):
    channel: str

    def post(self, text: str) -> PostOutcome:
        ...


def _failure_from_http(channel: str, exc: httpx.HTTPError) -> PostOutcome:
    category = str(classify_http_error(exc))
    if isinstance(exc, httpx.HTTPStatusError):
        detail = f"HTTP {exc.response.status_code} {response_snippet(exc.response)}"
    else:
        detail = f"{type(exc).__name__}: {sanitize_text(str(exc))}"
    return PostOutcome(success=False, channel=channel, detail=detail, category=category)


@dataclass(frozen=True)
class LoggingPoster:
    """Writes posts to the log instead of publishing them."""

    channel: str = "log"

    def post(self, text: str) -> PostOutcome:
        logger.info("social_post_logged", extra={"extra": {"channel": self.channel, "text": text}})
        return PostOutcome(success=True, channel=self.channel, detail="logged")


def rfc3986(value: str) -> str:
    return quote(value, safe="-._~")


def oauth1_header(
    *,
    method: str,
    url: str,
    consumer_key: str,
    consumer_secret: str,
    access_token: str,
    access_secret: str,
    nonce: str,
    timestamp: str,
) -> str:
    """OAuth 1.0a HMAC-SHA1 ``Authorization`` header for a JSON-body request.

    JSON bodies are not part of the signature base string; only oauth and query params are.
    """
    oauth_params = {
        "oauth_consumer_key": consumer_key,
        "oauth_nonce": nonce,
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": timestamp,
        "oauth_token": access_token,
        "oauth_version": "1.0",
    }
    parts = urlsplit(url)
    base_url = f"{parts.scheme}://{parts.netloc}{parts.path}"
    params = list(oauth_params.items())
    params.extend(httpx.QueryParams(parts.query).multi_items())
    params.sort()
    normalized = "&".join(f"{rfc3986(key)}={rfc3986(value)}" for key, value in params)
    base_string = "&".join((method.upper(), rfc3986(base_url), rfc3986(normalized)))

    signing_key = f"{rfc3986(consumer_secret)}&{rfc3986(access_secret)}"
    digest = hmac.new(signing_key.encode(), base_string.encode(), hashlib.sha1).digest()
    header_params = {**oauth_params, "oauth_signature": base64.b64encode(digest).decode()}
    return "OAuth " + ", ".join(
        f'{rfc3986(key)}="{rfc3986(value)}"' for key, value in sorted(header_params.items())
    )


def summarize_x_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response_snippet(response)
    if isinstance(payload, dict):
        errors = payload.get("errors")
        first = errors[0] if isinstance(errors, list) and errors else {}
        for candidate in (
            payload.get("detail"),
            payload.get("title"),
            payload.get("message"),
            first.get("message") if isinstance(first, dict) else None,
            first.get("detail") if isinstance(first, dict) else None,
        ):
            if isinstance(candidate, str) and candidate.strip():
                return sanitize_text(candidate.strip()[:300])
    return response_snippet(response)


class XApiPoster:
    channel = "x_api"
    TWEET_URL = "https://api.twitter.com/2/tweets"

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        access_token: str,
        access_secret: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        nonce_factory: Callable[[], str] = lambda: secrets.token_hex(16),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._credentials = (api_key, api_secret, access_token, access_secret)
        self._nonce_factory = nonce_factory
        self._clock = clock
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _authorization(self) -> str:
        api_key, api_secret, access_token, access_secret = self._credentials
        return oauth1_header(
            method="POST",
            url=self.TWEET_URL,
            consumer_key=api_key,
            consumer_secret=api_secret,
            access_token=access_token,
            access_secret=access_secret,
            nonce=self._nonce_factory(),
            timestamp=str(int(self._clock())),
        )

    def post(self, text: str) -> PostOutcome:
        try:
            response = self.client.post(
                self.TWEET_URL,
                json={"text": text},
                headers={"Authorization": self._authorization()},
            )
        except httpx.HTTPError as exc:
            return _failure_from_http(self.channel, exc)

        if response.is_success:
            try:
                tweet_id = response.json()["data"]["id"]
            except (ValueError, KeyError, TypeError):
                tweet_id = None
            if not tweet_id:
                return PostOutcome(
                    success=False,
                    channel=self.channel,
                    detail="response missing tweet id",
                    category="reject",
                )
            return PostOutcome(
                success=True,
                channel=self.channel,
                post_id=str(tweet_id),
                detail=f"https://x.com/i/web/status/{tweet_id}",
            )

        summary = summarize_x_error(response)
        if response.status_code == 403 and "duplicate" in summary.lower():
            return PostOutcome(
                success=False, channel=self.channel, detail=summary, category=DUPLICATE
            )
        error = httpx.HTTPStatusError(summary, request=response.request, response=response)
        return PostOutcome(
            success=False,
            channel=self.channel,
            detail=f"HTTP {response.status_code} {summary}",
            category=str(classify_http_error(error)),
        )

    def close(self) -> None:
        self.client.close()


class MoltbookPoster:
    channel = "moltbook"
    _TITLE_LIMIT = 120

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://www.moltbook.com/api/v1",
        submolt: str = "general",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        host = urlsplit(base_url).netloc.lower()
        if host == "moltbook.com":
            # The apex domain redirects to www and the redirect strips Authorization.
            raise ConfigurationError("MOLTBOOK_BASE_URL must use www.moltbook.com")
        self.submolt = submolt
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}", "Accept": "application/json"},
        )

    def _title(self, text: str) -> str:
        first_line = text.strip().splitlines()[0] if text.strip() else "based intern"
        if len(first_line) <= self._TITLE_LIMIT:
            return first_line
        return first_line[: self._TITLE_LIMIT - 1].rstrip() + "…"

    def post(self, text: str) -> PostOutcome:
        body = {"submolt": self.submolt, "title": self._title(text), "content": text}
        try:
            response = self.client.post("/posts", json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            return _failure_from_http(self.channel, exc)

        post_id = None
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            post = payload.get("post") if isinstance(payload.get("post"), dict) else payload
            raw_id = post.get("id")
            post_id = str(raw_id) if raw_id is not None else None
        return PostOutcome(success=True, channel=self.channel, post_id=post_id)

    def close(self) -> None:
        self.client.close()


def build_posters(
    settings: Settings, *, transport: httpx.BaseTransport | None = None
) -> list[Poster]:
    """One poster per configured channel, in configuration order.

    ``SOCIAL_MODE=none`` yields a single ``LoggingPoster``. A channel whose credentials are
    missing is a configuration error, not a silent skip.
    """
    channels = settings.social_channels()
    if not channels:
        return [LoggingPoster()]

    posters: list[Poster] = []
    for channel in channels:
        if channel == "x_api":
            credentials = [
                secret_value(settings.x_api_key),
                secret_value(settings.x_api_secret),
                secret_value(settings.x_access_token),
                secret_value(settings.x_access_secret),
            ]
            if not all(credentials):
                raise ConfigurationError(
                    "x_api requires X_API_KEY, X_API_SECRET, X_ACCESS_TOKEN and X_ACCESS_SECRET"
                )
            api_key, api_secret, access_token, access_secret = (str(c) for c in credentials)
            posters.append(
                XApiPoster(
                    api_key=api_key,
                    api_secret=api_secret,
                    access_token=access_token,
                    access_secret=access_secret,
                    timeout=settings.http_timeout_seconds,
                    transport=transport,
                )
            )
        elif channel == "moltbook":
            api_key = secret_value(settings.moltbook_api_key)
            if not api_key:
                raise ConfigurationError("moltbook requires MOLTBOOK_API_KEY")
            posters.append(
                MoltbookPoster(
                    api_key=api_key,
                    base_url=settings.moltbook_base_url,
                    submolt=settings.moltbook_submolt,
                    timeout=settings.http_timeout_seconds,
                    transport=transport,
                )
            )
        else:
            raise ConfigurationError(f"unknown social channel: {channel}")
    return posters
