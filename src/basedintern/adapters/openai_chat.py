from __future__ import annotations

import logging

import httpx

from basedintern.adapters.http_errors import wrap_http_error
from basedintern.errors import ExternalCallFailure

logger = logging.getLogger(__name__)


class OpenAiChatClient:
    """Minimal client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.2,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def complete(self, prompt: str, *, system: str, timeout_seconds: float) -> str:
        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            response = self.client.post(
                "/chat/completions", json=payload, timeout=timeout_seconds
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise wrap_http_error(exc, what="chat completion") from exc

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ExternalCallFailure(
                "chat completion returned an unexpected body", category="reject"
            ) from exc
        if not isinstance(content, str) or not content.strip():
            raise ExternalCallFailure("chat completion returned empty content", category="reject")
        return content.strip()

    def close(self) -> None:
        self.client.close()
