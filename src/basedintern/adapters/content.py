from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from basedintern.agent.proposer import LlmClient
from basedintern.content.models import ContentCandidate
from basedintern.content.render import MAX_POST_CHARS, render_memo_post, truncate_post
from basedintern.errors import ContentGenerationError

logger = logging.getLogger(__name__)

_FIELD_LIMIT = 240
_UNSAFE_PROMPT_CHARS = re.compile(r"[`$<>]")

SYSTEM_PROMPT = (
    "You are Based Intern, a deadpan, underpaid, compliance-friendly agent on Base. "
    "Write ONE short post (max 240 characters) reacting to the news item. "
    "No hashtags, no financial advice, no emoji spam. "
    "If a link is given, include it verbatim. Reply with the post text only."
)


@dataclass(frozen=True)
class ContentRequest:
    day: str
    item: ContentCandidate
    require_link: bool = True


class ContentGenerator(Protocol):
    def generate(self, request: ContentRequest) -> str:
        ...


def sanitize_prompt_field(value: str | None, max_len: int = _FIELD_LIMIT) -> str:
    cleaned = _UNSAFE_PROMPT_CHARS.sub("", " ".join((value or "").split()))
    return cleaned if len(cleaned) <= max_len else cleaned[:max_len] + "…"


@dataclass(frozen=True)
class DeterministicContentGenerator:
    """Template post; used when no generation backend is configured."""

    def generate(self, request: ContentRequest) -> str:
        return render_memo_post(request.day, request.item)


@dataclass(frozen=True)
class LlmContentGenerator:
    client: LlmClient
    timeout_seconds: float = 20.0

    def build_prompt(self, request: ContentRequest) -> str:
        item = request.item
        lines = [
            f"title: {sanitize_prompt_field(item.title)}",
            f"source: {sanitize_prompt_field(item.source)}",
            f"link: {item.url or 'none'}",
        ]
        if item.excerpt:
            lines.append(f"excerpt: {sanitize_prompt_field(item.excerpt)}")
        for fact in item.facts[:3]:
            lines.append(f"fact: {sanitize_prompt_field(fact)}")
        return "\n".join(lines)

    def generate(self, request: ContentRequest) -> str:
        try:
            text = self.client.complete(
                self.build_prompt(request),
                system=SYSTEM_PROMPT,
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            raise ContentGenerationError(
                f"content backend failed: {type(exc).__name__}",
                category=getattr(exc, "category", "fatal"),
            ) from exc

        text = text.strip().strip('"').strip()
        if not text:
            raise ContentGenerationError("content backend returned empty text", category="reject")
        if request.require_link and request.item.url and request.item.url not in text:
            raise ContentGenerationError(
                "generated post is missing the item link", category="reject"
            )
        if len(text) > MAX_POST_CHARS:
            if request.require_link and request.item.url:
                raise ContentGenerationError("generated post is too long", category="reject")
            text = truncate_post(text)
        return text


@dataclass(frozen=True)
class FallbackContentGenerator:
    primary: ContentGenerator
    fallback: ContentGenerator

    def generate(self, request: ContentRequest) -> str:
        try:
            return self.primary.generate(request)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "content_generator_primary_failed",
                extra={
                    "extra": {
                        "fingerprint": request.item.fingerprint,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    }
                },
            )
            return self.fallback.generate(request)
