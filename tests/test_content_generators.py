from __future__ import annotations

import pytest

from basedintern.adapters.content import (
    ContentRequest,
    DeterministicContentGenerator,
    FallbackContentGenerator,
    LlmContentGenerator,
    sanitize_prompt_field,
)
from basedintern.content.models import ContentCandidate
from basedintern.content.render import MAX_POST_CHARS, render_memo_post
from basedintern.errors import ContentGenerationError, ExternalCallFailure

DAY = "2026-01-30"
ITEM = ContentCandidate(
    fingerprint="fp-1",
    score=0.9,
    source="rss",
    title="Base `ships` <v2>",
    url="https://blog.base.org/v2",
    facts=("faster blocks",),
)


class _FakeClient:
    def __init__(self, response: str | Exception) -> None:
        self.response = response
        self.prompts: list[str] = []

    def complete(self, prompt: str, *, system: str, timeout_seconds: float) -> str:
        self.prompts.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_sanitize_prompt_field_removes_markup_and_limits_length() -> None:
    assert sanitize_prompt_field("a `b`  $c <d>") == "a b c d"
    assert sanitize_prompt_field(None) == ""
    assert sanitize_prompt_field("x" * 10, max_len=4) == "xxxx…"


def test_deterministic_generator_renders_memo() -> None:
    request = ContentRequest(day=DAY, item=ITEM)

    assert DeterministicContentGenerator().generate(request) == render_memo_post(DAY, ITEM)


def test_llm_generator_returns_text_with_link() -> None:
    client = _FakeClient('"intern read the notes: https://blog.base.org/v2"')

    text = LlmContentGenerator(client).generate(ContentRequest(day=DAY, item=ITEM))

    assert text == "intern read the notes: https://blog.base.org/v2"
    assert "title: Base ships v2" in client.prompts[0]
    assert "fact: faster blocks" in client.prompts[0]


@pytest.mark.parametrize(
    "response",
    [
        "   ",
        "no link in this one",
        "https://blog.base.org/v2 " + "x" * MAX_POST_CHARS,
        ExternalCallFailure("rate limited", category="rate_limit"),
    ],
)
def test_llm_generator_rejects_unusable_output(response) -> None:
    with pytest.raises(ContentGenerationError):
        LlmContentGenerator(_FakeClient(response)).generate(ContentRequest(day=DAY, item=ITEM))


def test_llm_generator_keeps_backend_category() -> None:
    client = _FakeClient(ExternalCallFailure("rate limited", category="rate_limit"))

    with pytest.raises(ContentGenerationError) as excinfo:
        LlmContentGenerator(client).generate(ContentRequest(day=DAY, item=ITEM))
    assert excinfo.value.category == "rate_limit"


def test_llm_generator_truncates_when_link_not_required() -> None:
    client = _FakeClient("y" * 400)
    request = ContentRequest(day=DAY, item=ITEM, require_link=False)

    text = LlmContentGenerator(client).generate(request)

    assert len(text) == MAX_POST_CHARS


def test_fallback_generator_uses_template_on_failure() -> None:
    generator = FallbackContentGenerator(
        primary=LlmContentGenerator(_FakeClient("missing the link")),
        fallback=DeterministicContentGenerator(),
    )
    request = ContentRequest(day=DAY, item=ITEM)

    assert generator.generate(request) == render_memo_post(DAY, ITEM)
