from __future__ import annotations

import hashlib

from basedintern.content.models import ContentCandidate
from basedintern.content.render import (
    MAX_POST_CHARS,
    render_memo_post,
    should_include_disclaimer,
    truncate_post,
)

DAY = "2026-01-30"


def test_disclaimer_is_stable_for_same_day_and_fingerprint() -> None:
    first = [should_include_disclaimer(DAY, f"fp-{i}") for i in range(50)]
    second = [should_include_disclaimer(DAY, f"fp-{i}") for i in range(50)]

    assert first == second


def test_disclaimer_rate_is_about_one_in_five() -> None:
    hits = sum(should_include_disclaimer(DAY, f"fingerprint-{i}") for i in range(5000))

    assert 0.16 < hits / 5000 < 0.24


def test_disclaimer_depends_on_day() -> None:
    days = [f"day-{i}" for i in range(200)]

    assert len({should_include_disclaimer(day, "same-item") for day in days}) == 2


def test_disclaimer_matches_hash_rule() -> None:
    digest = hashlib.sha256(f"{DAY}|abc".encode()).hexdigest()

    assert should_include_disclaimer(DAY, "abc") is (int(digest[:8], 16) % 5 == 0)


def test_truncate_keeps_short_text_and_cuts_long_text() -> None:
    assert truncate_post("short") == "short"

    cut = truncate_post("x" * 500)
    assert len(cut) == MAX_POST_CHARS
    assert cut.endswith("…")


def test_memo_post_contains_title_facts_and_url() -> None:
    item = ContentCandidate(
        fingerprint="fp-render",
        score=0.9,
        title="Base v2 release",
        url="https://github.com/base/node/releases/v2",
        facts=("faster blocks", "cheaper fees", "ignored third fact"),
    )

    text = render_memo_post(DAY, item)

    lines = text.splitlines()
    assert lines[0] == "based intern memo 🧾 Base v2 release"
    assert lines[1] == "faster blocks · cheaper fees"
    assert lines[2] == item.url
    assert ("NFA." in lines) is should_include_disclaimer(DAY, "fp-render")
    assert len(text) <= MAX_POST_CHARS
