from __future__ import annotations

import pytest

from basedintern.content.dedupe import (
    Deduplicator,
    calculate_similarity,
    is_too_similar,
    normalize_for_fingerprint,
)
from basedintern.domain.state import PersistedState


def test_memory_never_exceeds_capacity_and_evicts_oldest(now) -> None:
    dedupe = Deduplicator(capacity=3)
    state = PersistedState.initial(now)

    for fingerprint in ("a", "b", "c", "d", "e"):
        state = dedupe.remember(state, fingerprint)
        assert len(state.seen_fingerprints) <= 3

    assert state.seen_fingerprints == ("c", "d", "e")
    assert dedupe.is_duplicate(state, "a") is False
    assert dedupe.is_duplicate(state, "e") is True


def test_re_remembering_does_not_refresh_position(now) -> None:
    dedupe = Deduplicator(capacity=3)
    state = PersistedState.initial(now)
    for fingerprint in ("a", "b", "c", "a", "d"):
        state = dedupe.remember(state, fingerprint)

    assert state.seen_fingerprints == ("b", "c", "d")


def test_last_posted_counts_as_duplicate(now) -> None:
    state = PersistedState.initial(now).model_copy(update={"last_posted_fingerprint": "x"})

    assert Deduplicator().is_duplicate(state, "x") is True


def test_invalid_capacity_raises() -> None:
    with pytest.raises(ValueError):
        Deduplicator(capacity=0)


def test_normalize_strips_urls_and_punctuation() -> None:
    text = "Base ships v2!  Read more: https://base.org/blog?utm=1"

    assert normalize_for_fingerprint(text) == "base ships v2 read more"


def test_similarity_is_word_jaccard() -> None:
    assert calculate_similarity("Same text here", "same text, here!") == 1.0
    assert calculate_similarity("a b c d", "a b x y") == pytest.approx(2 / 6)
    assert calculate_similarity("", "") == 1.0


def test_is_too_similar_uses_threshold() -> None:
    recent = ["base network upgrade ships today for everyone"]

    assert is_too_similar("base network upgrade ships today for everyone!", recent) is True
    assert is_too_similar("totally different words entirely", recent) is False


def test_text_memory_is_bounded_and_checked_for_similarity(now) -> None:
    dedupe = Deduplicator(text_capacity=2)
    state = PersistedState.initial(now)
    for text in ("first memo about blocks", "second memo about fees", "third memo on bridges"):
        state = dedupe.remember_text(state, text)

    assert state.recent_post_texts == ("second memo about fees", "third memo on bridges")
    assert dedupe.resembles_recent(state, "Third memo on bridges! https://base.org") is True
    assert dedupe.resembles_recent(state, "first memo about blocks") is False


def test_trimmed_applies_a_lowered_capacity(now) -> None:
    state = PersistedState.initial(now).model_copy(
        update={"seen_fingerprints": tuple(f"fp-{index}" for index in range(80))}
    )

    trimmed = Deduplicator(capacity=50).trimmed(state)

    assert len(trimmed.seen_fingerprints) == 50
    assert trimmed.seen_fingerprints[0] == "fp-30"
    assert trimmed.seen_fingerprints[-1] == "fp-79"
    assert Deduplicator(capacity=80).trimmed(state) is state
