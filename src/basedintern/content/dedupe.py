from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from basedintern.domain.state import PersistedState

_URL_RE = re.compile(r"https?://\S+")
_PUNCT_RE = re.compile(r"[.,!?;:'\"()\[\]{}]")


@dataclass(frozen=True)
class Deduplicator:
    """Bounded, insertion-ordered memory of fingerprints and texts already posted.

    Eviction is FIFO: recording a fingerprint that is already remembered does not move it,
    since seeing an item again says nothing about whether it is still worth posting.
    """

    capacity: int = 50
    text_capacity: int = 10
    similarity_threshold: float = 0.75

    def __post_init__(self) -> None:
        if self.capacity < 1 or self.text_capacity < 1:
            raise ValueError("capacity must be >= 1")

    def is_duplicate(self, state: PersistedState, fingerprint: str) -> bool:
        return fingerprint in state.seen_fingerprints or (
            state.last_posted_fingerprint is not None
            and fingerprint == state.last_posted_fingerprint
        )

    def remember(self, state: PersistedState, fingerprint: str) -> PersistedState:
        seen = list(state.seen_fingerprints)
        if fingerprint not in seen:
            seen.append(fingerprint)
        return self.trimmed(state.model_copy(update={"seen_fingerprints": tuple(seen)}))

    def remember_text(self, state: PersistedState, text: str) -> PersistedState:
        texts = (*state.recent_post_texts, text)
        return self.trimmed(state.model_copy(update={"recent_post_texts": texts}))

    def trimmed(self, state: PersistedState) -> PersistedState:
        """Drop the oldest entries beyond capacity, e.g. after ``DEDUP_CAPACITY`` was lowered."""
        update: dict[str, object] = {}
        if len(state.seen_fingerprints) > self.capacity:
            update["seen_fingerprints"] = state.seen_fingerprints[-self.capacity :]
        if len(state.recent_post_texts) > self.text_capacity:
            update["recent_post_texts"] = state.recent_post_texts[-self.text_capacity :]
        if not update:
            return state
        return state.model_copy(update=update)

    def resembles_recent(self, state: PersistedState, text: str) -> bool:
        return is_too_similar(text, state.recent_post_texts, self.similarity_threshold)


def normalize_for_fingerprint(text: str) -> str:
    lowered = _URL_RE.sub("", text.lower())
    return " ".join(_PUNCT_RE.sub(" ", lowered).split())


def calculate_similarity(first: str, second: str) -> float:
    """Word-level Jaccard similarity of the normalized texts, 1.0 for identical."""
    a = normalize_for_fingerprint(first)
    b = normalize_for_fingerprint(second)
    if a == b:
        return 1.0
    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def is_too_similar(text: str, recent_texts: Iterable[str], threshold: float = 0.75) -> bool:
    return any(calculate_similarity(text, recent) >= threshold for recent in recent_texts)
