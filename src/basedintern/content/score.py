from __future__ import annotations

import math
from collections.abc import Iterable

from basedintern.content.models import ContentCandidate

_HALF_LIFE_HOURS = 24.0
_UNKNOWN_AGE_SCORE = 0.25
_RECENCY_WEIGHT = 0.72
_KEYWORD_WEIGHT = 0.28

# (title keywords, tag, boost)
_KEYWORD_BOOSTS: tuple[tuple[tuple[str, ...], str, float], ...] = (
    (("release", "releases"), "release", 0.18),
    (("upgrade", "hardfork"), "upgrade", 0.18),
    (("security", "vuln"), "security", 0.22),
    (("exploit", "hack"), "exploit", 0.25),
    (("base",), "base", 0.15),
)


def _clamp01(value: float) -> float:
    if not math.isfinite(value) or value <= 0:
        return 0.0
    return min(value, 1.0)


def recency_score(now_ms: int, published_at_ms: int | None) -> float:
    if not published_at_ms:
        return _UNKNOWN_AGE_SCORE
    age_hours = max(0, now_ms - published_at_ms) / 3_600_000
    return _clamp01(0.5 ** (age_hours / _HALF_LIFE_HOURS))


def keyword_boost(title: str, tags: Iterable[str] = ()) -> float:
    lowered = title.lower()
    tag_set = set(tags)
    boost = 0.0
    for keywords, tag, weight in _KEYWORD_BOOSTS:
        if tag in tag_set or any(keyword in lowered for keyword in keywords):
            boost += weight
    return _clamp01(boost)


def score_candidate(now_ms: int, item: ContentCandidate) -> float:
    recency = recency_score(now_ms, item.published_at_ms)
    keywords = keyword_boost(item.title, item.tags)
    return _clamp01(_RECENCY_WEIGHT * recency + _KEYWORD_WEIGHT * keywords)


def rank_candidates(now_ms: int, items: Iterable[ContentCandidate]) -> list[ContentCandidate]:
    """Score every item and sort best first (score, then newest, then fingerprint)."""
    scored = [
        item.model_copy(update={"score": score_candidate(now_ms, item)}) for item in items
    ]
    return sorted(
        scored,
        key=lambda item: (-item.score, -(item.published_at_ms or 0), item.fingerprint),
    )
