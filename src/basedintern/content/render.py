from __future__ import annotations

import hashlib

from basedintern.content.models import ContentCandidate

MAX_POST_CHARS = 240
_ELLIPSIS = "…"


def truncate_post(text: str, limit: int = MAX_POST_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(_ELLIPSIS)].rstrip() + _ELLIPSIS


def should_include_disclaimer(day: str, fingerprint: str | None) -> bool:
    """Deterministic roughly 1-in-5 choice keyed on ``(day, fingerprint)``."""
    key = f"{day}|{fingerprint or ''}"
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % 5 == 0


def render_memo_post(day: str, item: ContentCandidate) -> str:
    lines = [f"based intern memo 🧾 {item.title}".rstrip()]

    facts = [fact.strip() for fact in item.facts if fact.strip()][:2]
    if facts:
        lines.append(" · ".join(facts))

    if item.url:
        lines.append(item.url)

    if should_include_disclaimer(day, item.fingerprint or item.url):
        lines.append("NFA.")

    return truncate_post("\n".join(lines))
