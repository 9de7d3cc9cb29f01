from __future__ import annotations

import hashlib
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_STRIP_QUERY_KEYS = frozenset(
    {
        "gclid",
        "fbclid",
        "ref",
        "source",
        "campaign",
        "mc_cid",
        "mc_eid",
    }
)


def normalize_title(title: str) -> str:
    return " ".join(title.split()).lower()


def canonicalize_url(raw_url: str) -> str:
    """Stable form of ``raw_url`` for dedupe: no fragment, no tracking params, sorted query."""
    candidate = raw_url.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return candidate
    if not parts.scheme or not parts.netloc:
        return candidate

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key.lower() not in _STRIP_QUERY_KEYS and not key.lower().startswith("utm_")
    ]
    query.sort(key=lambda pair: pair[0])

    path = parts.path
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    if not path:
        path = "/"

    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, urlencode(query), "")
    )


def fingerprint_item(*, source: str, title: str, url: str) -> str:
    data = f"{source}|{normalize_title(title)}|{canonicalize_url(url)}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
