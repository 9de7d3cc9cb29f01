from __future__ import annotations

import calendar
import html
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import feedparser
import httpx

from basedintern.adapters.http_errors import wrap_http_error
from basedintern.content.fingerprint import canonicalize_url, fingerprint_item
from basedintern.content.models import ContentCandidate
from basedintern.content.score import rank_candidates
from basedintern.domain.state import to_epoch_ms
from basedintern.errors import ExternalCallFailure

logger = logging.getLogger(__name__)

_ACCEPT = "application/rss+xml,application/atom+xml,text/xml,application/xml,text/plain,*/*"
_USER_AGENT = "BasedIntern/0.4 (+https://github.com/Metavibez4L/basedintern)"


@dataclass(frozen=True)
class FeedEntry:
    title: str
    url: str
    published_at_ms: int | None = None


@dataclass(frozen=True)
class FeedSource:
    url: str
    source: str = "rss"
    tags: tuple[str, ...] = ("base",)

    @classmethod
    def from_url(cls, url: str) -> FeedSource:
        """GitHub release/commit feeds are tagged as releases, everything else as plain rss."""
        lowered = url.lower()
        if "github.com/" in lowered and lowered.endswith(".atom"):
            return cls(url=url, source="github", tags=("base", "release"))
        return cls(url=url)


def _clean(value: Any) -> str:
    if not value:
        return ""
    return " ".join(html.unescape(str(value)).split())


def _entry_timestamp(entry: Any) -> int | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed is None:
        return None
    # feedparser normalizes dates to UTC struct_time
    return calendar.timegm(parsed) * 1000


def parse_feed(document: str | bytes) -> list[FeedEntry]:
    """Parse an RSS 0.9x/1.0/2.0 or Atom document; entries without a title or link are skipped.

    Raises ``ExternalCallFailure(category="reject")`` when the document is malformed and
    nothing could be recovered from it.
    """
    parsed = feedparser.parse(document)
    if parsed.bozo and not parsed.entries:
        raise ExternalCallFailure(
            f"feed document is not parseable: {parsed.get('bozo_exception')}",
            category="reject",
        )

    entries: list[FeedEntry] = []
    for entry in parsed.entries:
        title = _clean(entry.get("title"))
        url = (entry.get("link") or "").strip()
        if title and url:
            entries.append(FeedEntry(title, url, _entry_timestamp(entry)))
    return entries


def entries_to_candidates(
    entries: Iterable[FeedEntry], source: FeedSource
) -> list[ContentCandidate]:
    candidates: list[ContentCandidate] = []
    for entry in entries:
        canonical = canonicalize_url(entry.url)
        candidates.append(
            ContentCandidate(
                fingerprint=fingerprint_item(
                    source=source.source, title=entry.title, url=canonical
                ),
                source=source.source,
                title=entry.title,
                url=canonical,
                published_at_ms=entry.published_at_ms,
                tags=source.tags,
            )
        )
    return candidates


class FeedClient:
    def __init__(
        self,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.client = httpx.Client(
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
            headers={"Accept": _ACCEPT, "User-Agent": _USER_AGENT},
        )

    def fetch(self, source: FeedSource) -> list[ContentCandidate]:
        try:
            response = self.client.get(source.url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise wrap_http_error(exc, what=f"feed {source.url}") from exc
        try:
            entries = parse_feed(response.content)
        except ExternalCallFailure as exc:
            raise ExternalCallFailure(f"feed {source.url}: {exc}", category=exc.category) from exc
        return entries_to_candidates(entries, source)

    def collect(
        self, sources: Sequence[FeedSource], *, now: datetime, limit: int
    ) -> list[ContentCandidate]:
        """Fetch every source, drop repeated URLs, and return the best ``limit`` by score.

        A failing feed is logged and skipped so one dead source does not hide the others.
        """
        merged: list[ContentCandidate] = []
        seen_urls: set[str] = set()
        for source in sources:
            try:
                items = self.fetch(source)
            except ExternalCallFailure as exc:
                logger.warning(
                    "content_feed_failed",
                    extra={
                        "extra": {
                            "feed": source.url,
                            "category": exc.category,
                            "error": str(exc),
                        }
                    },
                )
                continue
            for item in items:
                if item.url in seen_urls:
                    continue
                seen_urls.add(item.url)
                merged.append(item)

        return rank_candidates(to_epoch_ms(now), merged)[:limit]

    def close(self) -> None:
        self.client.close()
