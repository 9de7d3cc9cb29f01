from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from basedintern.content.dedupe import Deduplicator
from basedintern.content.models import ContentCandidate, ContentPlan, PlannerContext, PlanReason
from basedintern.domain.state import (
    PersistedState,
    day_key_of_ms,
    minutes_since,
    utc_day_key,
)


def _daily_window_reason(state: PersistedState, context: PlannerContext) -> PlanReason | None:
    """Daily mode posts once per UTC day, and only during the configured hour."""
    now = context.now if context.now.tzinfo else context.now.replace(tzinfo=UTC)
    if now.astimezone(UTC).hour != context.daily_hour_utc:
        return PlanReason.NOT_DAILY_HOUR
    last_post = state.content_last_post_at_ms
    if last_post is not None and day_key_of_ms(last_post) == utc_day_key(now):
        return PlanReason.ALREADY_POSTED_TODAY
    return None


@dataclass(frozen=True)
class ContentPlanner:
    """Picks at most one candidate per tick. Never mutates state."""

    deduplicator: Deduplicator = field(default_factory=Deduplicator)

    def plan(
        self,
        candidates: Sequence[ContentCandidate],
        state: PersistedState,
        context: PlannerContext,
    ) -> ContentPlan:
        whitelist = set(context.source_whitelist) if context.source_whitelist else None

        eligible = [
            item
            for item in candidates
            if not self.deduplicator.is_duplicate(state, item.fingerprint)
            and (whitelist is None or item.source in whitelist)
            and item.score >= context.min_score
        ]
        if not eligible:
            return ContentPlan(should_post=False, reasons=[PlanReason.NO_UNSEEN_ITEMS])

        current = state.rolled_over(context.now)
        if current.content_daily_count >= context.daily_cap:
            return ContentPlan(
                should_post=False, reasons=[PlanReason.DAILY_CAP], eligible=len(eligible)
            )

        last_post = current.content_last_post_at_ms
        if last_post is not None and (
            minutes_since(context.now, last_post) < context.min_interval_minutes
        ):
            return ContentPlan(
                should_post=False, reasons=[PlanReason.MIN_INTERVAL], eligible=len(eligible)
            )

        if context.mode == "daily":
            blocked = _daily_window_reason(current, context)
            if blocked is not None:
                return ContentPlan(should_post=False, reasons=[blocked], eligible=len(eligible))

        # max() keeps the first of equal scores, so input order breaks ties.
        chosen = max(eligible, key=lambda item: item.score)
        return ContentPlan(
            should_post=True,
            item=chosen,
            reasons=[PlanReason.SELECTED],
            eligible=len(eligible),
        )

    def record_posted(
        self,
        state: PersistedState,
        item: ContentCandidate,
        now: datetime,
        *,
        text: str | None = None,
    ) -> PersistedState:
        """State after ``item`` was confirmed delivered on at least one channel."""
        updated = self.deduplicator.remember(
            state.record_content_post(now, item.fingerprint), item.fingerprint
        )
        if text is not None:
            updated = self.deduplicator.remember_text(updated, text)
        return updated
