from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CURRENT_SCHEMA_VERSION = 5


def utc_day_key(moment: datetime) -> str:
    """Calendar day of ``moment`` in UTC, e.g. ``2026-01-30``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%d")


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


def day_key_of_ms(epoch_ms: int) -> str:
    return utc_day_key(datetime.fromtimestamp(epoch_ms / 1000, UTC))


def minutes_since(now: datetime, earlier_ms: int) -> float:
    return (to_epoch_ms(now) - earlier_ms) / 60_000


def _today() -> str:
    return utc_day_key(datetime.now(UTC))


class PersistedState(BaseModel):
    """Everything the policy layer remembers between ticks.

    Serialized with camelCase keys. Keys this model does not declare (legacy fields from
    earlier schema versions, or fields written by a newer partial rollout) are kept in
    ``model_extra`` and written back unchanged.

    Every mutator returns a new instance; callers persist the result themselves.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    schema_version: int = CURRENT_SCHEMA_VERSION
    day_key: str = Field(default_factory=_today)
    trades_executed_today: int = Field(default=0, ge=0)
    last_executed_trade_at_ms: int | None = None

    content_day_key: str | None = None
    content_daily_count: int = Field(default=0, ge=0)
    content_last_post_at_ms: int | None = None
    seen_fingerprints: tuple[str, ...] = ()
    last_posted_fingerprint: str | None = None
    recent_post_texts: tuple[str, ...] = ()

    per_channel_failure_count: dict[str, int] = Field(default_factory=dict)
    per_channel_disabled_until_ms: dict[str, int | None] = Field(default_factory=dict)

    last_posted_receipt_fingerprint: str | None = None
    last_post_day_utc: str | None = None

    # Activity watcher cursors; wei and raw token units are kept as decimal strings.
    last_seen_nonce: int | None = None
    last_seen_eth_wei: str | None = None
    last_seen_token_raw: str | None = None
    last_seen_block_number: int | None = None

    @classmethod
    def initial(cls, now: datetime) -> PersistedState:
        return cls(day_key=utc_day_key(now))

    def to_record(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)

    def rolled_over(self, now: datetime) -> PersistedState:
        """Reset daily counters whose stored day differs from ``now``'s UTC day."""
        today = utc_day_key(now)
        update: dict[str, object] = {}
        if self.day_key != today:
            update["day_key"] = today
            update["trades_executed_today"] = 0
        if self.content_day_key != today:
            update["content_day_key"] = today
            update["content_daily_count"] = 0
        if not update:
            return self
        return self.model_copy(update=update)

    def record_trade(self, at: datetime) -> PersistedState:
        current = self.rolled_over(at)
        return current.model_copy(
            update={
                "trades_executed_today": current.trades_executed_today + 1,
                "last_executed_trade_at_ms": to_epoch_ms(at),
            }
        )

    def record_content_post(self, at: datetime, fingerprint: str) -> PersistedState:
        current = self.rolled_over(at)
        return current.model_copy(
            update={
                "content_daily_count": current.content_daily_count + 1,
                "content_last_post_at_ms": to_epoch_ms(at),
                "last_posted_fingerprint": fingerprint,
            }
        )

    def record_receipt_post(self, at: datetime, fingerprint: str) -> PersistedState:
        return self.model_copy(
            update={
                "last_posted_receipt_fingerprint": fingerprint,
                "last_post_day_utc": utc_day_key(at),
            }
        )
