from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from basedintern.domain.state import PersistedState, to_epoch_ms


@dataclass(frozen=True)
class CircuitBreaker:
    """Per-channel failure counter with a cooldown window.

    The failure count stays at the threshold once reached, so after the cooldown expires a
    single further failure reopens the breaker.
    """

    failure_threshold: int = 3
    cooldown: timedelta = timedelta(minutes=30)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.cooldown < timedelta(0):
            raise ValueError("cooldown must be >= 0")

    def is_open(self, channel: str, state: PersistedState, now: datetime) -> bool:
        until = state.per_channel_disabled_until_ms.get(channel)
        return until is not None and until > to_epoch_ms(now)

    def disabled_until_ms(self, channel: str, state: PersistedState) -> int | None:
        return state.per_channel_disabled_until_ms.get(channel)

    def failure_count(self, channel: str, state: PersistedState) -> int:
        return state.per_channel_failure_count.get(channel, 0)

    def record_failure(self, channel: str, state: PersistedState, now: datetime) -> PersistedState:
        count = min(self.failure_count(channel, state) + 1, self.failure_threshold)
        failures = dict(state.per_channel_failure_count)
        failures[channel] = count
        disabled = dict(state.per_channel_disabled_until_ms)
        if count >= self.failure_threshold:
            disabled[channel] = to_epoch_ms(now + self.cooldown)
        return state.model_copy(
            update={
                "per_channel_failure_count": failures,
                "per_channel_disabled_until_ms": disabled,
            }
        )

    def record_success(self, channel: str, state: PersistedState) -> PersistedState:
        failures = dict(state.per_channel_failure_count)
        failures[channel] = 0
        disabled = dict(state.per_channel_disabled_until_ms)
        disabled[channel] = None
        return state.model_copy(
            update={
                "per_channel_failure_count": failures,
                "per_channel_disabled_until_ms": disabled,
            }
        )
