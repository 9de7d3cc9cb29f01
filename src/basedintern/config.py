from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from basedintern.agent.contracts import GuardrailContext
from basedintern.content.models import PlannerContext

SOCIAL_CHANNELS = ("x_api", "moltbook")


def secret_value(value: SecretStr | None) -> str | None:
    if value is None:
        return None
    return value.get_secret_value() or None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    kill_switch: bool = Field(default=True, alias="KILL_SWITCH")
    trading_enabled: bool = Field(default=False, alias="TRADING_ENABLED")
    dry_run: bool = Field(default=True, alias="DRY_RUN")
    loop_minutes: int = Field(default=30, alias="LOOP_MINUTES")

    daily_trade_cap: int = Field(default=2, alias="DAILY_TRADE_CAP")
    min_interval_minutes: int = Field(default=60, alias="MIN_INTERVAL_MINUTES")
    max_spend_eth_per_trade: Decimal = Field(
        default=Decimal("0.0005"), alias="MAX_SPEND_ETH_PER_TRADE"
    )
    sell_fraction_bps: int = Field(default=500, alias="SELL_FRACTION_BPS")

    content_enabled: bool = Field(default=True, alias="CONTENT_ENABLED")
    content_max_posts_per_day: int = Field(default=2, alias="CONTENT_MAX_POSTS_PER_DAY")
    content_min_interval_minutes: int = Field(default=120, alias="CONTENT_MIN_INTERVAL_MINUTES")
    content_min_score: float = Field(default=0.5, alias="CONTENT_MIN_SCORE")
    content_require_link: bool = Field(default=True, alias="CONTENT_REQUIRE_LINK")
    content_max_items: int = Field(default=25, alias="CONTENT_MAX_ITEMS")
    content_source_whitelist: Annotated[list[str], NoDecode] = Field(
        default_factory=list, alias="CONTENT_SOURCE_WHITELIST"
    )
    content_feeds: Annotated[list[str], NoDecode] = Field(
        default_factory=list, alias="CONTENT_FEEDS"
    )
    content_mode: Literal["event", "daily"] = Field(default="event", alias="CONTENT_MODE")
    content_daily_hour_utc: int = Field(default=15, alias="CONTENT_DAILY_HOUR_UTC")

    circuit_breaker_failure_threshold: int = Field(
        default=3, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    circuit_breaker_cooldown_minutes: int = Field(
        default=30, alias="CIRCUIT_BREAKER_COOLDOWN_MINUTES"
    )
    dedup_capacity: int = Field(default=50, alias="DEDUP_CAPACITY")
    recent_text_capacity: int = Field(default=10, alias="RECENT_TEXT_CAPACITY")
    similarity_threshold: float = Field(default=0.75, alias="CONTENT_SIMILARITY_THRESHOLD")

    min_eth_delta: Decimal = Field(default=Decimal("0.00001"), alias="MIN_ETH_DELTA")
    min_token_delta: Decimal = Field(default=Decimal("1000"), alias="MIN_TOKEN_DELTA")
    token_decimals: int = Field(default=18, alias="TOKEN_DECIMALS")

    state_path: str = Field(default="data/state.json", alias="STATE_PATH")

    social_mode: Literal["none", "x_api", "moltbook", "multi"] = Field(
        default="none", alias="SOCIAL_MODE"
    )
    social_multi_targets: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["x_api"], alias="SOCIAL_MULTI_TARGETS"
    )
    x_api_key: SecretStr | None = Field(default=None, alias="X_API_KEY")
    x_api_secret: SecretStr | None = Field(default=None, alias="X_API_SECRET")
    x_access_token: SecretStr | None = Field(default=None, alias="X_ACCESS_TOKEN")
    x_access_secret: SecretStr | None = Field(default=None, alias="X_ACCESS_SECRET")
    moltbook_api_key: SecretStr | None = Field(default=None, alias="MOLTBOOK_API_KEY")
    moltbook_base_url: str = Field(
        default="https://www.moltbook.com/api/v1", alias="MOLTBOOK_BASE_URL"
    )
    moltbook_submolt: str = Field(default="general", alias="MOLTBOOK_SUBMOLT")

    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")

    wallet_address: str = Field(
        default="0x0000000000000000000000000000000000000000", alias="WALLET_ADDRESS"
    )
    token_address: str | None = Field(default=None, alias="TOKEN_ADDRESS")
    trade_executor_url: str | None = Field(default=None, alias="TRADE_EXECUTOR_URL")
    trade_executor_token: SecretStr | None = Field(default=None, alias="TRADE_EXECUTOR_TOKEN")
    dry_run_eth_balance: Decimal = Field(default=Decimal("0.01"), alias="DRY_RUN_ETH_BALANCE")
    dry_run_token_balance: Decimal = Field(default=Decimal("0"), alias="DRY_RUN_TOKEN_BALANCE")

    http_timeout_seconds: float = Field(default=10.0, alias="HTTP_TIMEOUT_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator(
        "content_source_whitelist", "content_feeds", "social_multi_targets", mode="before"
    )
    def parse_list(cls, value: str | list[str]) -> list[str]:
        items: list[object]
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return []
            if raw.startswith("{"):
                raise ValueError("list settings given as JSON must be a JSON list")
            if raw.startswith("["):
                items = json.loads(raw)
            else:
                items = raw.split(",")
        else:
            items = value

        normalized: list[str] = []
        seen: set[str] = set()
        for item in items:
            candidate = str(item).strip().strip('"').strip("'").strip() if item is not None else ""
            if not candidate or candidate in seen:
                continue
            seen.add(candidate)
            normalized.append(candidate)
        return normalized

    @field_validator("social_multi_targets")
    def validate_multi_targets(cls, value: list[str]) -> list[str]:
        unknown = [target for target in value if target not in SOCIAL_CHANNELS]
        if unknown:
            raise ValueError(f"SOCIAL_MULTI_TARGETS has unknown channels: {','.join(unknown)}")
        return value

    @field_validator(
        "daily_trade_cap",
        "min_interval_minutes",
        "content_max_posts_per_day",
        "content_min_interval_minutes",
        "circuit_breaker_cooldown_minutes",
    )
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("caps and intervals must be >= 0")
        return value

    @field_validator("loop_minutes", "content_max_items")
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("LOOP_MINUTES and CONTENT_MAX_ITEMS must be > 0")
        return value

    @field_validator(
        "circuit_breaker_failure_threshold", "dedup_capacity", "recent_text_capacity"
    )
    def validate_at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("thresholds and capacities must be >= 1")
        return value

    @field_validator("content_daily_hour_utc")
    def validate_daily_hour(cls, value: int) -> int:
        if value < 0 or value > 23:
            raise ValueError("CONTENT_DAILY_HOUR_UTC must be within 0..23")
        return value

    @field_validator("token_decimals")
    def validate_token_decimals(cls, value: int) -> int:
        if value < 0 or value > 36:
            raise ValueError("TOKEN_DECIMALS must be within 0..36")
        return value

    @field_validator("sell_fraction_bps")
    def validate_sell_fraction_bps(cls, value: int) -> int:
        if value < 0 or value > 10_000:
            raise ValueError("SELL_FRACTION_BPS must be within 0..10000")
        return value

    @field_validator("content_min_score", "similarity_threshold")
    def validate_unit_interval(cls, value: float) -> float:
        if value < 0.0 or value > 1.0:
            raise ValueError("scores and similarity thresholds must be within 0..1")
        return value

    @field_validator(
        "max_spend_eth_per_trade",
        "dry_run_eth_balance",
        "dry_run_token_balance",
        "min_eth_delta",
        "min_token_delta",
    )
    def validate_non_negative_amount(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("amounts must be >= 0")
        return value

    @field_validator("http_timeout_seconds")
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be > 0")
        return value

    @property
    def max_sell_fraction(self) -> Decimal:
        return Decimal(self.sell_fraction_bps) / Decimal(10_000)

    def social_channels(self) -> list[str]:
        if self.social_mode == "none":
            return []
        if self.social_mode == "multi":
            return list(self.social_multi_targets)
        return [self.social_mode]

    def is_live_trading_armed(self) -> bool:
        return self.trading_enabled and not self.kill_switch and not self.dry_run

    def guardrail_context(
        self, *, now: datetime, eth_balance: Decimal, token_balance: Decimal
    ) -> GuardrailContext:
        return GuardrailContext(
            now=now,
            eth_balance=eth_balance,
            token_balance=token_balance,
            kill_switch=self.kill_switch,
            trading_enabled=self.trading_enabled,
            daily_trade_cap=self.daily_trade_cap,
            min_interval_minutes=self.min_interval_minutes,
            max_spend_per_trade=self.max_spend_eth_per_trade,
            max_sell_fraction=self.max_sell_fraction,
        )

    def planner_context(self, *, now: datetime) -> PlannerContext:
        return PlannerContext(
            now=now,
            min_score=self.content_min_score,
            daily_cap=self.content_max_posts_per_day,
            min_interval_minutes=self.content_min_interval_minutes,
            source_whitelist=tuple(self.content_source_whitelist) or None,
            mode=self.content_mode,
            daily_hour_utc=self.content_daily_hour_utc,
        )
