from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TradeAction(StrEnum):
    HOLD = "HOLD"
    BUY = "BUY"
    SELL = "SELL"


class GuardrailReason(StrEnum):
    KILL_SWITCH = "kill_switch"
    TRADING_DISABLED = "trading_disabled"
    DAILY_CAP = "daily_cap"
    MIN_INTERVAL = "min_interval"
    INSUFFICIENT_BALANCE = "insufficient_balance"


class TradeProposal(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    action: TradeAction
    rationale: str = ""
    spend_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    sell_amount: Decimal | None = Field(default=None, ge=Decimal("0"))

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class GuardrailContext(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    now: datetime
    eth_balance: Decimal = Field(ge=Decimal("0"))
    token_balance: Decimal = Field(ge=Decimal("0"))
    kill_switch: bool
    trading_enabled: bool
    daily_trade_cap: int = Field(ge=0)
    min_interval_minutes: int = Field(ge=0)
    max_spend_per_trade: Decimal = Field(ge=Decimal("0"))
    max_sell_fraction: Decimal = Field(ge=Decimal("0"), le=Decimal("1"))


class TradeDecision(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    action: TradeAction
    should_execute: bool
    blocked_reason: GuardrailReason | None = None
    rationale: str = ""
    buy_spend_amount: Decimal | None = None
    sell_amount: Decimal | None = None
    detail: str | None = None

    @property
    def blocked(self) -> bool:
        return self.blocked_reason is not None


class ProposalContext(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    wallet: str
    eth_balance: Decimal = Field(ge=Decimal("0"))
    token_balance: Decimal = Field(ge=Decimal("0"))
    price_text: str | None = None
    kill_switch: bool = True
    trading_enabled: bool = False
    dry_run: bool = True

    @property
    def safety_active(self) -> bool:
        return self.kill_switch or self.dry_run or not self.trading_enabled


class LlmProposalEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    action: TradeAction
    rationale: str = Field(min_length=1, max_length=500)

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value
