from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PlanReason(StrEnum):
    NO_UNSEEN_ITEMS = "no unseen items"
    DAILY_CAP = "daily_cap"
    MIN_INTERVAL = "min_interval"
    NOT_DAILY_HOUR = "not daily hour"
    ALREADY_POSTED_TODAY = "already posted today"
    SELECTED = "selected"


class ContentCandidate(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    fingerprint: str = Field(min_length=1)
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    source: str | None = None
    title: str = ""
    url: str = ""
    published_at_ms: int | None = None
    excerpt: str | None = None
    facts: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()


class PlannerContext(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    now: datetime
    min_score: float = Field(default=0.0, ge=0.0, le=1.0)
    daily_cap: int = Field(ge=0)
    min_interval_minutes: int = Field(ge=0)
    source_whitelist: tuple[str, ...] | None = None
    mode: Literal["event", "daily"] = "event"
    daily_hour_utc: int = Field(default=15, ge=0, le=23)


class ContentPlan(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    should_post: bool
    item: ContentCandidate | None = None
    reasons: list[str] = Field(default_factory=list)
    eligible: int = 0
