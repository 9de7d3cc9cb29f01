from __future__ import annotations

import os
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from basedintern.agent.contracts import GuardrailContext
from basedintern.config import Settings
from basedintern.content.models import ContentCandidate, PlannerContext

NOW = datetime(2026, 1, 30, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def isolate_settings_from_host_env(monkeypatch: pytest.MonkeyPatch):
    original_env_file = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    settings_env_keys = {
        field.alias for field in Settings.model_fields.values() if isinstance(field.alias, str)
    }
    settings_env_keys.update({"HTTPX_LOG_LEVEL", "HTTPCORE_LOG_LEVEL"})
    for key in list(os.environ):
        if key in settings_env_keys:
            monkeypatch.delenv(key, raising=False)

    yield

    Settings.model_config["env_file"] = original_env_file


@pytest.fixture(autouse=True)
def isolate_state_path_per_test(
    isolate_settings_from_host_env: None,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    del isolate_settings_from_host_env
    monkeypatch.setenv("STATE_PATH", str(tmp_path / "state.json"))


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_guardrail_context():
    def _make(**overrides) -> GuardrailContext:
        base = {
            "now": NOW,
            "eth_balance": Decimal("0.01"),
            "token_balance": Decimal("1000"),
            "kill_switch": False,
            "trading_enabled": True,
            "daily_trade_cap": 2,
            "min_interval_minutes": 60,
            "max_spend_per_trade": Decimal("0.0005"),
            "max_sell_fraction": Decimal("0.05"),
        }
        base.update(overrides)
        return GuardrailContext(**base)

    return _make


@pytest.fixture
def make_planner_context():
    def _make(**overrides) -> PlannerContext:
        base = {
            "now": NOW,
            "min_score": 0.5,
            "daily_cap": 2,
            "min_interval_minutes": 120,
            "source_whitelist": None,
        }
        base.update(overrides)
        return PlannerContext(**base)

    return _make


@pytest.fixture
def make_candidate():
    def _make(fingerprint: str, score: float = 0.8, **overrides) -> ContentCandidate:
        base = {
            "fingerprint": fingerprint,
            "score": score,
            "source": "rss",
            "title": f"Base ships {fingerprint}",
            "url": f"https://blog.base.org/{fingerprint}",
        }
        base.update(overrides)
        return ContentCandidate(**base)

    return _make
