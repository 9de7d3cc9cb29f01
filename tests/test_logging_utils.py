from __future__ import annotations

import json
import logging
import sys

import pytest

from basedintern.logging_context import bind_log_context, current_log_context, tick_scope
from basedintern.logging_utils import JsonFormatter, setup_logging


def _record(msg: str = "hello", *, level: int = logging.INFO, exc_info=None, args=()):
    return logging.LogRecord(
        name="basedintern.test",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


def test_json_formatter_includes_exception_details() -> None:
    formatter = JsonFormatter()

    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("tick_failed", level=logging.ERROR, exc_info=sys.exc_info())
        rendered = formatter.format(record)

    payload = json.loads(rendered)
    assert payload["message"] == "tick_failed"
    assert payload["error_type"] == "ValueError"
    assert payload["error_message"] == "boom"
    assert "ValueError: boom" in payload["traceback"]


def test_json_formatter_merges_extra_payload() -> None:
    record = _record("content_posted")
    record.extra = {"fingerprint": "abc", "channels": ["x_api"]}

    payload = json.loads(JsonFormatter().format(record))

    assert payload["fingerprint"] == "abc"
    assert payload["channels"] == ["x_api"]


def test_json_formatter_includes_correlation_fields_even_when_unset() -> None:
    payload = json.loads(JsonFormatter().format(_record()))

    for field in ("run_id", "tick_id", "channel", "action"):
        assert field in payload
        assert payload[field] is None


def test_json_formatter_uses_logging_context() -> None:
    with tick_scope("run-1", "tick-1"):
        with bind_log_context(channel="moltbook"):
            payload = json.loads(JsonFormatter().format(_record()))

    assert payload["run_id"] == "run-1"
    assert payload["tick_id"] == "tick-1"
    assert payload["channel"] == "moltbook"
    assert current_log_context() == {}


def test_log_context_none_keeps_enclosing_value() -> None:
    with bind_log_context(channel="x_api", action="BUY"):
        with bind_log_context(channel=None, action="SELL"):
            assert current_log_context() == {"channel": "x_api", "action": "SELL"}
        assert current_log_context() == {"channel": "x_api", "action": "BUY"}


def test_log_context_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError):
        with bind_log_context(symbol="BTC"):
            pass


def test_json_formatter_redacts_secrets() -> None:
    record = _record("Authorization: Bearer %s", args=("TOPSECRET123456",))
    record.extra = {"api_key": "sk-live-abcdefgh1234", "safe": "ok"}

    rendered = JsonFormatter().format(record)

    assert "TOPSECRET123456" not in rendered
    assert "sk-live-abcdefgh1234" not in rendered
    assert json.loads(rendered)["safe"] == "ok"


def test_json_formatter_keeps_tx_hashes_visible() -> None:
    tx_hash = "0x" + "ab" * 32
    record = _record("trade_executed")
    record.extra = {"tx_hash": tx_hash}

    assert json.loads(JsonFormatter().format(record))["tx_hash"] == tx_hash


def test_setup_logging_uses_log_level_env(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    setup_logging()

    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_quiets_http_loggers_at_info() -> None:
    setup_logging("INFO")

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_setup_logging_debug_enables_http_debug() -> None:
    setup_logging("DEBUG")

    assert logging.getLogger("httpx").level == logging.DEBUG
    assert logging.getLogger("httpcore").level == logging.DEBUG


def test_setup_logging_respects_http_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("HTTPX_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("HTTPCORE_LOG_LEVEL", "CRITICAL")

    setup_logging("INFO")

    assert logging.getLogger("httpx").level == logging.ERROR
    assert logging.getLogger("httpcore").level == logging.CRITICAL
