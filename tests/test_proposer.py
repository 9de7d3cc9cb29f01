from __future__ import annotations

from decimal import Decimal

import pytest

from basedintern.agent.contracts import ProposalContext, TradeAction
from basedintern.agent.proposer import (
    FallbackProposer,
    LlmProposalError,
    LlmProposer,
    RuleBasedProposer,
    extract_json_object,
)

WALLET = "0x1111111111111111111111111111111111111111"


def _context(**overrides) -> ProposalContext:
    base = {
        "wallet": WALLET,
        "eth_balance": Decimal("0.01"),
        "token_balance": Decimal("0"),
        "price_text": None,
        "kill_switch": False,
        "trading_enabled": True,
        "dry_run": False,
    }
    base.update(overrides)
    return ProposalContext(**base)


class _FakeClient:
    def __init__(self, response: str | Exception) -> None:
        self.response = response
        self.prompts: list[str] = []

    def complete(self, prompt: str, *, system: str, timeout_seconds: float) -> str:
        self.prompts.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.mark.parametrize(
    "overrides",
    [{"kill_switch": True}, {"dry_run": True}, {"trading_enabled": False}],
)
def test_rule_based_holds_when_any_safety_flag_is_set(overrides) -> None:
    proposal = RuleBasedProposer().propose(_context(**overrides))

    assert proposal.action is TradeAction.HOLD


def test_rule_based_buys_without_tokens_and_sells_with_tokens() -> None:
    proposer = RuleBasedProposer()

    assert proposer.propose(_context()).action is TradeAction.BUY
    assert proposer.propose(_context(token_balance=Decimal("10"))).action is TradeAction.SELL


def test_extract_json_object_strips_prose() -> None:
    assert extract_json_object('sure! {"a": {"b": 1}} thanks') == '{"a": {"b": 1}}'
    with pytest.raises(LlmProposalError):
        extract_json_object("no json here")


def test_llm_proposer_parses_envelope() -> None:
    client = _FakeClient('```json\n{"action": "sell", "rationale": "take a little off"}\n```')

    proposal = LlmProposer(client).propose(_context(price_text="1 ETH"))

    assert proposal.action is TradeAction.SELL
    assert proposal.rationale == "take a little off"
    assert '"price":"1 ETH"' in client.prompts[0]


@pytest.mark.parametrize(
    "response",
    [
        '{"action": "YOLO", "rationale": "x"}',
        '{"action": "BUY", "rationale": ""}',
        '{"action": "BUY", "rationale": "x", "size": 5}',
        "not json",
        RuntimeError("timeout"),
    ],
)
def test_llm_proposer_rejects_bad_output(response) -> None:
    with pytest.raises(LlmProposalError):
        LlmProposer(_FakeClient(response)).propose(_context())


def test_fallback_proposer_uses_rules_when_llm_fails(caplog) -> None:
    proposer = FallbackProposer(
        primary=LlmProposer(_FakeClient(RuntimeError("down"))), fallback=RuleBasedProposer()
    )

    with caplog.at_level("WARNING"):
        proposal = proposer.propose(_context(kill_switch=True))

    assert proposal.action is TradeAction.HOLD
    assert any(record.getMessage() == "trade_proposer_primary_failed" for record in caplog.records)
