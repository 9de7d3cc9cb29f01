from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from basedintern.agent.contracts import GuardrailContext, TradeAction, TradeProposal
from basedintern.agent.guardrails import TradeGuardrail
from basedintern.content.dedupe import Deduplicator
from basedintern.domain.state import PersistedState

NOW = datetime(2026, 1, 30, 12, 0, tzinfo=UTC)

amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=6)
fractions = st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=4)


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    action=st.sampled_from([TradeAction.BUY, TradeAction.SELL, TradeAction.HOLD]),
    requested=st.none() | amounts,
    eth=amounts,
    token=amounts,
    max_spend=amounts,
    fraction=fractions,
    kill_switch=st.booleans(),
    trading_enabled=st.booleans(),
    trades_today=st.integers(min_value=0, max_value=5),
    cap=st.integers(min_value=0, max_value=5),
)
def test_approved_amounts_never_exceed_limits(
    action,
    requested,
    eth,
    token,
    max_spend,
    fraction,
    kill_switch,
    trading_enabled,
    trades_today,
    cap,
) -> None:
    proposal = TradeProposal(
        action=action,
        spend_amount=requested if action == TradeAction.BUY else None,
        sell_amount=requested if action == TradeAction.SELL else None,
    )
    state = PersistedState.initial(NOW).model_copy(
        update={"trades_executed_today": trades_today}
    )
    context = GuardrailContext(
        now=NOW,
        eth_balance=eth,
        token_balance=token,
        kill_switch=kill_switch,
        trading_enabled=trading_enabled,
        daily_trade_cap=cap,
        min_interval_minutes=0,
        max_spend_per_trade=max_spend,
        max_sell_fraction=fraction,
    )

    decision = TradeGuardrail().evaluate(proposal, state, context)

    if not decision.should_execute:
        assert decision.action == TradeAction.HOLD
        return
    assert not kill_switch
    assert trading_enabled
    assert trades_today < cap
    if decision.action == TradeAction.BUY:
        assert decision.buy_spend_amount is not None
        assert Decimal("0") < decision.buy_spend_amount <= min(max_spend, eth)
    else:
        assert decision.sell_amount is not None
        assert Decimal("0") < decision.sell_amount <= token * fraction


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    capacity=st.integers(min_value=1, max_value=10),
    fingerprints=st.lists(st.text(min_size=1, max_size=4), max_size=40),
)
def test_fingerprint_memory_is_bounded(capacity: int, fingerprints: list[str]) -> None:
    dedupe = Deduplicator(capacity=capacity)
    state = PersistedState.initial(NOW)

    for fingerprint in fingerprints:
        state = dedupe.remember(state, fingerprint)
        assert len(state.seen_fingerprints) <= capacity
        assert len(set(state.seen_fingerprints)) == len(state.seen_fingerprints)

    if fingerprints:
        assert dedupe.is_duplicate(state, fingerprints[-1])
