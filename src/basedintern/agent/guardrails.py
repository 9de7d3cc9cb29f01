from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from basedintern.agent.contracts import (
    GuardrailContext,
    GuardrailReason,
    TradeAction,
    TradeDecision,
    TradeProposal,
)
from basedintern.domain.state import PersistedState, minutes_since


def _hold(
    proposal: TradeProposal, reason: GuardrailReason, detail: str | None = None
) -> TradeDecision:
    return TradeDecision(
        action=TradeAction.HOLD,
        should_execute=False,
        blocked_reason=reason,
        rationale=proposal.rationale,
        detail=detail,
    )


@dataclass(frozen=True)
class TradeGuardrail:
    """Turns a proposed trade into an approved, clamped, or blocked decision.

    Checks run in a fixed order and the first failing one wins, so the operator overrides
    (kill switch, global disable) are decided before any state is consulted. Never mutates
    the state it is given and never raises for a policy outcome.
    """

    def evaluate(
        self,
        proposal: TradeProposal,
        state: PersistedState,
        context: GuardrailContext,
    ) -> TradeDecision:
        if context.kill_switch:
            return _hold(proposal, GuardrailReason.KILL_SWITCH)
        if not context.trading_enabled:
            return _hold(proposal, GuardrailReason.TRADING_DISABLED)

        if proposal.action == TradeAction.HOLD:
            return TradeDecision(
                action=TradeAction.HOLD,
                should_execute=False,
                rationale=proposal.rationale,
            )

        current = state.rolled_over(context.now)
        if current.trades_executed_today >= context.daily_trade_cap:
            return _hold(
                proposal,
                GuardrailReason.DAILY_CAP,
                f"{current.trades_executed_today}/{context.daily_trade_cap}",
            )

        if current.last_executed_trade_at_ms is not None:
            elapsed = minutes_since(context.now, current.last_executed_trade_at_ms)
            if elapsed < context.min_interval_minutes:
                return _hold(
                    proposal,
                    GuardrailReason.MIN_INTERVAL,
                    f"{elapsed:.1f}m < {context.min_interval_minutes}m",
                )

        if proposal.action == TradeAction.BUY:
            return self._evaluate_buy(proposal, context)
        return self._evaluate_sell(proposal, context)

    @staticmethod
    def _evaluate_buy(proposal: TradeProposal, context: GuardrailContext) -> TradeDecision:
        requested = (
            proposal.spend_amount
            if proposal.spend_amount is not None
            else context.max_spend_per_trade
        )
        spend = min(requested, context.max_spend_per_trade, context.eth_balance)
        if spend <= Decimal("0"):
            return _hold(proposal, GuardrailReason.INSUFFICIENT_BALANCE, "no spendable ETH")
        return TradeDecision(
            action=TradeAction.BUY,
            should_execute=True,
            rationale=proposal.rationale,
            buy_spend_amount=spend,
        )

    @staticmethod
    def _evaluate_sell(proposal: TradeProposal, context: GuardrailContext) -> TradeDecision:
        ceiling = context.token_balance * context.max_sell_fraction
        requested = proposal.sell_amount if proposal.sell_amount is not None else ceiling
        amount = min(requested, ceiling)
        if amount <= Decimal("0"):
            return _hold(
                proposal, GuardrailReason.INSUFFICIENT_BALANCE, "no token to sell at fraction cap"
            )
        return TradeDecision(
            action=TradeAction.SELL,
            should_execute=True,
            rationale=proposal.rationale,
            sell_amount=amount,
        )
