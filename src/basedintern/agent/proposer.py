from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from basedintern.agent.contracts import (
    LlmProposalEnvelope,
    ProposalContext,
    TradeAction,
    TradeProposal,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    'You are "Based Intern": deadpan, underpaid, compliance-friendly. '
    "You produce one of: BUY, SELL, HOLD. Keep reasoning short and practical. "
    "Never encourage risky behavior. If trading is disabled, default to HOLD. "
    "The runtime enforces guardrails on whatever you propose. "
    'Return STRICT JSON only: {"action": "BUY"|"SELL"|"HOLD", "rationale": "..."}. '
    "No markdown."
)


class TradeProposer(Protocol):
    def propose(self, context: ProposalContext) -> TradeProposal:
        ...


class LlmClient(Protocol):
    def complete(self, prompt: str, *, system: str, timeout_seconds: float) -> str:
        ...


class LlmProposalError(RuntimeError):
    pass


@dataclass(frozen=True)
class RuleBasedProposer:
    """Deterministic, conservative proposals; only leaves HOLD when live trading is armed."""

    def propose(self, context: ProposalContext) -> TradeProposal:
        if context.safety_active:
            return TradeProposal(
                action=TradeAction.HOLD,
                rationale="Safety mode active (or trading disabled). Holding.",
            )
        if context.token_balance == 0:
            return TradeProposal(
                action=TradeAction.BUY,
                rationale="No INTERN balance. Proposing a tiny buy (guardrails will cap).",
            )
        return TradeProposal(
            action=TradeAction.SELL,
            rationale="Have INTERN balance. Proposing a small sell (fraction capped).",
        )


def extract_json_object(text: str) -> str:
    """Return the outermost ``{...}`` of ``text``; models like to wrap JSON in prose."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise LlmProposalError("llm response has no JSON object")
    return text[start : end + 1]


@dataclass(frozen=True)
class LlmProposer:
    client: LlmClient
    timeout_seconds: float = 10.0

    def build_prompt(self, context: ProposalContext) -> str:
        compact = {
            "wallet": context.wallet,
            "eth_balance": str(context.eth_balance),
            "token_balance": str(context.token_balance),
            "price": context.price_text or "unknown",
            "trading_enabled": context.trading_enabled,
            "kill_switch": context.kill_switch,
            "dry_run": context.dry_run,
        }
        return "Context:" + json.dumps(compact, separators=(",", ":"), sort_keys=True)

    def propose(self, context: ProposalContext) -> TradeProposal:
        try:
            response = self.client.complete(
                self.build_prompt(context),
                system=SYSTEM_PROMPT,
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            raise LlmProposalError(f"llm request failed: {type(exc).__name__}") from exc

        try:
            envelope = LlmProposalEnvelope.model_validate_json(extract_json_object(response))
        except ValidationError as exc:
            raise LlmProposalError("llm response failed schema validation") from exc

        logger.debug(
            "trade_llm_proposal",
            extra={"extra": {"action": envelope.action.value}},
        )
        return TradeProposal(action=envelope.action, rationale=envelope.rationale)


@dataclass(frozen=True)
class FallbackProposer:
    primary: TradeProposer
    fallback: TradeProposer

    def propose(self, context: ProposalContext) -> TradeProposal:
        try:
            return self.primary.propose(context)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "trade_proposer_primary_failed",
                extra={"extra": {"error_type": type(exc).__name__, "error": str(exc)}},
            )
            return self.fallback.propose(context)
