from basedintern.agent.circuit_breaker import CircuitBreaker
from basedintern.agent.contracts import (
    GuardrailContext,
    GuardrailReason,
    ProposalContext,
    TradeAction,
    TradeDecision,
    TradeProposal,
)
from basedintern.agent.guardrails import TradeGuardrail
from basedintern.agent.proposer import (
    FallbackProposer,
    LlmProposer,
    RuleBasedProposer,
    TradeProposer,
)

__all__ = [
    "CircuitBreaker",
    "FallbackProposer",
    "GuardrailContext",
    "GuardrailReason",
    "LlmProposer",
    "ProposalContext",
    "RuleBasedProposer",
    "TradeAction",
    "TradeDecision",
    "TradeGuardrail",
    "TradeProposal",
    "TradeProposer",
]
