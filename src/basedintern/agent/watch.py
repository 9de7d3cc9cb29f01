from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING

from basedintern.domain.state import PersistedState

if TYPE_CHECKING:
    from basedintern.adapters.executor import WalletBalances

ETH_DECIMALS = 18


def to_raw_units(amount: Decimal, decimals: int) -> int:
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


@dataclass(frozen=True)
class ActivityReport:
    changed: bool
    reasons: tuple[str, ...]
    state: PersistedState


@dataclass(frozen=True)
class ActivityWatcher:
    """Detects wallet activity between ticks by comparing balances with stored cursors.

    A change counts when the nonce moved, or when the ETH or token balance moved by at least
    the configured minimum. The first observation only seeds the cursors.
    """

    min_eth_delta: Decimal = Decimal("0.00001")
    min_token_delta: Decimal = Decimal("1000")
    token_decimals: int = 18

    def observe(self, balances: WalletBalances, state: PersistedState) -> ActivityReport:
        reasons: list[str] = []
        update: dict[str, object] = {}

        if balances.nonce is not None:
            update["last_seen_nonce"] = balances.nonce
            previous_nonce = state.last_seen_nonce
            if previous_nonce is not None and balances.nonce != previous_nonce:
                reasons.append(f"nonce changed: {previous_nonce} -> {balances.nonce}")

        eth_wei = to_raw_units(balances.eth, ETH_DECIMALS)
        update["last_seen_eth_wei"] = str(eth_wei)
        eth_delta = _delta(state.last_seen_eth_wei, eth_wei)
        if eth_delta and eth_delta >= to_raw_units(self.min_eth_delta, ETH_DECIMALS):
            reasons.append(f"ETH balance changed by {eth_delta} wei")

        token_raw = to_raw_units(balances.token, self.token_decimals)
        update["last_seen_token_raw"] = str(token_raw)
        token_delta = _delta(state.last_seen_token_raw, token_raw)
        if token_delta and token_delta >= to_raw_units(self.min_token_delta, self.token_decimals):
            reasons.append(f"token balance changed by {token_delta} raw")

        if balances.block_number is not None:
            update["last_seen_block_number"] = balances.block_number

        updated = state.model_copy(update=update)
        if updated == state:
            updated = state
        return ActivityReport(changed=bool(reasons), reasons=tuple(reasons), state=updated)

    def rebaseline(self, state: PersistedState) -> PersistedState:
        """Forget the balance cursors after a trade of our own, so it is not seen as activity."""
        return state.model_copy(
            update={
                "last_seen_nonce": None,
                "last_seen_eth_wei": None,
                "last_seen_token_raw": None,
            }
        )


def _delta(previous: str | None, current: int) -> int:
    if previous is None:
        return 0
    try:
        return abs(current - int(previous))
    except ValueError:
        # unreadable cursor; reseed without reporting activity
        return 0
