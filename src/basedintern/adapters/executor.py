from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx

from basedintern.adapters.http_errors import wrap_http_error
from basedintern.agent.contracts import TradeAction
from basedintern.errors import ExternalCallFailure, TradeExecutionError

logger = logging.getLogger(__name__)

_CONFIRMED_STATUSES = frozenset({"confirmed", "mined", "success"})


@dataclass(frozen=True)
class WalletBalances:
    eth: Decimal
    token: Decimal
    nonce: int | None = None
    block_number: int | None = None


class WalletReader(Protocol):
    def balances(self) -> WalletBalances:
        ...


class TradeExecutor(Protocol):
    def execute_buy(self, spend_amount: Decimal) -> str:
        ...

    def execute_sell(self, sell_amount: Decimal) -> str:
        ...


@dataclass(frozen=True)
class StaticWalletReader:
    """Fixed balances for dry runs."""

    eth: Decimal = Decimal("0")
    token: Decimal = Decimal("0")

    def balances(self) -> WalletBalances:
        return WalletBalances(eth=self.eth, token=self.token)


def _optional_int(payload: dict[str, object], key: str) -> int | None:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


def _parse_amount(payload: dict[str, object], key: str) -> Decimal:
    try:
        value = Decimal(str(payload[key]))
    except (KeyError, InvalidOperation) as exc:
        raise ExternalCallFailure(
            f"signer balance response missing {key!r}", category="reject"
        ) from exc
    if not value.is_finite() or value < 0:
        raise ExternalCallFailure(f"signer returned invalid {key} balance", category="reject")
    return value


class HttpSignerClient:
    """Wallet access through an external signing service.

    ``GET /balances`` returns ``{"eth": "...", "token": "..."}`` plus optional ``nonce`` and
    ``blockNumber`` for the activity watcher. ``POST /trades`` takes
    ``{"action", "amount", "wallet", "token"}`` and answers once the transaction is mined
    with ``{"txHash": "0x...", "status": "confirmed"}``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        wallet_address: str,
        token_address: str | None,
        api_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.wallet_address = wallet_address
        self.token_address = token_address
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers=headers,
        )

    def balances(self) -> WalletBalances:
        params = {"wallet": self.wallet_address}
        if self.token_address:
            params["token"] = self.token_address
        try:
            response = self.client.get("/balances", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise wrap_http_error(exc, what="signer balances") from exc
        except ValueError as exc:
            raise ExternalCallFailure(
                "signer balances returned invalid JSON", category="reject"
            ) from exc
        if not isinstance(payload, dict):
            raise ExternalCallFailure("signer balances must be a JSON object", category="reject")
        return WalletBalances(
            eth=_parse_amount(payload, "eth"),
            token=_parse_amount(payload, "token"),
            nonce=_optional_int(payload, "nonce"),
            block_number=_optional_int(payload, "blockNumber"),
        )

    def _submit(self, action: TradeAction, amount: Decimal) -> str:
        if self.token_address is None:
            raise TradeExecutionError("TOKEN_ADDRESS is required to trade", category="fatal")
        body = {
            "action": action.value,
            "amount": str(amount),
            "wallet": self.wallet_address,
            "token": self.token_address,
        }
        try:
            response = self.client.post("/trades", json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise wrap_http_error(
                exc, what=f"{action.value} submission", error_cls=TradeExecutionError
            ) from exc
        except ValueError as exc:
            raise TradeExecutionError(
                f"{action.value} response was not JSON; outcome unknown", category="uncertain"
            ) from exc

        tx_hash = payload.get("txHash") if isinstance(payload, dict) else None
        status = str(payload.get("status", "")).lower() if isinstance(payload, dict) else ""
        if not isinstance(tx_hash, str) or not tx_hash:
            raise TradeExecutionError(
                f"{action.value} response has no txHash; outcome unknown", category="uncertain"
            )
        if status not in _CONFIRMED_STATUSES:
            raise TradeExecutionError(
                f"{action.value} tx {tx_hash} not confirmed (status={status or 'missing'})",
                category="uncertain",
            )
        logger.info(
            "trade_confirmed",
            extra={"extra": {"action": action.value, "amount": str(amount), "tx_hash": tx_hash}},
        )
        return tx_hash

    def execute_buy(self, spend_amount: Decimal) -> str:
        return self._submit(TradeAction.BUY, spend_amount)

    def execute_sell(self, sell_amount: Decimal) -> str:
        return self._submit(TradeAction.SELL, sell_amount)

    def close(self) -> None:
        self.client.close()
