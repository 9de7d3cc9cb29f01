from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx

from basedintern.adapters.http_errors import wrap_http_error
from basedintern.errors import PriceLookupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceResult:
    text: str | None
    source: str


UNKNOWN_PRICE = PriceResult(text=None, source="unknown")


class PriceProvider(Protocol):
    name: str

    def quote(self, token_address: str) -> PriceResult | None:
        """Return a quote, ``None`` when this provider cannot price the token."""
        ...


class CoinGeckoPriceProvider:
    name = "http-coingecko"
    BASE_URL = "https://api.coingecko.com/api/v3"

    def __init__(
        self,
        *,
        platform: str = "base",
        base_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.platform = platform
        self.client = httpx.Client(
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def quote(self, token_address: str) -> PriceResult | None:
        token = token_address.lower()
        try:
            response = self.client.get(
                f"/simple/token_price/{self.platform}",
                params={"contract_addresses": token, "vs_currencies": "eth"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise wrap_http_error(exc, what="coingecko price", error_cls=PriceLookupError) from exc
        except ValueError as exc:
            raise PriceLookupError("coingecko returned invalid JSON", category="reject") from exc

        entry = data.get(token) if isinstance(data, dict) else None
        raw_price = entry.get("eth") if isinstance(entry, dict) else None
        if raw_price is None or isinstance(raw_price, bool):
            return None
        try:
            price = Decimal(str(raw_price))
        except InvalidOperation:
            return None
        if not price.is_finite() or price <= 0:
            return None
        return PriceResult(text=f"{price:.6f} ETH", source=self.name)

    def close(self) -> None:
        self.client.close()


def read_best_effort_price(
    providers: Sequence[PriceProvider], token_address: str | None
) -> PriceResult:
    """Ask each provider in order; the first usable quote wins, otherwise ``unknown``."""
    if not token_address:
        return UNKNOWN_PRICE
    for provider in providers:
        try:
            result = provider.quote(token_address)
        except PriceLookupError as exc:
            logger.warning(
                "price_provider_failed",
                extra={
                    "extra": {
                        "provider": provider.name,
                        "category": exc.category,
                        "error": str(exc),
                    }
                },
            )
            continue
        if result is not None and result.text:
            return result
    return UNKNOWN_PRICE
