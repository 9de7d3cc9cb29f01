from __future__ import annotations

import httpx
import pytest

from basedintern.adapters.price import (
    UNKNOWN_PRICE,
    CoinGeckoPriceProvider,
    PriceResult,
    read_best_effort_price,
)
from basedintern.errors import PriceLookupError

TOKEN = "0xAbC0000000000000000000000000000000000001"


def _provider(handler) -> CoinGeckoPriceProvider:
    return CoinGeckoPriceProvider(transport=httpx.MockTransport(handler))


def test_coingecko_quote_formats_eth_price() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["contract"] = request.url.params["contract_addresses"]
        return httpx.Response(200, json={TOKEN.lower(): {"eth": 0.00001234}})

    result = _provider(handler).quote(TOKEN)

    assert result == PriceResult(text="0.000012 ETH", source="http-coingecko")
    assert seen["path"] == "/api/v3/simple/token_price/base"
    assert seen["contract"] == TOKEN.lower()


@pytest.mark.parametrize(
    "payload",
    [{}, {TOKEN.lower(): {}}, {TOKEN.lower(): {"eth": "nan"}}, {TOKEN.lower(): {"eth": 0}}],
)
def test_coingecko_unusable_payload_returns_none(payload) -> None:
    assert _provider(lambda request: httpx.Response(200, json=payload)).quote(TOKEN) is None


def test_coingecko_http_error_raises_price_lookup_error() -> None:
    provider = _provider(lambda request: httpx.Response(429, text="slow down"))

    with pytest.raises(PriceLookupError) as excinfo:
        provider.quote(TOKEN)
    assert excinfo.value.category == "rate_limit"


class _StubProvider:
    def __init__(self, name: str, result: PriceResult | None = None, fail: bool = False):
        self.name = name
        self.result = result
        self.fail = fail
        self.calls = 0

    def quote(self, token_address: str) -> PriceResult | None:
        self.calls += 1
        if self.fail:
            raise PriceLookupError("down", category="transient")
        return self.result


def test_best_effort_price_uses_first_usable_provider() -> None:
    failing = _StubProvider("a", fail=True)
    empty = _StubProvider("b")
    good = _StubProvider("c", PriceResult(text="1.000000 ETH", source="c"))
    unused = _StubProvider("d", PriceResult(text="2.000000 ETH", source="d"))

    result = read_best_effort_price([failing, empty, good, unused], TOKEN)

    assert result.source == "c"
    assert unused.calls == 0


def test_best_effort_price_falls_back_to_unknown() -> None:
    assert read_best_effort_price([_StubProvider("a", fail=True)], TOKEN) == UNKNOWN_PRICE


def test_best_effort_price_without_token_skips_providers() -> None:
    provider = _StubProvider("a", PriceResult(text="1 ETH", source="a"))

    assert read_best_effort_price([provider], None) == UNKNOWN_PRICE
    assert provider.calls == 0
