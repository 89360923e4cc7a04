from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest

from refuel.providers.coingecko import CoingeckoProvider


@pytest.fixture
def provider(monkeypatch) -> CoingeckoProvider:
    provider = CoingeckoProvider()
    monkeypatch.setattr(provider, "ready", AsyncMock(return_value=True))
    return provider


@pytest.mark.asyncio
async def test_price_is_decimal_and_cached(provider):
    provider._fetch_simple_price = AsyncMock(return_value={"ethereum": {"usd": 2500.5}})

    first = await provider.get_usd_price("eth")
    second = await provider.get_usd_price("ETH")

    assert first == Decimal("2500.5")
    assert second == first
    provider._fetch_simple_price.assert_awaited_once_with("ethereum")


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"solana": {"usd": 0}}, {"solana": {"usd": "abc"}}])
async def test_missing_or_zero_price_is_none(provider, payload):
    provider._fetch_simple_price = AsyncMock(return_value=payload)

    assert await provider.get_usd_price("SOL") is None


@pytest.mark.asyncio
async def test_http_failure_is_none(provider):
    provider._fetch_simple_price = AsyncMock(side_effect=httpx.ConnectError("down"))

    assert await provider.get_usd_price("SOL") is None


@pytest.mark.asyncio
async def test_unknown_symbol_is_none(provider):
    provider._fetch_simple_price = AsyncMock()

    assert await provider.get_usd_price("DOGE") is None
    provider._fetch_simple_price.assert_not_awaited()
