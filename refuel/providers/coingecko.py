import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from ..cache import TTLCache
from ..config import settings
from .base import PriceOracle

logger = logging.getLogger(__name__)

# Native asset symbol -> Coingecko coin id
SYMBOL_TO_COINGECKO_ID: Dict[str, str] = {
    "ETH": "ethereum",
    "SOL": "solana",
}


class CoingeckoProvider(PriceOracle):
    """Coingecko API provider for native asset prices"""

    name = "coingecko"
    timeout_s = 15

    def __init__(self, cache: Optional[TTLCache] = None):
        self.api_key = settings.coingecko_api_key
        self.base_url = "https://api.coingecko.com/api/v3"
        self._cache = cache or TTLCache(default_ttl=settings.price_cache_ttl_seconds)

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    async def ready(self) -> bool:
        return settings.enable_coingecko  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {
                "status": "unavailable",
                "reason": "Provider disabled"
            }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/ping",
                    headers=self._build_headers(),
                    timeout=self.timeout_s
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _fetch_simple_price(self, coin_id: str) -> Dict[str, Any]:
        params = {
            "ids": coin_id,
            "vs_currencies": "usd",
            "include_market_cap": "false",
            "include_24hr_vol": "false",
            "include_24hr_change": "false"
        }

        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.base_url}/simple/price",
                headers=self._build_headers(),
                params=params,
                timeout=self.timeout_s
            )
            response.raise_for_status()
            return response.json()

    async def get_usd_price(self, symbol: str) -> Optional[Decimal]:
        """Current USD price for a native asset symbol (ETH, SOL).

        Returns None when the symbol is unknown, the provider is disabled, the
        request fails, or Coingecko reports a non-positive price. Callers must
        treat None as "price unavailable", never as zero.
        """
        coin_id = SYMBOL_TO_COINGECKO_ID.get(symbol.upper())
        if coin_id is None:
            logger.warning("No Coingecko id mapped for symbol %s", symbol)
            return None

        cached = await self._cache.get(coin_id)
        if cached is not None:
            return cached

        if not await self.ready():
            return None

        try:
            data = await self._fetch_simple_price(coin_id)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Coingecko price fetch failed for %s: %s", coin_id, exc)
            return None

        raw = (data.get(coin_id) or {}).get("usd") if isinstance(data, dict) else None
        if raw is None:
            return None
        try:
            price = Decimal(str(raw))
        except (InvalidOperation, TypeError, ValueError):
            return None
        if not price.is_finite() or price <= 0:
            return None

        await self._cache.set(coin_id, price)
        return price
