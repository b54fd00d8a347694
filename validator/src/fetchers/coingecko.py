"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
Rate Limit: 30 calls/min (free), higher with API key
"""

import logging

import httpx

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherError, register_fetcher

logger = logging.getLogger(__name__)

# Map common symbols to CoinGecko IDs
COIN_IDS = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "bnb": "binancecoin",
    "sol": "solana",
    "ada": "cardano",
    "dot": "polkadot",
    "matic": "matic-network",
    "link": "chainlink",
    "avax": "avalanche-2",
    "uni": "uniswap",
    "usdt": "tether",
    "usdc": "usd-coin",
    "atom": "cosmos",
    "aave": "aave",
    "rose": "oasis-network",
}


def coin_id_for(symbol: str) -> str:
    """Map a ticker to its CoinGecko ID, falling back to the lowercase ticker."""
    return COIN_IDS.get(symbol.lower(), symbol.lower())


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for CoinGecko API.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(api_key=api_key, timeout=timeout, client=client)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key or self._is_demo:
            return self.BASE_URL_FREE
        return self.BASE_URL_PRO

    def _headers(self) -> dict[str, str] | None:
        if not self.has_api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return {header_name: self.api_key}

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from CoinGecko.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        """
        coin_id = COIN_IDS.get(symbol.base)
        if not coin_id:
            logger.warning(f"[coingecko] Unknown coin: {symbol.base}")
            return None

        try:
            response = await self._get(
                f"{self.base_url}/simple/price",
                params={
                    "ids": coin_id,
                    "vs_currencies": symbol.quote,
                    "include_last_updated_at": "true",
                },
                headers=self._headers(),
            )
            data = response.json()

            coin_data = data.get(coin_id)
            if not coin_data or symbol.quote not in coin_data:
                logger.warning(f"[coingecko] No {symbol.quote} price for {coin_id}: {data}")
                return None

            updated_at = coin_data.get("last_updated_at")
            return self._point(
                coin_data[symbol.quote],
                float(updated_at) if updated_at else None,
            )

        except FetcherError as e:
            logger.warning(f"[coingecko] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coingecko] Failed to parse response: {e}")
            return None
