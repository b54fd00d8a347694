"""CoinMarketCap fetcher.

Endpoint: https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest
Rate Limit: 333 calls/day (free tier)
API Key: Required
"""

import logging
from datetime import datetime

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherConfigError, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinMarketCapFetcher(BaseFetcher):
    """Fetcher for CoinMarketCap API.

    API key is REQUIRED.
    """

    name = "coinmarketcap"
    BASE_URL = "https://pro-api.coinmarketcap.com"

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from CoinMarketCap.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        :raises FetcherConfigError: If no API key is configured.
        """
        if not self.has_api_key:
            raise FetcherConfigError("[coinmarketcap] API key required but not provided")

        base = symbol.base.upper()
        quote = symbol.quote.upper()

        try:
            response = await self._get(
                f"{self.BASE_URL}/v2/cryptocurrency/quotes/latest",
                params={"symbol": base, "convert": quote},
                headers={"X-CMC_PRO_API_KEY": self.api_key},
            )
            data = response.json()

            symbol_data = data.get("data", {}).get(base)
            if not symbol_data:
                logger.warning(f"[coinmarketcap] Symbol {base} not found")
                return None

            # CMC returns a list of matches, take the first one
            if isinstance(symbol_data, list):
                symbol_data = symbol_data[0]

            quote_data = symbol_data.get("quote", {}).get(quote)
            if not quote_data:
                logger.warning(f"[coinmarketcap] Quote {quote} not found for {base}")
                return None

            timestamp = None
            if quote_data.get("last_updated"):
                timestamp = datetime.fromisoformat(
                    quote_data["last_updated"].replace("Z", "+00:00")
                ).timestamp()

            return self._point(quote_data["price"], timestamp)

        except FetcherError as e:
            logger.warning(f"[coinmarketcap] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, ValueError, TypeError, IndexError) as e:
            logger.warning(f"[coinmarketcap] Failed to parse response: {e}")
            return None
