"""CryptoCompare fetcher.

Endpoint: https://min-api.cryptocompare.com/data/price
Rate Limit: 100,000 calls/month (free tier)
"""

import logging

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CryptoCompareFetcher(BaseFetcher):
    """Fetcher for CryptoCompare's min-api price endpoint."""

    name = "cryptocompare"
    BASE_URL = "https://min-api.cryptocompare.com/data"

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from CryptoCompare.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        """
        quote = symbol.quote.upper()
        headers = {"authorization": f"Apikey {self.api_key}"} if self.has_api_key else None

        try:
            response = await self._get(
                f"{self.BASE_URL}/price",
                params={"fsym": symbol.base.upper(), "tsyms": quote},
                headers=headers,
            )
            data = response.json()

            if data.get("Response") == "Error":
                logger.warning(f"[cryptocompare] API error: {data.get('Message', 'Unknown error')}")
                return None

            if quote not in data:
                logger.warning(f"[cryptocompare] No price for {symbol}: {data}")
                return None

            return self._point(data[quote])

        except FetcherError as e:
            logger.warning(f"[cryptocompare] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[cryptocompare] Failed to parse response: {e}")
            return None
