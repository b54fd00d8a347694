"""Coinbase Exchange fetcher.

Endpoint: https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
Rate Limit: High (no key required)
"""

import logging
from datetime import datetime

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinbaseFetcher(BaseFetcher):
    """Fetcher for Coinbase Exchange API.

    No API key required for public ticker endpoint. The ticker carries the
    time of the last trade, which is used as the data point timestamp.
    """

    name = "coinbase"
    BASE_URL = "https://api.exchange.coinbase.com"

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from Coinbase Exchange.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        """
        product = f"{symbol.base.upper()}-{symbol.quote.upper()}"
        url = f"{self.BASE_URL}/products/{product}/ticker"

        try:
            response = await self._get(url)
            data = response.json()

            if "price" not in data:
                logger.warning(f"[coinbase] No price in response for {product}: {data}")
                return None

            timestamp = None
            if data.get("time"):
                timestamp = datetime.fromisoformat(
                    data["time"].replace("Z", "+00:00")
                ).timestamp()

            return self._point(data["price"], timestamp)

        except FetcherError as e:
            logger.warning(f"[coinbase] Failed to fetch {product}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coinbase] Failed to parse response for {product}: {e}")
            return None
