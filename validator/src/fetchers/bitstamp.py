"""Bitstamp fetcher.

Endpoint: https://www.bitstamp.net/api/v2/ticker/{base}{quote}/
Rate Limit: High (no key required)
"""

import logging

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class BitstampFetcher(BaseFetcher):
    """Fetcher for Bitstamp public API.

    No API key required. Ticker responses carry a unix timestamp.
    """

    name = "bitstamp"
    BASE_URL = "https://www.bitstamp.net/api/v2"

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from Bitstamp.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        """
        pair = f"{symbol.base}{symbol.quote}"

        try:
            response = await self._get(f"{self.BASE_URL}/ticker/{pair}/")
            data = response.json()

            if "last" not in data:
                logger.warning(f"[bitstamp] No 'last' price for {pair}: {data}")
                return None

            timestamp = float(data["timestamp"]) if "timestamp" in data else None
            return self._point(data["last"], timestamp)

        except FetcherError as e:
            logger.warning(f"[bitstamp] Failed to fetch {pair}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[bitstamp] Failed to parse response for {pair}: {e}")
            return None
