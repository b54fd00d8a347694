"""Kraken fetcher.

Endpoint: https://api.kraken.com/0/public/Ticker?pair={BASE}{QUOTE}
Rate Limit: High (no key required)
"""

import logging

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class KrakenFetcher(BaseFetcher):
    """Fetcher for Kraken public API.

    No API key required.
    """

    name = "kraken"
    BASE_URL = "https://api.kraken.com/0/public"

    # Kraken uses non-standard ticker symbols
    SYMBOL_MAP = {
        "btc": "XBT",
    }

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from Kraken.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        """
        kraken_base = self.SYMBOL_MAP.get(symbol.base, symbol.base.upper())
        pair = f"{kraken_base}{symbol.quote.upper()}"

        try:
            response = await self._get(f"{self.BASE_URL}/Ticker", params={"pair": pair})
            data = response.json()

            if data.get("error"):
                logger.warning(f"[kraken] API error for {pair}: {data['error']}")
                return None

            result = data.get("result", {})
            if not result:
                logger.warning(f"[kraken] No result for {pair}")
                return None

            # Result keys vary (e.g. XXBTZUSD), there is one entry per requested pair
            pair_data = list(result.values())[0]

            # 'c' is the last trade closed array: [price, lot volume]
            return self._point(pair_data["c"][0])

        except FetcherError as e:
            logger.warning(f"[kraken] Failed to fetch {pair}: {e}")
            return None
        except (KeyError, ValueError, TypeError, IndexError) as e:
            logger.warning(f"[kraken] Failed to parse response for {pair}: {e}")
            return None
