"""Binance fetcher.

Binance lists most assets against USDT rather than USD. For /usd symbols the
USDT pair is queried and USDT is treated as USD, unless the USDT/USD rate has
depegged by more than USDT_DEPEG_THRESHOLD, in which case the source is
excluded for that fetch.

Endpoint: https://api.binance.com/api/v3/ticker/price
Rate Limit: High (no key required for public endpoints)
"""

import json
import logging

from ..Feed import PriceSymbol
from .base import BaseFetcher, DataPoint, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class BinanceFetcher(BaseFetcher):
    """Fetcher for Binance public ticker API."""

    name = "binance"
    BASE_URL = "https://api.binance.com/api/v3"

    # USDT depeg threshold (2%)
    USDT_DEPEG_THRESHOLD = 0.02

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch price from Binance.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint or None on failure.
        """
        base = symbol.base.upper()
        quote = symbol.quote.upper()
        needs_usdt = quote == "USD"
        ticker = f"{base}USDT" if needs_usdt else f"{base}{quote}"
        tickers = [ticker, "USDTUSD"] if needs_usdt else [ticker]

        try:
            response = await self._get(
                f"{self.BASE_URL}/ticker/price",
                params={"symbols": json.dumps(tickers, separators=(",", ":"))},
            )
            prices = {item["symbol"]: float(item["price"]) for item in response.json()}

            if ticker not in prices:
                logger.warning(f"[binance] No price for {ticker}")
                return None

            if needs_usdt:
                usdt_rate = prices.get("USDTUSD")
                if usdt_rate is None:
                    logger.warning("[binance] USDT/USD rate unavailable")
                    return None
                if abs(usdt_rate - 1.0) > self.USDT_DEPEG_THRESHOLD:
                    logger.warning(f"[binance] USDT depegged ({usdt_rate:.4f}), skipping")
                    return None
                return self._point(prices[ticker] * usdt_rate)

            return self._point(prices[ticker])

        except FetcherError as e:
            logger.warning(f"[binance] Failed to fetch {ticker}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[binance] Failed to parse response for {ticker}: {e}")
            return None
