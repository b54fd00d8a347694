"""
Price providers for the DataSourceAggregator.

Usage:
    from validator.src.fetchers import get_fetcher, get_available_fetchers

    available = get_available_fetchers()
    # ['binance', 'bitstamp', 'coinbase', 'coingecko', 'coinmarketcap', 'cryptocompare', 'kraken']

    fetcher = get_fetcher("coinbase")
    point = await fetcher.fetch(PriceSymbol("btc", "usd"))
"""

from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    DataPoint,
    DataSource,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .binance import BinanceFetcher
from .bitstamp import BitstampFetcher
from .coinbase import CoinbaseFetcher
from .coingecko import COIN_IDS, CoinGeckoFetcher, coin_id_for
from .coinmarketcap import CoinMarketCapFetcher
from .cryptocompare import CryptoCompareFetcher
from .kraken import KrakenFetcher

__all__ = [
    "BaseFetcher",
    "DataPoint",
    "DataSource",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    "COIN_IDS",
    "coin_id_for",
    "BinanceFetcher",
    "BitstampFetcher",
    "CoinbaseFetcher",
    "CoinGeckoFetcher",
    "CoinMarketCapFetcher",
    "CryptoCompareFetcher",
    "KrakenFetcher",
]
