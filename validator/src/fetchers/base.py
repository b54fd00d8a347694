"""Provider capability interface, data points and the provider registry.

The aggregator depends only on the DataSource protocol: anything with a
``name`` and an async ``fetch(symbol) -> DataPoint | None`` can be composed
into it. BaseFetcher is a convenience base for HTTP-backed providers that
adds the shared httpx client and error translation.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
            response = await self._get(f"https://api.example.com/{symbol.base}")
            return self._point(response.json()["price"])
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Protocol, runtime_checkable

import httpx

from ..Feed import PriceSymbol
from ..http_client import get_shared_client

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., missing API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


@dataclass(frozen=True)
class DataPoint:
    """A single observation reported by one provider.

    :ivar value: Observed value.
    :ivar timestamp: Unix timestamp the provider attributes to the value.
    :ivar source_name: Name of the provider.
    """

    value: float
    timestamp: float
    source_name: str


@runtime_checkable
class DataSource(Protocol):
    """Capability interface composed by the DataSourceAggregator."""

    name: str

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch the current value for a symbol, or None if unavailable."""
        ...


class BaseFetcher(ABC):
    """Abstract base class for HTTP price providers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coinbase")
        - fetch(): Async method returning a DataPoint for a symbol

    :cvar name: Unique identifier for this fetcher.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    name: ClassVar[str] = ""

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional HTTP client; the shared client is used if omitted.
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the injected client or the process-wide shared one."""
        return self._client if self._client is not None else get_shared_client()

    @abstractmethod
    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch the current price for a symbol.

        :param symbol: Price symbol (e.g., btc/usd).
        :returns: DataPoint, or None if the fetch failed.
        """
        pass

    def _point(self, value: float, timestamp: float | None = None) -> DataPoint:
        """Build a DataPoint attributed to this fetcher.

        :param value: Observed value.
        :param timestamp: Provider timestamp; defaults to now.
        :returns: New DataPoint.
        """
        return DataPoint(
            value=float(value),
            timestamp=timestamp if timestamp is not None else time.time(),
            source_name=self.name,
        )

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        try:
            response = await self.client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str, api_key: str | None = None, timeout: float | None = None
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "coinbase", "kraken").
    :param api_key: Optional API key.
    :param timeout: Optional request timeout in seconds.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key, timeout=timeout)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
