"""DataSourceAggregator: Concurrent multi-provider fetching and reduction.

Architecture:
    - Every provider not in backoff is queried concurrently
    - Each query runs under its own timeout; a slow or failing provider
      never blocks or fails the others
    - Per-provider outcomes feed a SourceManager per symbol (backoff + health)
    - Surviving points are reduced by PriceAggregator (median + confidence)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from .Feed import PriceSymbol
from .fetchers.base import DataPoint, DataSource
from .PriceAggregator import AggregationResult, PriceAggregator
from .SourceManager import DataSourceHealth, SourceManager

logger = logging.getLogger(__name__)

HealthCallback = Callable[[str, DataSourceHealth], None]

HEALTH_ORDER = [DataSourceHealth.OPERATIONAL, DataSourceHealth.DEGRADED, DataSourceHealth.DOWN]


@dataclass(frozen=True)
class AggregatedPrice:
    """Aggregated value for a symbol.

    :ivar value: Median of the valid provider values.
    :ivar timestamp: Newest provider timestamp among the used points.
    :ivar sources: Providers whose points were used.
    :ivar confidence: Variance-derived confidence (50-95, 70 for one point).
    :ivar points: Provider points the value was computed from.
    """

    value: float
    timestamp: float
    sources: list[str]
    confidence: float
    points: list[DataPoint] = field(default_factory=list)


class DataSourceAggregator:
    """Queries independent providers and reduces them to one estimate.

    :ivar sources: Dict mapping provider names to provider instances.
    :ivar fetch_timeout: Per-provider timeout in seconds.
    :ivar aggregator: Median/confidence reducer.
    :ivar source_managers: Backoff tracker per symbol, created on first use.
    """

    def __init__(
        self,
        sources: list[DataSource],
        fetch_timeout: float = 10.0,
        aggregator: PriceAggregator | None = None,
        source_manager_factory: Callable[[list[str]], SourceManager] = SourceManager,
        on_health_change: HealthCallback | None = None,
    ) -> None:
        """Initialize the aggregator.

        :param sources: Providers to compose.
        :param fetch_timeout: Timeout for each provider query (default: 10.0).
        :param aggregator: Optional reducer (default: PriceAggregator()).
        :param source_manager_factory: Builds the tracker of one symbol from
            the provider names (default: SourceManager).
        :param on_health_change: Called with (name, health) after every query.
        """
        self.sources: dict[str, DataSource] = {s.name: s for s in sources}
        self.fetch_timeout = fetch_timeout
        self.aggregator = aggregator or PriceAggregator()
        self.source_manager_factory = source_manager_factory
        self.source_managers: dict[PriceSymbol, SourceManager] = {}
        self.on_health_change = on_health_change

    def source_manager(self, symbol: PriceSymbol) -> SourceManager:
        """Get the backoff tracker of a symbol.

        A provider that does not list one symbol is only backed off for that
        symbol.

        :param symbol: Price symbol.
        :returns: SourceManager for the symbol.
        """
        manager = self.source_managers.get(symbol)
        if manager is None:
            manager = self.source_manager_factory(list(self.sources))
            self.source_managers[symbol] = manager
        return manager

    async def fetch_price(
        self,
        symbol: PriceSymbol | str,
        *,
        previous_value: float | None = None,
    ) -> AggregatedPrice | None:
        """Fetch an aggregated price for a symbol.

        :param symbol: Price symbol or "base/quote" string.
        :param previous_value: Optional previous value for drift checking.
        :returns: AggregatedPrice, or None if no valid data was available.
        """
        result = await self.aggregate_symbol(symbol, previous_value=previous_value)
        if not result.success:
            return None
        assert result.value is not None
        return AggregatedPrice(
            value=result.value,
            timestamp=result.timestamp,
            sources=result.sources,
            confidence=result.confidence,
            points=list(result.points),
        )

    async def aggregate_symbol(
        self,
        symbol: PriceSymbol | str,
        *,
        previous_value: float | None = None,
    ) -> AggregationResult:
        """Query all active providers for a symbol and aggregate the results.

        :param symbol: Price symbol or "base/quote" string.
        :param previous_value: Optional previous value for drift checking.
        :returns: Full AggregationResult, including failure metadata.
        """
        if isinstance(symbol, str):
            symbol = PriceSymbol.from_string(symbol)

        points = await self.fetch_points(symbol)
        result = self.aggregator.aggregate(
            list(points.values()), previous_value=previous_value
        )

        if result.success:
            logger.info(
                f"{symbol}: {result.value:.6f} (median of "
                f"[{', '.join(self._format_point(p) for p in result.points)}], "
                f"confidence {result.confidence:.1f})"
            )
        else:
            logger.warning(f"{symbol}: Aggregation failed ({result.error}): {result.metadata}")
        return result

    async def fetch_points(self, symbol: PriceSymbol) -> dict[str, DataPoint | None]:
        """Query every provider that is not in backoff, concurrently.

        :param symbol: Price symbol to fetch.
        :returns: Dict mapping provider name to its point, or None on failure.
        """
        manager = self.source_manager(symbol)
        active = [name for name in manager.get_active_sources() if name in self.sources]
        if not active:
            logger.warning(f"{symbol}: All sources in backoff")
            return {}

        points = await asyncio.gather(
            *(self._fetch_single(self.sources[name], symbol) for name in active)
        )
        results = dict(zip(active, points, strict=True))

        now = time.time()
        for name, point in results.items():
            if point is not None and self.aggregator.rejection_reason(point, now) is None:
                manager.record_success(name)
            else:
                backoff = manager.record_failure(name)
                logger.debug(f"[{name}] No usable value for {symbol}, backoff {backoff:.1f}s")
            if self.on_health_change is not None:
                self.on_health_change(name, self.provider_health(name))

        return results

    def provider_health(self, name: str) -> DataSourceHealth:
        """Health of a provider across all symbols it was queried for.

        The healthiest symbol wins: a provider serving at least one symbol is
        not reported down because it lacks another.

        :param name: Provider name.
        :returns: OPERATIONAL before the provider was ever queried.
        """
        healths = [manager.get_health(name) for manager in self.source_managers.values()]
        if not healths:
            return DataSourceHealth.OPERATIONAL
        return min(healths, key=HEALTH_ORDER.index)

    def source_health(self) -> dict[str, DataSourceHealth]:
        """Return the current health of every provider."""
        return {name: self.provider_health(name) for name in self.sources}

    async def _fetch_single(self, source: DataSource, symbol: PriceSymbol) -> DataPoint | None:
        """Fetch one provider with timeout, never raising.

        :param source: Provider to query.
        :param symbol: Price symbol.
        :returns: DataPoint or None on failure.
        """
        try:
            return await asyncio.wait_for(source.fetch(symbol), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{source.name}] Timeout fetching {symbol}")
            return None
        except Exception as e:
            logger.warning(f"[{source.name}] Error fetching {symbol}: {e}")
            return None

    def _format_point(self, point: DataPoint) -> str:
        """Format a point with API key indicator for logging."""
        source = self.sources.get(point.source_name)
        api_tag = "[key]" if getattr(source, "has_api_key", False) else ""
        return f"{point.source_name}{api_tag}={point.value:.6f}"
