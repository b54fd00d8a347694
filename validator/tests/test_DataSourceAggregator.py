"""Unit tests for DataSourceAggregator."""

import asyncio
import time

from validator.src.DataSourceAggregator import DataSourceAggregator
from validator.src.Feed import PriceSymbol
from validator.src.fetchers.base import DataPoint, DataSource
from validator.src.SourceManager import DataSourceHealth, SourceManager

BTC_USD = PriceSymbol("btc", "usd")


class StaticSource:
    """Provider returning a fixed value, optionally after a delay."""

    def __init__(self, name: str, value: float | None, delay: float = 0.0, age: float = 0.0):
        self.name = name
        self.value = value
        self.delay = delay
        self.age = age
        self.calls = 0

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.value is None:
            return None
        return DataPoint(self.value, time.time() - self.age, self.name)


class RaisingSource:
    name = "broken"

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        raise RuntimeError("provider exploded")


class TestDataSourceAggregator:
    """Test concurrent fetching and aggregation."""

    def test_static_source_is_data_source(self) -> None:
        assert isinstance(StaticSource("a", 1.0), DataSource)

    def test_fetch_price_median_and_confidence(self) -> None:
        aggregator = DataSourceAggregator(
            [StaticSource("a", 61000.0), StaticSource("b", 61050.0)]
        )
        price = asyncio.run(aggregator.fetch_price(BTC_USD))

        assert price is not None
        assert price.value == 61025.0
        assert price.confidence > 90
        assert sorted(price.sources) == ["a", "b"]
        assert len(price.points) == 2

    def test_accepts_symbol_string(self) -> None:
        aggregator = DataSourceAggregator([StaticSource("a", 5.0)])
        price = asyncio.run(aggregator.fetch_price("eth/usd"))
        assert price is not None
        assert price.confidence == 70.0

    def test_no_valid_points_returns_none(self) -> None:
        aggregator = DataSourceAggregator([StaticSource("a", None), RaisingSource()])
        assert asyncio.run(aggregator.fetch_price(BTC_USD)) is None

    def test_failures_isolated(self) -> None:
        """A raising or hung provider does not block the others."""
        slow = StaticSource("slow", 1.0, delay=5.0)
        aggregator = DataSourceAggregator(
            [StaticSource("a", 100.0), RaisingSource(), slow, StaticSource("b", 102.0)],
            fetch_timeout=0.05,
        )

        started = time.monotonic()
        price = asyncio.run(aggregator.fetch_price(BTC_USD))

        assert time.monotonic() - started < 2.0
        assert price is not None
        assert price.value == 101.0
        assert sorted(price.sources) == ["a", "b"]

    def test_stale_points_rejected(self) -> None:
        aggregator = DataSourceAggregator([StaticSource("old", 1.0, age=7200)])
        result = asyncio.run(aggregator.aggregate_symbol(BTC_USD))

        assert not result.success
        assert result.error == "stale_data"

    def test_health_callback_and_backoff(self) -> None:
        """Failures are reported to the health callback and put into backoff."""
        updates: list[tuple[str, DataSourceHealth]] = []
        bad = StaticSource("bad", None)
        aggregator = DataSourceAggregator(
            [StaticSource("good", 10.0), bad],
            on_health_change=lambda name, health: updates.append((name, health)),
        )

        asyncio.run(aggregator.fetch_price(BTC_USD))
        assert ("good", DataSourceHealth.OPERATIONAL) in updates
        assert ("bad", DataSourceHealth.DEGRADED) in updates

        # "bad" is in backoff and is not queried again
        asyncio.run(aggregator.fetch_price(BTC_USD))
        assert bad.calls == 1
        assert aggregator.source_health()["bad"] == DataSourceHealth.DEGRADED

    def test_all_sources_in_backoff(self) -> None:
        bad = StaticSource("bad", None)
        aggregator = DataSourceAggregator([bad])
        asyncio.run(aggregator.fetch_price(BTC_USD))

        assert asyncio.run(aggregator.fetch_points(BTC_USD)) == {}
        assert bad.calls == 1


class ListingSource:
    """Provider that only lists some base assets."""

    def __init__(self, name: str, listed: dict[str, float]):
        self.name = name
        self.listed = listed
        self.calls: list[str] = []

    async def fetch(self, symbol: PriceSymbol) -> DataPoint | None:
        self.calls.append(str(symbol))
        value = self.listed.get(symbol.base)
        if value is None:
            return None
        return DataPoint(value, time.time(), self.name)


class TestPerSymbolBackoff:
    """Test that backoff is tracked per symbol."""

    def test_unlisted_symbol_does_not_starve_others(self) -> None:
        a = ListingSource("a", {"btc": 61000.0})
        b = ListingSource("b", {"btc": 61100.0})
        aggregator = DataSourceAggregator([a, b])

        assert asyncio.run(aggregator.fetch_price(PriceSymbol("sol"))) is None
        price = asyncio.run(aggregator.fetch_price(BTC_USD))

        assert price is not None
        assert price.value == 61050.0
        assert a.calls == ["sol/usd", "btc/usd"]
        assert aggregator.source_health() == {
            "a": DataSourceHealth.OPERATIONAL,
            "b": DataSourceHealth.OPERATIONAL,
        }

    def test_backoff_stays_with_its_symbol(self) -> None:
        a = ListingSource("a", {"btc": 1.0})
        aggregator = DataSourceAggregator([a])
        sol = PriceSymbol("sol")

        for _ in range(3):
            asyncio.run(aggregator.fetch_price(sol))
            asyncio.run(aggregator.fetch_price(BTC_USD))

        # SOL was only tried once, BTC every time
        assert a.calls.count("sol/usd") == 1
        assert a.calls.count("btc/usd") == 3
        assert aggregator.source_manager(sol).get_health("a") == DataSourceHealth.DEGRADED
        assert aggregator.provider_health("a") == DataSourceHealth.OPERATIONAL

    def test_provider_failing_everywhere_is_down(self) -> None:
        bad = ListingSource("bad", {})
        aggregator = DataSourceAggregator(
            [bad],
            source_manager_factory=lambda names: SourceManager(names, base_backoff_seconds=0),
        )

        for _ in range(3):
            asyncio.run(aggregator.fetch_price(BTC_USD))

        assert aggregator.provider_health("bad") == DataSourceHealth.DOWN

    def test_health_before_any_query(self) -> None:
        aggregator = DataSourceAggregator([ListingSource("a", {})])
        assert aggregator.source_health() == {"a": DataSourceHealth.OPERATIONAL}
