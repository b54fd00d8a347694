"""AcquisitionStrategy: Produces a value for a feed, bound per FeedCategory.

Crypto feeds go through multi-provider price aggregation. Sports, election,
weather and generic feeds go through AI analysis with API discovery.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from .AIAnalysisEngine import AIAnalysisEngine
from .DataSourceAggregator import DataSourceAggregator
from .errors import DataUnavailableError, StaleDataError
from .Feed import Feed, FeedCategory, PriceSymbol

logger = logging.getLogger(__name__)


@dataclass
class AcquisitionResult:
    """Value produced for a feed.

    :ivar value: Unscaled value.
    :ivar confidence: Confidence score (0-100).
    :ivar sources: Names of the sources that contributed.
    :ivar source_label: Label submitted to the ledger.
    :ivar metadata: AI metadata, submitted with the value when present.
    """

    value: float
    confidence: float
    sources: list[str] = field(default_factory=list)
    source_label: str = ""
    metadata: dict[str, Any] | None = None


class AcquisitionStrategy(Protocol):
    """Anything that produces a value for a feed."""

    name: str

    async def acquire(self, feed: Feed, category: FeedCategory) -> AcquisitionResult:
        """Produce a value.

        :raises DataUnavailableError: If no usable data was found.
        """
        ...


class PriceAggregationStrategy:
    """Aggregates a price for a crypto feed across providers.

    Feeds that mention a price but no supported symbol (e.g. "Oil price")
    go to the fallback strategy as generic feeds.
    """

    name = "price_aggregation"

    def __init__(
        self,
        aggregator: DataSourceAggregator,
        use_drift_limit: bool = True,
        fallback: AcquisitionStrategy | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.use_drift_limit = use_drift_limit
        self.fallback = fallback

    async def acquire(self, feed: Feed, category: FeedCategory) -> AcquisitionResult:
        symbol = PriceSymbol.from_text(f"{feed.name} {feed.description}")
        if symbol is None:
            if self.fallback is None:
                raise DataUnavailableError(f"No price symbol found in feed '{feed.name}'")
            logger.info(f"No price symbol in '{feed.name}', using {self.fallback.name}")
            return await self.fallback.acquire(feed, FeedCategory.GENERIC)

        previous = feed.unscaled_value if self.use_drift_limit and feed.is_usable() else None
        result = await self.aggregator.aggregate_symbol(symbol, previous_value=previous)
        if not result.success:
            if result.error == "stale_data":
                raise StaleDataError(f"{symbol}: all provider data is stale")
            raise DataUnavailableError(f"{symbol}: {result.error}")

        assert result.value is not None
        sources = result.sources
        return AcquisitionResult(
            value=result.value,
            confidence=result.confidence,
            sources=sources,
            source_label=",".join(sources),
        )


class AIAnalysisStrategy:
    """Answers a free-text feed through the AI analysis engine."""

    name = "ai_analysis"

    def __init__(self, engine: AIAnalysisEngine) -> None:
        self.engine = engine

    async def acquire(self, feed: Feed, category: FeedCategory) -> AcquisitionResult:
        result = await self.engine.analyze_question(
            feed.name, feed.description, category.value
        )
        # A fallback with nothing behind it would submit a fabricated zero.
        if result.used_fallback and not result.sources:
            raise DataUnavailableError(
                f"No data for '{feed.name}': {result.reasoning}"
            )

        return AcquisitionResult(
            value=result.value,
            confidence=result.confidence,
            sources=result.sources,
            source_label=result.model_id or ",".join(result.sources),
            metadata={
                "confidence": round(result.confidence, 2),
                "sources": result.sources,
                "reasoning": result.reasoning,
                "model": result.model_id,
                "timestamp": int(time.time()),
            },
        )


class StrategyRegistry:
    """Fixed FeedCategory to strategy binding with a default.

    :ivar bindings: Strategy per category.
    :ivar default: Strategy used for unbound categories.
    """

    def __init__(
        self,
        bindings: dict[FeedCategory, AcquisitionStrategy],
        default: AcquisitionStrategy,
    ) -> None:
        self.bindings = dict(bindings)
        self.default = default

    @classmethod
    def standard(
        cls,
        aggregator: DataSourceAggregator,
        engine: AIAnalysisEngine,
        use_drift_limit: bool = True,
    ) -> StrategyRegistry:
        """Build the standard binding: crypto to prices, everything else to AI."""
        ai = AIAnalysisStrategy(engine)
        return cls(
            bindings={
                FeedCategory.CRYPTO: PriceAggregationStrategy(aggregator, use_drift_limit, fallback=ai),
                FeedCategory.SPORTS: ai,
                FeedCategory.ELECTION: ai,
                FeedCategory.WEATHER: ai,
            },
            default=ai,
        )

    def resolve(self, category: FeedCategory) -> AcquisitionStrategy:
        return self.bindings.get(category, self.default)
