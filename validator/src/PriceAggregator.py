"""PriceAggregator: Median aggregation with variance-derived confidence.

Algorithm:
    1. Discard non-numeric, negative (unless allowed) and stale data points
    2. Return no result if zero valid points remain
    3. Take the median of the remaining values
    4. Optionally reject if drift vs the previous on-ledger value is too large
    5. Confidence = clamp(100 - CV * 100, 50, 95), 70 for a single point

The median is used instead of the mean so a single outlier moves the result
by at most one position.

.. code-block:: python

    >>> aggregator = PriceAggregator()
    >>> result = aggregator.aggregate([
    ...     DataPoint(100.0, now, "a"), DataPoint(102.0, now, "b"),
    ...     DataPoint(98.0, now, "c"), DataPoint(500.0, now, "d"),
    ... ])
    >>> result.value
    101.0
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from statistics import mean, median, pstdev
from typing import TypedDict

from .Feed import FRESHNESS_THRESHOLD_SECONDS
from .fetchers.base import DataPoint

MIN_CONFIDENCE = 50.0
MAX_CONFIDENCE = 95.0
DEFAULT_CONFIDENCE = 70.0


def coefficient_of_variation(values: list[float]) -> float:
    """Population standard deviation divided by the mean.

    :param values: Non-empty list of values.
    :returns: CV, or 1.0 when the mean is not positive.
    """
    avg = mean(values)
    if avg <= 0:
        return 1.0
    return pstdev(values) / avg


def variance_confidence(values: list[float]) -> float:
    """Confidence score derived from cross-source agreement.

    :param values: Values that contributed to an aggregate.
    :returns: ``clamp(100 - CV * 100, 50, 95)``, or 70 when fewer than two
        values make a distribution meaningless.
    """
    if len(values) < 2:
        return DEFAULT_CONFIDENCE
    raw = 100.0 - coefficient_of_variation(values) * 100.0
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, raw))


class AggregationMetadata(TypedDict, total=False):
    """Metadata about an aggregation attempt.

    :ivar error: Error type identifier when aggregation failed.
    :ivar sources: Sources used in the final calculation.
    :ivar rejected: Sources whose point was discarded, with the reason.
    :ivar count: Number of points used.
    :ivar drift_percent: Drift vs previous value when rejected for drift.
    :ivar previous_value: Previous on-ledger value used for the drift check.
    """

    error: str
    sources: list[str]
    rejected: dict[str, str]
    count: int
    drift_percent: float
    previous_value: float


@dataclass
class AggregationResult:
    """Result of aggregating data points.

    :ivar value: Median value, or None if aggregation failed.
    :ivar confidence: Confidence score of the value (0 when failed).
    :ivar timestamp: Newest timestamp among the points used.
    :ivar points: Points that contributed to the value.
    :ivar metadata: Additional information about the aggregation.
    """

    value: float | None
    confidence: float = 0.0
    timestamp: float = 0.0
    points: list[DataPoint] = field(default_factory=list)
    metadata: AggregationMetadata = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Check if aggregation was successful."""
        return self.value is not None

    @property
    def error(self) -> str | None:
        """Get error type if aggregation failed."""
        if self.value is None:
            return self.metadata.get("error")
        return None

    @property
    def sources(self) -> list[str]:
        """Names of the sources that contributed to the value."""
        return [point.source_name for point in self.points]


class PriceAggregator:
    """Reduces provider data points to one median value with a confidence.

    :ivar freshness_threshold: Max age in seconds of a usable point.
    :ivar allow_negative: Whether negative values are valid for the feed.
    :ivar drift_limit_percent: Max allowed change vs previous value.
    """

    def __init__(
        self,
        freshness_threshold: float = FRESHNESS_THRESHOLD_SECONDS,
        allow_negative: bool = False,
        drift_limit_percent: float | None = None,
    ) -> None:
        """Initialize the aggregator.

        :param freshness_threshold: Points older than this many seconds are stale.
        :param allow_negative: Accept negative values (default False).
        :param drift_limit_percent: Optional maximum change vs the previous
            value. None disables the check.
        :raises ValueError: If parameters are invalid.
        """
        if freshness_threshold <= 0:
            raise ValueError("freshness_threshold must be positive")
        if drift_limit_percent is not None and drift_limit_percent <= 0:
            raise ValueError("drift_limit_percent must be positive if specified")

        self.freshness_threshold = freshness_threshold
        self.allow_negative = allow_negative
        self.drift_limit_percent = drift_limit_percent

    def rejection_reason(self, point: object, now: float) -> str | None:
        """Classify why a data point is unusable.

        :param point: Candidate data point (anything a provider returned).
        :param now: Current unix time.
        :returns: "non_numeric", "negative" or "stale", or None if valid.
        """
        if not isinstance(point, DataPoint):
            return "non_numeric"
        value = point.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return "non_numeric"
        if not math.isfinite(value):
            return "non_numeric"
        if value < 0 and not self.allow_negative:
            return "negative"
        if now - point.timestamp >= self.freshness_threshold:
            return "stale"
        return None

    def aggregate(
        self,
        points: list[DataPoint | None],
        *,
        previous_value: float | None = None,
        now: float | None = None,
    ) -> AggregationResult:
        """Aggregate data points into a single median value.

        :param points: Points returned by providers; None entries are failures.
        :param previous_value: Optional previous value for drift checking.
        :param now: Current unix time (defaults to ``time.time()``).
        :returns: AggregationResult with value and confidence, or None value
            with error info.
        """
        if now is None:
            now = time.time()

        valid: list[DataPoint] = []
        rejected: dict[str, str] = {}
        for point in points:
            if point is None:
                continue
            reason = self.rejection_reason(point, now)
            if reason is None:
                valid.append(point)
            else:
                rejected[getattr(point, "source_name", "unknown")] = reason

        if not valid:
            only_stale = bool(rejected) and all(r == "stale" for r in rejected.values())
            return AggregationResult(
                value=None,
                metadata={
                    "error": "stale_data" if only_stale else "no_valid_points",
                    "rejected": rejected,
                },
            )

        values = [point.value for point in valid]
        value = median(values)

        if (
            previous_value is not None
            and previous_value > 0
            and self.drift_limit_percent is not None
        ):
            drift = abs(value - previous_value) / previous_value * 100
            if drift > self.drift_limit_percent:
                return AggregationResult(
                    value=None,
                    metadata={
                        "error": "drift_too_large",
                        "drift_percent": drift,
                        "previous_value": previous_value,
                        "rejected": rejected,
                    },
                )

        return AggregationResult(
            value=value,
            confidence=variance_confidence(values),
            timestamp=max(point.timestamp for point in valid),
            points=valid,
            metadata={
                "sources": [point.source_name for point in valid],
                "rejected": rejected,
                "count": len(valid),
            },
        )
