"""SourceManager: Per-provider failure tracking, backoff and health.

When a provider fails (returns nothing usable, raises, or times out) it enters
a backoff period that doubles with each consecutive failure, up to a maximum.
A successful fetch resets the counter. The consecutive failure count is also
what the health surface reports for the provider.

.. code-block:: python

    >>> manager = SourceManager(["coinbase", "kraken"])
    >>> manager.record_failure("kraken")
    5.0
    >>> manager.get_health("kraken")
    <DataSourceHealth.DEGRADED: 'degraded'>
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum


class DataSourceHealth(str, Enum):
    """Health of a single data provider as reported on /health."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    DOWN = "down"


@dataclass
class SourceStatus:
    """Tracks the status of a single source.

    :ivar consecutive_failures: Number of consecutive failures.
    :ivar backoff_until: Unix timestamp when backoff period ends.
    :ivar total_failures: Total failures since tracking began.
    :ivar total_successes: Total successes since tracking began.
    :ivar last_success: Unix timestamp of the last success (0 if never).
    """

    consecutive_failures: int = 0
    backoff_until: float = 0.0
    total_failures: int = 0
    total_successes: int = 0
    last_success: float = 0.0


class SourceManager:
    """Manages provider health tracking with exponential backoff.

    Backoff is base * 2^(failures-1), capped at max_backoff_seconds. A
    provider is DEGRADED after its first consecutive failure and DOWN once
    the count reaches down_threshold.

    :ivar sources: List of tracked source names.
    :ivar base_backoff_seconds: Initial backoff duration after first failure.
    :ivar max_backoff_seconds: Maximum backoff duration.
    :ivar down_threshold: Consecutive failures after which a source is down.
    """

    DEFAULT_BASE_BACKOFF_SECONDS = 5
    DEFAULT_MAX_BACKOFF_SECONDS = 300
    DEFAULT_DOWN_THRESHOLD = 3

    def __init__(
        self,
        sources: list[str],
        base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
        down_threshold: int = DEFAULT_DOWN_THRESHOLD,
    ) -> None:
        self.sources = list(sources)
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.down_threshold = down_threshold
        self._status: dict[str, SourceStatus] = {s: SourceStatus() for s in sources}

    def record_failure(self, source: str) -> float:
        """Record a failure for a source and apply exponential backoff.

        :param source: Source name that failed.
        :returns: The backoff duration in seconds.
        """
        status = self._status.setdefault(source, SourceStatus())
        status.consecutive_failures += 1
        status.total_failures += 1

        backoff_seconds = min(
            self.base_backoff_seconds * (2 ** (status.consecutive_failures - 1)),
            self.max_backoff_seconds,
        )
        status.backoff_until = time.time() + backoff_seconds
        return float(backoff_seconds)

    def record_success(self, source: str) -> None:
        """Record a successful fetch, resetting the failure counter.

        :param source: Source name that succeeded.
        """
        status = self._status.setdefault(source, SourceStatus())
        status.consecutive_failures = 0
        status.backoff_until = 0.0
        status.total_successes += 1
        status.last_success = time.time()

    def get_active_sources(self) -> list[str]:
        """Get sources that are not currently in backoff.

        :returns: List of source names available for fetching.
        """
        now = time.time()
        return [s for s in self.sources if now >= self._status[s].backoff_until]

    def get_source_status(self, source: str) -> SourceStatus | None:
        """Get the status of a specific source.

        :param source: Source name to query.
        :returns: SourceStatus or None if source not tracked.
        """
        return self._status.get(source)

    def get_health(self, source: str) -> DataSourceHealth:
        """Map a source's consecutive failures to a health level.

        :param source: Source name to query.
        :returns: OPERATIONAL, DEGRADED or DOWN. Unknown sources are DOWN.
        """
        status = self._status.get(source)
        if status is None or status.consecutive_failures >= self.down_threshold:
            return DataSourceHealth.DOWN
        if status.consecutive_failures > 0:
            return DataSourceHealth.DEGRADED
        return DataSourceHealth.OPERATIONAL

    def get_all_health(self) -> dict[str, DataSourceHealth]:
        """Get health of all tracked sources.

        :returns: Dict mapping source names to their health.
        """
        return {source: self.get_health(source) for source in self.sources}

    def get_backoff_remaining(self, source: str) -> float:
        """Get remaining backoff time for a source.

        :param source: Source name to check.
        :returns: Seconds remaining in backoff, or 0 if not in backoff.
        """
        if source not in self._status:
            return 0.0
        return max(0.0, self._status[source].backoff_until - time.time())
