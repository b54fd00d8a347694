"""HealthReporter: Shared health state and the HTTP health surface.

The scheduler writes HealthState through its mutators while aiohttp handlers
read it concurrently. Every mutator and ``snapshot()`` hold the same lock, and
readers only ever see an immutable HealthStatus copy.

Routes:
  GET /health  - overall status and checks (200 healthy, 503 otherwise)
  GET /ready   - ready once registered with at least one validation
  GET /metrics - Prometheus text exposition
  GET /status  - validator snapshot
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterator, Protocol

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from web3 import Web3

from .SourceManager import DataSourceHealth

logger = logging.getLogger(__name__)


class OverallStatus(str, Enum):
    """Aggregate health of the agent."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class CycleCounts(Protocol):
    succeeded: int
    failed: int


@dataclass(frozen=True)
class HealthStatus:
    """Immutable copy of the health state.

    :ivar address: Validator address.
    :ivar oracle_connected: Whether the last ledger contact succeeded.
    :ivar validator_registered: Whether the validator is active on-chain.
    :ivar last_validation_timestamp: Unix time of the last accepted submission.
    :ivar data_sources: Provider name to health.
    :ivar validator_stake: Stake in token wei.
    :ivar started_at: Unix time the state was created.
    :ivar taken_at: Unix time of the snapshot.
    :ivar cycles_completed: Validation cycles run.
    :ivar validations_succeeded: Submissions accepted across all cycles.
    :ivar validations_failed: Feeds failed across all cycles.
    :ivar last_cycle_succeeded: Successful feeds in the last cycle.
    :ivar last_cycle_failed: Failed feeds in the last cycle.
    """

    address: str
    oracle_connected: bool
    validator_registered: bool
    last_validation_timestamp: float | None
    data_sources: dict[str, DataSourceHealth]
    validator_stake: int
    started_at: float
    taken_at: float
    cycles_completed: int = 0
    validations_succeeded: int = 0
    validations_failed: int = 0
    last_cycle_succeeded: int = 0
    last_cycle_failed: int = 0

    @property
    def overall_status(self) -> OverallStatus:
        """Derive the overall status.

        Any source down or no ledger connectivity is unhealthy, any degraded
        source is degraded, anything else is healthy.
        """
        statuses = set(self.data_sources.values())
        if not self.oracle_connected or DataSourceHealth.DOWN in statuses:
            return OverallStatus.UNHEALTHY
        if DataSourceHealth.DEGRADED in statuses:
            return OverallStatus.DEGRADED
        return OverallStatus.HEALTHY

    @property
    def uptime_seconds(self) -> float:
        return max(0.0, self.taken_at - self.started_at)

    @property
    def ready(self) -> bool:
        return self.validator_registered and self.last_validation_timestamp is not None


class HealthState:
    """Lock-guarded, single source of truth for agent health."""

    def __init__(self, address: str = "", clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._address = address
        self._started_at = clock()
        self._oracle_connected = False
        self._registered = False
        self._last_validation: float | None = None
        self._data_sources: dict[str, DataSourceHealth] = {}
        self._stake = 0
        self._cycles = 0
        self._succeeded = 0
        self._failed = 0
        self._last_cycle = (0, 0)

    def set_oracle_connected(self, connected: bool) -> None:
        with self._lock:
            self._oracle_connected = connected

    def set_last_validation(self, timestamp: float) -> None:
        with self._lock:
            self._last_validation = timestamp

    def update_data_source_status(self, name: str, status: DataSourceHealth | str) -> None:
        """Set the health of a data source.

        :param name: Provider name.
        :param status: "operational", "degraded" or "down".
        :raises ValueError: On an unknown status.
        """
        health = DataSourceHealth(status)
        with self._lock:
            self._data_sources[name] = health

    def set_registered(self, registered: bool) -> None:
        with self._lock:
            self._registered = registered

    def set_validator_stake(self, stake: int) -> None:
        with self._lock:
            self._stake = stake

    def record_cycle(self, result: CycleCounts) -> None:
        """Accumulate the counts of a finished cycle."""
        with self._lock:
            self._cycles += 1
            self._succeeded += result.succeeded
            self._failed += result.failed
            self._last_cycle = (result.succeeded, result.failed)

    def snapshot(self) -> HealthStatus:
        """Return an immutable, consistent copy of the state."""
        with self._lock:
            return HealthStatus(
                address=self._address,
                oracle_connected=self._oracle_connected,
                validator_registered=self._registered,
                last_validation_timestamp=self._last_validation,
                data_sources=dict(self._data_sources),
                validator_stake=self._stake,
                started_at=self._started_at,
                taken_at=self._clock(),
                cycles_completed=self._cycles,
                validations_succeeded=self._succeeded,
                validations_failed=self._failed,
                last_cycle_succeeded=self._last_cycle[0],
                last_cycle_failed=self._last_cycle[1],
            )


class HealthCollector:
    """Prometheus collector reading one snapshot per scrape."""

    def __init__(self, state: HealthState) -> None:
        self.state = state

    def collect(self) -> Iterator[Metric]:
        status = self.state.snapshot()

        yield GaugeMetricFamily(
            "validator_oracle_connected",
            "Whether the oracle ledger is reachable (1) or not (0)",
            value=1 if status.oracle_connected else 0,
        )
        yield GaugeMetricFamily(
            "validator_last_validation_timestamp",
            "Unix timestamp of the last successful validation",
            value=status.last_validation_timestamp or 0,
        )
        yield GaugeMetricFamily(
            "validator_uptime_seconds",
            "Seconds since the agent started",
            value=status.uptime_seconds,
        )
        yield GaugeMetricFamily(
            "validator_registered",
            "Whether the validator is registered and active",
            value=1 if status.validator_registered else 0,
        )

        validations = CounterMetricFamily(
            "validator_validations",
            "Feed validations by outcome",
            labels=["outcome"],
        )
        validations.add_metric(["success"], status.validations_succeeded)
        validations.add_metric(["failure"], status.validations_failed)
        yield validations

        sources = GaugeMetricFamily(
            "validator_data_source_up",
            "Whether a data source is operational (1) or not (0)",
            labels=["source"],
        )
        for name, health in sorted(status.data_sources.items()):
            sources.add_metric([name], 1 if health == DataSourceHealth.OPERATIONAL else 0)
        yield sources


def _iso(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class HealthReporter:
    """Async HTTP server exposing the health state."""

    def __init__(self, state: HealthState, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.state = state
        self.host = host
        self.port = port
        self.registry = CollectorRegistry(auto_describe=True)
        self.registry.register(HealthCollector(state))
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/ready", self._handle_ready)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/status", self._handle_status)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"Health server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Health server stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        status = self.state.snapshot()
        overall = status.overall_status
        body = {
            "status": overall.value,
            "checks": {
                "oracle_connected": status.oracle_connected,
                "validator_registered": status.validator_registered,
                "last_validation": _iso(status.last_validation_timestamp),
                "data_sources": {name: h.value for name, h in status.data_sources.items()},
            },
        }
        return web.json_response(
            body, status=200 if overall == OverallStatus.HEALTHY else 503
        )

    async def _handle_ready(self, request: web.Request) -> web.Response:
        ready = self.state.snapshot().ready
        return web.json_response({"ready": ready}, status=200 if ready else 503)

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(self.registry),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    async def _handle_status(self, request: web.Request) -> web.Response:
        status = self.state.snapshot()
        return web.json_response(
            {
                "address": status.address,
                "status": status.overall_status.value,
                "oracle_connected": status.oracle_connected,
                "registered": status.validator_registered,
                "stake": str(Web3.from_wei(status.validator_stake, "ether")),
                "last_validation": _iso(status.last_validation_timestamp),
                "uptime_seconds": round(status.uptime_seconds, 1),
                "cycles_completed": status.cycles_completed,
                "last_cycle": {
                    "succeeded": status.last_cycle_succeeded,
                    "failed": status.last_cycle_failed,
                },
            }
        )
