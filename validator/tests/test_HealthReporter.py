"""Unit tests for the health state and its HTTP surface."""

import asyncio
import dataclasses

import pytest
from aiohttp import test_utils
from web3 import Web3

from validator.src.HealthReporter import HealthReporter, HealthState, OverallStatus
from validator.src.SourceManager import DataSourceHealth
from validator.src.SubmissionScheduler import CycleResult


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def healthy_state(clock: FakeClock | None = None) -> HealthState:
    state = HealthState(address="0xabc", clock=clock or FakeClock())
    state.set_oracle_connected(True)
    state.update_data_source_status("coinbase", "operational")
    state.update_data_source_status("kraken", DataSourceHealth.OPERATIONAL)
    return state


def get(state: HealthState, path: str) -> tuple[int, object, str]:
    """Issue one GET against a test server and return (status, body, content type)."""

    async def _run():
        reporter = HealthReporter(state)
        async with test_utils.TestClient(test_utils.TestServer(reporter.build_app())) as client:
            response = await client.get(path)
            if path == "/metrics":
                body = await response.text()
            else:
                body = await response.json()
            return response.status, body, response.headers["Content-Type"]

    return asyncio.run(_run())


class TestOverallStatus:
    """Test status derivation."""

    def test_healthy(self) -> None:
        assert healthy_state().snapshot().overall_status == OverallStatus.HEALTHY

    def test_degraded_source(self) -> None:
        state = healthy_state()
        state.update_data_source_status("kraken", "degraded")
        assert state.snapshot().overall_status == OverallStatus.DEGRADED

    def test_down_source_is_unhealthy(self) -> None:
        state = healthy_state()
        state.update_data_source_status("kraken", "degraded")
        state.update_data_source_status("coinbase", "down")
        assert state.snapshot().overall_status == OverallStatus.UNHEALTHY

    def test_disconnected_is_unhealthy(self) -> None:
        """Losing the ledger overrides every other check."""
        state = healthy_state()
        state.set_registered(True)
        state.set_last_validation(1.0)
        state.set_oracle_connected(False)
        assert state.snapshot().overall_status == OverallStatus.UNHEALTHY

    def test_starts_disconnected(self) -> None:
        assert HealthState().snapshot().overall_status == OverallStatus.UNHEALTHY

    def test_unknown_source_status_rejected(self) -> None:
        with pytest.raises(ValueError):
            HealthState().update_data_source_status("coinbase", "flaky")


class TestSnapshot:
    """Test snapshots."""

    def test_immutable_copy(self) -> None:
        state = healthy_state()
        snapshot = state.snapshot()

        state.update_data_source_status("binance", "down")
        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.oracle_connected = False  # type: ignore[misc]
        assert "binance" not in snapshot.data_sources

    def test_uptime(self) -> None:
        clock = FakeClock()
        state = HealthState(clock=clock)
        clock.now += 42
        assert state.snapshot().uptime_seconds == 42

    def test_cycles_accumulate(self) -> None:
        state = HealthState()
        state.record_cycle(CycleResult(succeeded=3, failed=1))
        state.record_cycle(CycleResult(succeeded=2, failed=0))

        snapshot = state.snapshot()
        assert snapshot.cycles_completed == 2
        assert snapshot.validations_succeeded == 5
        assert snapshot.validations_failed == 1
        assert (snapshot.last_cycle_succeeded, snapshot.last_cycle_failed) == (2, 0)


class TestHealthEndpoint:
    """Test GET /health."""

    def test_healthy_200(self) -> None:
        status, body, _ = get(healthy_state(), "/health")

        assert status == 200
        assert body["status"] == "healthy"
        assert body["checks"]["oracle_connected"] is True
        assert body["checks"]["data_sources"] == {"coinbase": "operational", "kraken": "operational"}

    def test_degraded_503(self) -> None:
        state = healthy_state()
        state.update_data_source_status("kraken", "degraded")

        status, body, _ = get(state, "/health")
        assert status == 503
        assert body["status"] == "degraded"

    def test_disconnected_503(self) -> None:
        state = healthy_state()
        state.set_oracle_connected(False)

        status, body, _ = get(state, "/health")
        assert status == 503
        assert body["status"] == "unhealthy"


class TestReadyEndpoint:
    """Test GET /ready."""

    def test_not_ready_before_first_validation(self) -> None:
        state = healthy_state()
        state.set_registered(True)

        status, body, _ = get(state, "/ready")
        assert status == 503
        assert body == {"ready": False}

    def test_ready(self) -> None:
        state = healthy_state()
        state.set_registered(True)
        state.set_last_validation(1_700_000_000.0)

        status, body, _ = get(state, "/ready")
        assert status == 200
        assert body == {"ready": True}


class TestMetricsEndpoint:
    """Test GET /metrics."""

    def test_exposition(self) -> None:
        state = healthy_state()
        state.update_data_source_status("kraken", "down")
        state.record_cycle(CycleResult(succeeded=4, failed=1))

        status, text, content_type = get(state, "/metrics")

        assert status == 200
        assert content_type.startswith("text/plain")
        assert "validator_oracle_connected 1.0" in text
        assert "validator_registered 0.0" in text
        assert "validator_uptime_seconds" in text
        assert "validator_last_validation_timestamp 0.0" in text
        assert 'validator_validations_total{outcome="success"} 4.0' in text
        assert 'validator_validations_total{outcome="failure"} 1.0' in text
        assert 'validator_data_source_up{source="coinbase"} 1.0' in text
        assert 'validator_data_source_up{source="kraken"} 0.0' in text


class TestStatusEndpoint:
    """Test GET /status."""

    def test_fields(self) -> None:
        clock = FakeClock()
        state = healthy_state(clock)
        state.set_registered(True)
        state.set_validator_stake(Web3.to_wei(1000, "ether"))
        state.set_last_validation(clock.now)
        state.record_cycle(CycleResult(succeeded=2, failed=1))
        clock.now += 30

        status, body, _ = get(state, "/status")

        assert status == 200
        assert body["address"] == "0xabc"
        assert body["status"] == "healthy"
        assert body["registered"] is True
        assert body["stake"] == "1000"
        assert body["last_validation"] == "2023-11-14T22:13:20+00:00"
        assert body["uptime_seconds"] == 30
        assert body["cycles_completed"] == 1
        assert body["last_cycle"] == {"succeeded": 2, "failed": 1}
