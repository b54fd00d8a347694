"""Unit tests for ValidatorAgent wiring and the CLI helpers."""

import asyncio

from validator.main import env_flag, parse_api_keys, parse_env_api_keys
from validator.src.AcquisitionStrategy import AIAnalysisStrategy, PriceAggregationStrategy
from validator.src.Feed import FeedCategory
from validator.src.ValidatorAgent import AgentConfig, ValidatorAgent


def make_config(**kwargs) -> AgentConfig:
    defaults = dict(
        rpc_url="http://localhost:8545",
        chain_id=97,
        private_key="0x" + "11" * 32,
        oracle_address="0x" + "22" * 20,
        token_address="0x" + "33" * 20,
        sources=["coinbase", "kraken"],
        warmup_seconds=0,
        feed_delay=0,
    )
    defaults.update(kwargs)
    return AgentConfig(**defaults)


class TestValidatorAgent:
    """Test component wiring and startup."""

    def test_strategy_bindings(self, ledger) -> None:
        agent = ValidatorAgent(make_config(), ledger=ledger)

        assert isinstance(agent.strategies.resolve(FeedCategory.CRYPTO), PriceAggregationStrategy)
        for category in (FeedCategory.SPORTS, FeedCategory.ELECTION, FeedCategory.GENERIC):
            assert isinstance(agent.strategies.resolve(category), AIAnalysisStrategy)
        assert agent.engine.generator is None

    def test_startup_registers(self, ledger) -> None:
        agent = ValidatorAgent(make_config(stake_amount=5), ledger=ledger)
        asyncio.run(agent.startup())

        status = agent.health.snapshot()
        assert status.oracle_connected
        assert status.validator_registered
        assert status.validator_stake == 5 * 10**18
        assert set(status.data_sources) == {"coinbase", "kraken"}

    def test_startup_without_auto_register(self, ledger) -> None:
        agent = ValidatorAgent(make_config(auto_register=False), ledger=ledger)
        asyncio.run(agent.startup())

        assert ledger.transactions == []
        assert not agent.health.snapshot().validator_registered

    def test_startup_ledger_down(self, ledger) -> None:
        ledger.unreachable = True
        agent = ValidatorAgent(make_config(), ledger=ledger)
        asyncio.run(agent.startup())

        assert agent.health.snapshot().oracle_connected is False

    def test_stop_ends_task(self, ledger) -> None:
        agent = ValidatorAgent(make_config(), ledger=ledger)
        agent.stop()

        assert agent.task.stopped
        assert agent.scheduler.stop_event.is_set()


class TestCLIHelpers:
    """Test configuration parsing helpers."""

    def test_parse_api_keys(self) -> None:
        assert parse_api_keys("CoinGecko=abc, coinmarketcap=x=y,broken") == {
            "coingecko": "abc",
            "coinmarketcap": "x=y",
        }
        assert parse_api_keys(None) == {}

    def test_parse_env_api_keys(self, monkeypatch) -> None:
        monkeypatch.setenv("API_KEY_COINMARKETCAP", "cmc")
        monkeypatch.setenv("API_KEY_EMPTY", "")
        keys = parse_env_api_keys()

        assert keys["coinmarketcap"] == "cmc"
        assert "empty" not in keys

    def test_env_flag(self, monkeypatch) -> None:
        monkeypatch.setenv("AUTO_REGISTER", "No")
        assert env_flag("AUTO_REGISTER", True) is False
        monkeypatch.setenv("AUTO_REGISTER", "YES")
        assert env_flag("AUTO_REGISTER", False) is True
        monkeypatch.delenv("AUTO_REGISTER")
        assert env_flag("AUTO_REGISTER", True) is True
