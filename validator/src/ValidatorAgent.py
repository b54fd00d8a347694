"""ValidatorAgent: Wires the validator components and runs them.

Architecture:
    - One ScheduledTask drives SubmissionScheduler cycles on a fixed interval
    - Crypto feeds are priced by DataSourceAggregator across the configured
      providers; other feeds go through AIAnalysisEngine
    - Registration is ensured at startup and re-checked before submitting
    - HealthReporter serves the shared HealthState over HTTP
    - SIGINT/SIGTERM stop new cycles and feeds; an in-flight submission
      finishes before the process exits
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass, field

from .AcquisitionStrategy import StrategyRegistry
from .AIAnalysisEngine import DEFAULT_MODEL, AIAnalysisEngine, HuggingFaceTextGenerator
from .APIDiscovery import APIDiscovery
from .ContractUtility import ContractUtility
from .DataSourceAggregator import DataSourceAggregator
from .fetchers import get_fetcher
from .HealthReporter import HealthReporter, HealthState
from .http_client import close_shared_client
from .LedgerClient import Ledger, LedgerClient
from .PriceAggregator import PriceAggregator
from .ScheduledTask import FixedIntervalCadence, ScheduledTask
from .SubmissionScheduler import DEFAULT_FEED_DELAY_SECONDS, SubmissionScheduler
from .ValidatorRegistrationManager import ValidatorRegistrationManager

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Validated agent configuration.

    :ivar rpc_url: Ledger RPC endpoint.
    :ivar chain_id: Ledger chain ID.
    :ivar private_key: Validator signing key.
    :ivar oracle_address: Oracle contract address.
    :ivar token_address: Staking token contract address.
    :ivar stake_amount: Stake in whole tokens.
    :ivar validation_interval: Seconds between validation cycles.
    :ivar sources: Enabled price provider names.
    :ivar api_keys: Provider name to API key.
    """

    rpc_url: str
    chain_id: int
    private_key: str
    oracle_address: str
    token_address: str
    stake_amount: float = 1000.0
    validation_interval: int = 60
    sources: list[str] = field(default_factory=lambda: ["coinbase", "kraken", "coingecko"])
    api_keys: dict[str, str] = field(default_factory=dict)
    huggingface_api_token: str | None = None
    huggingface_model: str = DEFAULT_MODEL
    rapidapi_key: str | None = None
    enable_api_discovery: bool = True
    apis_guru_enabled: bool = True
    health_host: str = "0.0.0.0"
    health_port: int = 3002
    fetch_timeout: float = 10.0
    feed_delay: float = DEFAULT_FEED_DELAY_SECONDS
    warmup_seconds: float = 10.0
    drift_limit_percent: float | None = None
    auto_register: bool = True


class ValidatorAgent:
    """Autonomous oracle validator.

    :ivar config: Agent configuration.
    :ivar ledger: Ledger client.
    :ivar health: Shared health state.
    """

    def __init__(self, config: AgentConfig, ledger: Ledger | None = None) -> None:
        """Build all components from the configuration.

        :param config: Agent configuration.
        :param ledger: Optional ledger client (default: web3 LedgerClient).
        """
        self.config = config
        if ledger is None:
            contract_utility = ContractUtility(config.rpc_url, config.chain_id, config.private_key)
            ledger = LedgerClient(contract_utility, config.oracle_address, config.token_address)
        self.ledger = ledger

        self.health = HealthState(address=ledger.address)
        self.health_reporter = HealthReporter(
            self.health, host=config.health_host, port=config.health_port
        )
        self.stop_event = asyncio.Event()

        fetchers = [
            get_fetcher(name, api_key=config.api_keys.get(name), timeout=config.fetch_timeout)
            for name in config.sources
        ]
        self.aggregator = DataSourceAggregator(
            fetchers,
            fetch_timeout=config.fetch_timeout,
            aggregator=PriceAggregator(drift_limit_percent=config.drift_limit_percent),
            on_health_change=self.health.update_data_source_status,
        )

        generator = None
        if config.huggingface_api_token:
            generator = HuggingFaceTextGenerator(
                config.huggingface_api_token, model_id=config.huggingface_model
            )
        self.engine = AIAnalysisEngine(
            APIDiscovery(
                rapidapi_key=config.rapidapi_key,
                apis_guru_enabled=config.apis_guru_enabled,
            ),
            generator=generator,
            enable_discovery=config.enable_api_discovery,
            model_id=config.huggingface_model,
        )

        self.strategies = StrategyRegistry.standard(
            self.aggregator,
            self.engine,
            use_drift_limit=config.drift_limit_percent is not None,
        )

        self.registration = ValidatorRegistrationManager(
            ledger, config.stake_amount, auto_register=config.auto_register
        )
        self.scheduler = SubmissionScheduler(
            ledger,
            self.registration,
            self.strategies,
            self.health,
            feed_delay=config.feed_delay,
            stop_event=self.stop_event,
        )
        self.task = ScheduledTask(
            "validation",
            self.scheduler.run_cycle,
            FixedIntervalCadence(config.validation_interval),
            warmup=config.warmup_seconds,
            stop_event=self.stop_event,
        )

        logger.info(
            f"ValidatorAgent initialized: address={ledger.address}, "
            f"sources={config.sources}, interval={config.validation_interval}s, "
            f"model={'configured' if generator else 'none (median fallback)'}"
        )

    def stop(self) -> None:
        """Request a cooperative shutdown."""
        if not self.stop_event.is_set():
            logger.info("Shutdown requested")
            self.stop_event.set()

    async def startup(self) -> None:
        """Derive registration state from the ledger and register if allowed."""
        for name, health in self.aggregator.source_health().items():
            self.health.update_data_source_status(name, health)

        if self.config.auto_register:
            registered = await asyncio.to_thread(self.registration.register)
        else:
            await asyncio.to_thread(self.registration.refresh)
            registered = self.registration.is_registered

        info = self.registration.last_info
        self.health.set_oracle_connected(info is not None)
        self.health.set_registered(registered)
        if info is not None:
            self.health.set_validator_stake(info.stake)
        if not registered:
            logger.warning(f"Validator {self.ledger.address} is not registered; submissions will wait")

    async def run(self) -> None:
        """Run until stopped."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.stop)

        await self.health_reporter.start()
        try:
            await self.startup()
            await self.task.run()
        finally:
            await self.health_reporter.stop()
            await close_shared_client()
            logger.info("Validator agent stopped")
