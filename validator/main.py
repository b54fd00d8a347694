#!/usr/bin/env python3
"""Autonomous Oracle Validator.

Periodically reads the active feeds of the oracle contract, produces a value
for each one (multi-source price aggregation for crypto feeds, AI analysis
with API discovery for everything else) and submits it on-chain. Health,
readiness and Prometheus metrics are served over HTTP.

Configure via env vars (or a .env file) or CLI arguments.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from .src.AIAnalysisEngine import DEFAULT_MODEL
from .src.errors import ConfigurationError
from .src.fetchers import get_available_fetchers
from .src.ValidatorAgent import AgentConfig, ValidatorAgent

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable.

    :param name: Variable name.
    :param default: Value when unset or empty.
    :returns: True for 1/true/yes/on (case-insensitive).
    """
    value = os.environ.get(name)
    if not value:
        return default
    return value.strip().lower() in TRUE_VALUES


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=abc123,coinmarketcap=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse provider API keys from API_KEY_<SOURCE> environment variables.

    :returns: Dict mapping source names to API keys.
    """
    prefix = "API_KEY_"
    return {
        key[len(prefix):].lower(): value
        for key, value in os.environ.items()
        if key.startswith(prefix) and value
    }


def build_parser(available_sources: list[str]) -> argparse.ArgumentParser:
    """Build the CLI parser; defaults come from the environment."""
    parser = argparse.ArgumentParser(
        description="Autonomous Oracle Validator: multi-source and AI-assisted feed validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # Validate on BSC testnet with free price sources
  python -m validator.main --oracle-address 0x... --token-address 0x...

  # With API keys for premium sources and an inference token
  python -m validator.main --sources coinbase,kraken,coinmarketcap \\
      --api-keys coinmarketcap=your-api-key --hf-token hf_xxx

Environment variables (CLI args take precedence):
  RPC_URL, CHAIN_ID, VALIDATOR_PRIVATE_KEY, ORACLE_ADDRESS, TOKEN_ADDRESS,
  STAKE_AMOUNT, VALIDATION_INTERVAL, SOURCES, API_KEYS, API_KEY_<SOURCE>,
  HUGGINGFACE_API_TOKEN, HUGGINGFACE_MODEL, RAPIDAPI_KEY, ENABLE_API_DISCOVERY,
  APIS_GURU_ENABLED, HEALTH_CHECK_PORT, FETCH_TIMEOUT, FEED_DELAY,
  WARMUP_SECONDS, DRIFT_LIMIT_PERCENT, AUTO_REGISTER, LOG_LEVEL
""",
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="Ledger RPC endpoint",
        default=os.environ.get("RPC_URL") or "https://data-seed-prebsc-1-s1.binance.org:8545/",
    )

    parser.add_argument(
        "--chain-id",
        dest="chain_id",
        type=int,
        help="Ledger chain ID (default: 97, BSC testnet)",
        default=int(os.environ.get("CHAIN_ID") or "97"),
    )

    parser.add_argument(
        "--oracle-address",
        dest="oracle_address",
        type=str,
        help="Address of the IncryptOracle contract",
        default=os.environ.get("ORACLE_ADDRESS"),
    )

    parser.add_argument(
        "--token-address",
        dest="token_address",
        type=str,
        help="Address of the staking token contract",
        default=os.environ.get("TOKEN_ADDRESS") or os.environ.get("IO_TOKEN_ADDRESS"),
    )

    parser.add_argument(
        "--stake-amount",
        dest="stake_amount",
        type=float,
        help="Stake in whole tokens used when registering (default: 1000)",
        default=float(os.environ.get("STAKE_AMOUNT") or "1000"),
    )

    parser.add_argument(
        "--interval",
        dest="validation_interval",
        type=int,
        help="Seconds between validation cycles (minimum: 10, default: 60)",
        default=int(os.environ.get("VALIDATION_INTERVAL") or "60"),
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated price sources. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or "coinbase,kraken,bitstamp,coingecko",
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=abc,coinmarketcap=xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--hf-token",
        dest="hf_token",
        type=str,
        help="Hugging Face API token (without it AI feeds use the median fallback)",
        default=os.environ.get("HUGGINGFACE_API_TOKEN"),
    )

    parser.add_argument(
        "--hf-model",
        dest="hf_model",
        type=str,
        help=f"Hugging Face text generation model (default: {DEFAULT_MODEL})",
        default=os.environ.get("HUGGINGFACE_MODEL") or DEFAULT_MODEL,
    )

    parser.add_argument(
        "--rapidapi-key",
        dest="rapidapi_key",
        type=str,
        help="RapidAPI key enabling the RapidAPI discovery table",
        default=os.environ.get("RAPIDAPI_KEY"),
    )

    parser.add_argument(
        "--no-api-discovery",
        dest="enable_api_discovery",
        action="store_false",
        help="Disable API discovery for AI feeds",
        default=env_flag("ENABLE_API_DISCOVERY", True),
    )

    parser.add_argument(
        "--no-apis-guru",
        dest="apis_guru_enabled",
        action="store_false",
        help="Do not search the APIs.guru directory",
        default=env_flag("APIS_GURU_ENABLED", True),
    )

    parser.add_argument(
        "--health-port",
        dest="health_port",
        type=int,
        help="Port of the health HTTP server (default: 3002)",
        default=int(os.environ.get("HEALTH_CHECK_PORT") or "3002"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual fetch requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--feed-delay",
        dest="feed_delay",
        type=float,
        help="Seconds to wait between feeds within a cycle (default: 2.0)",
        default=float(os.environ.get("FEED_DELAY") or "2.0"),
    )

    parser.add_argument(
        "--warmup",
        dest="warmup_seconds",
        type=float,
        help="Seconds to wait before the first cycle (default: 10)",
        default=float(os.environ.get("WARMUP_SECONDS") or "10"),
    )

    parser.add_argument(
        "--drift-limit",
        dest="drift_limit",
        type=float,
        help="Max change of a price vs the feed's current value percent (default: 0, disabled)",
        default=float(os.environ.get("DRIFT_LIMIT_PERCENT") or "0"),
    )

    parser.add_argument(
        "--no-auto-register",
        dest="auto_register",
        action="store_false",
        help="Never send registration transactions",
        default=env_flag("AUTO_REGISTER", True),
    )

    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        help="Log level (default: INFO)",
        default=os.environ.get("LOG_LEVEL") or "INFO",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def main() -> None:
    """Main entry point for the validator CLI."""
    load_dotenv()
    available_sources = get_available_fetchers()
    parser = build_parser(available_sources)
    args = parser.parse_args()

    # Configure logging level
    level = logging.DEBUG if args.verbose else logging.getLevelName(args.log_level.upper())
    if not isinstance(level, int):
        parser.error(f"Unknown log level: {args.log_level}")
    logging.getLogger().setLevel(level)

    private_key = os.environ.get("VALIDATOR_PRIVATE_KEY") or os.environ.get("AI_VALIDATOR_PRIVATE_KEY")

    # Validate arguments
    if not private_key:
        parser.error("VALIDATOR_PRIVATE_KEY must be set")

    if not args.oracle_address:
        parser.error("--oracle-address (ORACLE_ADDRESS) is required")

    if not args.token_address:
        parser.error("--token-address (TOKEN_ADDRESS) is required")

    if args.validation_interval < 10:
        parser.error("--interval must be at least 10 seconds")

    if args.stake_amount <= 0:
        parser.error("--stake-amount must be positive")

    if args.feed_delay < 0 or args.warmup_seconds < 0:
        parser.error("--feed-delay and --warmup must not be negative")

    sources = [s.strip().lower() for s in args.sources.split(",") if s.strip()]
    if not sources:
        parser.error("At least one source must be specified")

    invalid_sources = [s for s in sources if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    if "coinmarketcap" in sources and "coinmarketcap" not in api_keys:
        parser.error("Source coinmarketcap requires an API key (API_KEY_COINMARKETCAP)")

    # Handle drift limit (0 means disabled)
    drift_limit = args.drift_limit if args.drift_limit > 0 else None

    config = AgentConfig(
        rpc_url=args.rpc_url,
        chain_id=args.chain_id,
        private_key=private_key,
        oracle_address=args.oracle_address,
        token_address=args.token_address,
        stake_amount=args.stake_amount,
        validation_interval=args.validation_interval,
        sources=sources,
        api_keys=api_keys,
        huggingface_api_token=args.hf_token,
        huggingface_model=args.hf_model,
        rapidapi_key=args.rapidapi_key,
        enable_api_discovery=args.enable_api_discovery,
        apis_guru_enabled=args.apis_guru_enabled,
        health_port=args.health_port,
        fetch_timeout=args.fetch_timeout,
        feed_delay=args.feed_delay,
        warmup_seconds=args.warmup_seconds,
        drift_limit_percent=drift_limit,
        auto_register=args.auto_register,
    )

    # Log configuration
    logger.info("=" * 60)
    logger.info("Autonomous Oracle Validator")
    logger.info("=" * 60)
    logger.info(f"RPC URL:           {config.rpc_url}")
    logger.info(f"Chain ID:          {config.chain_id}")
    logger.info(f"Oracle:            {config.oracle_address}")
    logger.info(f"Token:             {config.token_address}")
    logger.info(f"Stake Amount:      {config.stake_amount}")
    logger.info(f"Interval:          {config.validation_interval}s")
    logger.info(f"Sources:           {', '.join(sources)}")
    logger.info(f"AI Model:          {config.huggingface_model if config.huggingface_api_token else 'disabled'}")
    logger.info(f"API Discovery:     {'enabled' if config.enable_api_discovery else 'disabled'}")
    logger.info(f"Drift Limit:       {drift_limit}%" if drift_limit else "Drift Limit:       disabled")
    logger.info(f"Health Port:       {config.health_port}")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(api_keys.keys())}")
    logger.info("=" * 60)

    try:
        agent = ValidatorAgent(config)
    except ConfigurationError as e:
        parser.error(str(e))

    try:
        asyncio.run(agent.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
