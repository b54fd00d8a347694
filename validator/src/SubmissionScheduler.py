"""SubmissionScheduler: One validation cycle over the active feeds.

Per cycle:
    - Re-read validator status and the active feed IDs (never cached)
    - For each feed, sequentially: read it, resolve its FeedCategory, acquire
      a value with the bound strategy, check registration, submit
    - Any failure is contained to its feed and counted as failed
    - Wait a fixed delay between feeds; honour stop requests between feeds
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from .AcquisitionStrategy import StrategyRegistry
from .errors import (
    ConnectivityError,
    DataUnavailableError,
    RegistrationError,
    SubmissionError,
)
from .Feed import FeedCategory
from .HealthReporter import HealthState
from .LedgerClient import Ledger, ValidationSubmission
from .scaling import scale
from .ValidatorRegistrationManager import ValidatorRegistrationManager

logger = logging.getLogger(__name__)

DEFAULT_FEED_DELAY_SECONDS = 2.0


@dataclass(frozen=True)
class CycleResult:
    """Counts of one validation cycle."""

    succeeded: int = 0
    failed: int = 0


class SubmissionScheduler:
    """Runs validation cycles.

    :ivar ledger: Ledger client.
    :ivar registration: Registration manager.
    :ivar strategies: Category to strategy binding.
    :ivar health: Shared health state.
    :ivar feed_delay: Seconds to wait between feeds.
    """

    def __init__(
        self,
        ledger: Ledger,
        registration: ValidatorRegistrationManager,
        strategies: StrategyRegistry,
        health: HealthState,
        feed_delay: float = DEFAULT_FEED_DELAY_SECONDS,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.ledger = ledger
        self.registration = registration
        self.strategies = strategies
        self.health = health
        self.feed_delay = feed_delay
        self.stop_event = stop_event or asyncio.Event()

    async def run_cycle(self) -> CycleResult:
        """Run one validation cycle.

        :returns: CycleResult; (0, 0) if the ledger could not be reached.
        """
        await asyncio.to_thread(self.registration.begin_cycle)
        self.health.set_registered(self.registration.is_registered)
        if self.registration.last_info is not None:
            self.health.set_validator_stake(self.registration.last_info.stake)

        try:
            feed_ids = await asyncio.to_thread(self.ledger.get_active_feed_ids)
        except ConnectivityError as e:
            logger.error(f"Cannot fetch active feeds: {e}")
            return self._abort_cycle()
        except Exception as e:
            logger.error(f"Cannot fetch active feeds: {e}", exc_info=True)
            return self._abort_cycle()
        self.health.set_oracle_connected(True)

        feed_ids = list(dict.fromkeys(feed_ids))
        logger.info(f"Validation cycle started: {len(feed_ids)} active feeds")

        succeeded = failed = 0
        for index, feed_id in enumerate(feed_ids):
            if self.stop_event.is_set():
                logger.info("Stop requested, ending cycle early")
                break
            if index > 0 and self.feed_delay > 0:
                await asyncio.sleep(self.feed_delay)

            if await self.validate_feed(feed_id):
                succeeded += 1
            else:
                failed += 1

        result = CycleResult(succeeded=succeeded, failed=failed)
        self.health.record_cycle(result)
        logger.info(f"Validation cycle finished: {succeeded} succeeded, {failed} failed")
        return result

    def _abort_cycle(self) -> CycleResult:
        """End a cycle whose feed list could not be read."""
        self.health.set_oracle_connected(False)
        result = CycleResult()
        self.health.record_cycle(result)
        return result

    async def validate_feed(self, feed_id: str) -> bool:
        """Acquire and submit a value for one feed.

        :param feed_id: Feed to validate.
        :returns: True if a value was accepted by the ledger.
        """
        try:
            feed = await asyncio.to_thread(self.ledger.get_data_feed, feed_id)
            category = FeedCategory.resolve(feed.name, feed.description)
            strategy = self.strategies.resolve(category)
            logger.info(f"Feed {feed_id[:10]} '{feed.name}' -> {category.value} ({strategy.name})")

            acquired = await strategy.acquire(feed, category)
            submission = ValidationSubmission(
                feed_id=feed_id,
                scaled_value=scale(acquired.value),
                source_label=acquired.source_label,
                metadata=acquired.metadata,
            )

            registered = await asyncio.to_thread(self.registration.ensure_registered)
            self.health.set_registered(registered)
            if not registered:
                raise RegistrationError(f"Validator {self.registration.address} is not registered")

            # Not cancelled by a stop request once started.
            tx_hash = await asyncio.shield(
                asyncio.to_thread(
                    self.ledger.submit_validation,
                    submission.feed_id,
                    submission.scaled_value,
                    submission.source_label,
                    submission.metadata_json(),
                )
            )
        except ConnectivityError as e:
            logger.error(f"Feed {feed_id}: ledger unreachable: {e}")
            self.health.set_oracle_connected(False)
            return False
        except DataUnavailableError as e:
            logger.warning(f"Feed {feed_id}: skipped, {e}")
            return False
        except RegistrationError as e:
            logger.warning(f"Feed {feed_id}: {e}")
            return False
        except SubmissionError as e:
            logger.error(f"Feed {e.feed_id}: submission rejected: {e.reason}")
            return False
        except Exception as e:
            logger.error(f"Feed {feed_id}: validation failed: {e}", exc_info=True)
            return False

        self.health.set_last_validation(time.time())
        logger.info(
            f"Feed {feed_id[:10]}: submitted {acquired.value:.4f} "
            f"(confidence {acquired.confidence:.1f}, sources {acquired.sources}). Tx: {tx_hash}"
        )
        return True
