"""ValidatorRegistrationManager: Keeps the agent an authorized validator.

Registration state is never persisted; it is re-derived from the ledger at
startup and at the start of every cycle. ``register()`` is idempotent: an
already active validator costs one read and zero transactions.
"""

from __future__ import annotations

import logging
from enum import Enum

from web3 import Web3

from .LedgerClient import Ledger, ValidatorState

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    """Registration lifecycle of the validator."""

    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    REGISTERED = "registered"


class ValidatorRegistrationManager:
    """Ensures the validator is registered before it submits.

    :ivar ledger: Ledger client.
    :ivar stake_amount: Stake in whole tokens.
    :ivar auto_register: Whether registration may be attempted automatically.
    :ivar state: Current registration state.
    """

    def __init__(
        self,
        ledger: Ledger,
        stake_amount: float,
        auto_register: bool = True,
    ) -> None:
        """Initialize the registration manager.

        :param ledger: Ledger client signing with the validator key.
        :param stake_amount: Stake in whole tokens (18 decimals on-chain).
        :param auto_register: Attempt registration when inactive (default: True).
        """
        self.ledger = ledger
        self.stake_amount = stake_amount
        self.auto_register = auto_register
        self.state = RegistrationState.UNREGISTERED
        self.last_info: ValidatorState | None = None
        self._attempted_this_cycle = False

    @property
    def address(self) -> str:
        return self.ledger.address

    @property
    def stake_wei(self) -> int:
        return Web3.to_wei(self.stake_amount, "ether")

    @property
    def is_registered(self) -> bool:
        return self.state == RegistrationState.REGISTERED

    def get_validator_info(self) -> ValidatorState | None:
        """Query the validator record.

        :returns: ValidatorState, or None if the ledger could not be read.
        """
        try:
            info = self.ledger.get_validator(self.address)
        except Exception as e:
            logger.error(f"Failed to read validator {self.address}: {e}")
            return None
        self.last_info = info
        return info

    def refresh(self) -> ValidatorState | None:
        """Re-read the validator record and update the registration state."""
        info = self.get_validator_info()
        if info is not None:
            self.state = (
                RegistrationState.REGISTERED if info.active else RegistrationState.UNREGISTERED
            )
        return info

    def register(self) -> bool:
        """Register the validator unless it is already active.

        Approves the stake only when the current allowance is insufficient,
        then registers and re-queries the validator status.

        :returns: True if the validator is active afterwards.
        """
        info = self.refresh()
        if info is None:
            return False
        if info.active:
            logger.info(
                f"Validator {self.address} already registered "
                f"(stake: {Web3.from_wei(info.stake, 'ether')})"
            )
            return True

        self.state = RegistrationState.REGISTERING
        logger.info(f"Registering validator {self.address} with stake {self.stake_amount}")
        try:
            stake_wei = self.stake_wei
            allowance = self.ledger.token_allowance(self.address)
            if allowance < stake_wei:
                self.ledger.approve_stake(stake_wei)
            self.ledger.register_validator(stake_wei)
        except Exception as e:
            logger.error(f"Validator registration failed: {e}")
            self.state = RegistrationState.UNREGISTERED
            return False

        info = self.refresh()
        if info is None or not info.active:
            logger.warning(f"Validator {self.address} still inactive after registration")
            self.state = RegistrationState.UNREGISTERED
            return False

        logger.info(f"Validator {self.address} registered")
        return True

    def begin_cycle(self) -> None:
        """Reset the per-cycle registration attempt and re-read status."""
        self._attempted_this_cycle = False
        self.refresh()

    def ensure_registered(self) -> bool:
        """Pre-submission check.

        Attempts at most one registration per cycle when not registered.

        :returns: True if the validator may submit.
        """
        if self.is_registered:
            return True
        if not self.auto_register or self._attempted_this_cycle:
            return False
        self._attempted_this_cycle = True
        return self.register()
