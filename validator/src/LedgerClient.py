"""LedgerClient: Oracle and staking token contract access over web3.

All calls are blocking; the asynchronous agent runs them through
``asyncio.to_thread``. Numeric feed values are fixed-point integers scaled
by 10,000 (see scaling.py); stake amounts are token wei (18 decimals).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from .ContractUtility import ContractUtility
from .errors import (
    ConfigurationError,
    ConnectivityError,
    RegistrationError,
    SubmissionError,
)
from .Feed import Feed

if TYPE_CHECKING:
    from web3.contract import Contract
    from web3.types import TxParams

logger = logging.getLogger(__name__)

RECEIPT_TIMEOUT_SECONDS = 120


@dataclass(frozen=True)
class ValidatorState:
    """Validator record as reported by the oracle contract.

    :ivar address: Validator address.
    :ivar stake: Staked amount in token wei.
    :ivar reputation: Reputation score.
    :ivar active: Whether the validator may submit.
    :ivar validations_count: Total submissions.
    :ivar successful_validations: Submissions accepted by consensus.
    """

    address: str
    stake: int
    reputation: int
    active: bool
    validations_count: int
    successful_validations: int


@dataclass
class ValidationSubmission:
    """A value ready to be submitted for a feed.

    :ivar feed_id: Feed key.
    :ivar scaled_value: Value scaled by 10,000.
    :ivar source_label: Comma-joined provider names, or the model ID.
    :ivar metadata: Optional AI metadata (confidence, sources, reasoning,
        model, timestamp). Selects the 4-argument submission when present.
    """

    feed_id: str
    scaled_value: int
    source_label: str
    metadata: dict[str, Any] | None = field(default=None)

    def metadata_json(self) -> str | None:
        """Serialize the metadata for the ledger, or None without metadata."""
        if self.metadata is None:
            return None
        return json.dumps(self.metadata, separators=(",", ":"))


class Ledger(Protocol):
    """Ledger operations the agent depends on."""

    address: str

    def get_active_feed_ids(self) -> list[str]: ...

    def get_data_feed(self, feed_id: str) -> Feed: ...

    def get_validator(self, address: str) -> ValidatorState: ...

    def register_validator(self, stake_wei: int) -> str: ...

    def submit_validation(
        self,
        feed_id: str,
        scaled_value: int,
        source_label: str,
        metadata_json: str | None = None,
    ) -> str: ...

    def token_allowance(self, owner: str) -> int: ...

    def approve_stake(self, amount_wei: int) -> str: ...


class LedgerClient:
    """Oracle contract client signing with the validator key.

    :ivar w3: Web3 instance.
    :ivar address: Validator address.
    :ivar oracle: Oracle contract.
    :ivar token: Staking token contract.
    """

    def __init__(
        self,
        contract_utility: ContractUtility,
        oracle_address: str,
        token_address: str,
    ) -> None:
        """Initialize the ledger client.

        :param contract_utility: Configured web3 utility.
        :param oracle_address: Oracle contract address.
        :param token_address: Staking token contract address.
        :raises ConfigurationError: If a contract address is malformed.
        """
        try:
            oracle_address = Web3.to_checksum_address(oracle_address)
            token_address = Web3.to_checksum_address(token_address)
        except ValueError as e:
            raise ConfigurationError(f"Invalid contract address: {e}") from e

        self.w3: Web3 = contract_utility.w3
        self.address = contract_utility.address
        self.oracle: Contract = self.w3.eth.contract(
            address=oracle_address,
            abi=ContractUtility.get_abi("IncryptOracle"),
        )
        self.token: Contract = self.w3.eth.contract(
            address=token_address,
            abi=ContractUtility.get_abi("IOToken"),
        )

    def _call(self, description: str, fn: Any) -> Any:
        """Run a read-only contract call, translating transport failures.

        Reverts propagate unchanged; transport and node errors (RPC errors,
        undecodable output) become ConnectivityError.

        :param description: What is being read, for error messages.
        :param fn: Contract function bound to its arguments.
        :raises ConnectivityError: If the ledger cannot answer the call.
        """
        try:
            return fn.call()
        except ContractLogicError:
            raise
        except (OSError, Web3Exception) as e:
            raise ConnectivityError(f"Ledger unreachable while reading {description}: {e}") from e

    def _transact(self, fn: Any) -> tuple[str, Any]:
        """Build, send and wait for a transaction.

        :param fn: Contract function bound to its arguments.
        :returns: Tuple of (tx hash hex, receipt).
        :raises ConnectivityError: If the ledger cannot accept the transaction.
        """
        try:
            tx_params: TxParams = fn.build_transaction({"gasPrice": self.w3.eth.gas_price})
            tx_hash = self.w3.eth.send_transaction(tx_params)
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS
            )
        except (ContractLogicError, TimeExhausted):
            raise
        except (OSError, Web3Exception) as e:
            raise ConnectivityError(f"Ledger unreachable: {e}") from e
        return Web3.to_hex(tx_hash), receipt

    def get_active_feed_ids(self) -> list[str]:
        """Get the IDs of all active feeds.

        :returns: List of 0x-prefixed bytes32 feed IDs.
        """
        ids = self._call("active feeds", self.oracle.functions.getActiveFeedIds())
        return [Web3.to_hex(feed_id) for feed_id in ids]

    def get_data_feed(self, feed_id: str) -> Feed:
        """Read a feed record.

        :param feed_id: 0x-prefixed bytes32 feed ID.
        :returns: Feed.
        """
        name, description, value, timestamp, confidence, active = self._call(
            f"feed {feed_id}", self.oracle.functions.getDataFeed(feed_id)
        )
        return Feed(
            feed_id=feed_id,
            name=name,
            description=description,
            current_value=int(value),
            timestamp=int(timestamp),
            confidence=int(confidence),
            active=bool(active),
        )

    def get_validator(self, address: str) -> ValidatorState:
        """Read a validator record.

        :param address: Validator address.
        :returns: ValidatorState.
        """
        stake, reputation, active, validations, successful, _ = self._call(
            f"validator {address}", self.oracle.functions.getValidator(address)
        )
        return ValidatorState(
            address=address,
            stake=int(stake),
            reputation=int(reputation),
            active=bool(active),
            validations_count=int(validations),
            successful_validations=int(successful),
        )

    def token_allowance(self, owner: str) -> int:
        """Get the token allowance granted by owner to the oracle contract."""
        return int(
            self._call(
                "token allowance",
                self.token.functions.allowance(owner, self.oracle.address),
            )
        )

    def approve_stake(self, amount_wei: int) -> str:
        """Approve the oracle contract to pull the stake.

        :param amount_wei: Amount in token wei.
        :returns: Transaction hash.
        :raises RegistrationError: If the approval reverts.
        """
        try:
            tx_hash, receipt = self._transact(
                self.token.functions.approve(self.oracle.address, amount_wei)
            )
        except ContractLogicError as e:
            raise RegistrationError(f"Stake approval reverted: {e}") from e
        if receipt["status"] != 1:
            raise RegistrationError(f"Stake approval failed in tx {tx_hash}")
        logger.info(f"Approved {Web3.from_wei(amount_wei, 'ether')} tokens. Tx: {tx_hash}")
        return tx_hash

    def register_validator(self, stake_wei: int) -> str:
        """Register as a validator with the given stake.

        :param stake_wei: Stake in token wei.
        :returns: Transaction hash.
        :raises RegistrationError: If the registration reverts.
        """
        try:
            tx_hash, receipt = self._transact(
                self.oracle.functions.registerValidator(stake_wei)
            )
        except ContractLogicError as e:
            raise RegistrationError(f"Registration reverted: {e}") from e
        if receipt["status"] != 1:
            raise RegistrationError(f"Registration failed in tx {tx_hash}")
        logger.info(f"Registration submitted. Tx: {tx_hash}")
        return tx_hash

    def submit_validation(
        self,
        feed_id: str,
        scaled_value: int,
        source_label: str,
        metadata_json: str | None = None,
    ) -> str:
        """Submit a value for a feed.

        Without metadata the 3-argument ``submitValidation`` is used, with
        metadata the 4-argument ``submitAIValidation``.

        :param feed_id: 0x-prefixed bytes32 feed ID.
        :param scaled_value: Value scaled by 10,000.
        :param source_label: Data source label.
        :param metadata_json: Optional AI metadata as JSON.
        :returns: Transaction hash.
        :raises SubmissionError: If the ledger rejects the transaction.
        """
        if metadata_json is None:
            fn = self.oracle.functions.submitValidation(feed_id, scaled_value, source_label)
        else:
            fn = self.oracle.functions.submitAIValidation(
                feed_id, scaled_value, source_label, metadata_json
            )

        try:
            tx_hash, receipt = self._transact(fn)
        except ContractLogicError as e:
            raise SubmissionError(feed_id, f"reverted: {e}") from e
        except TimeExhausted as e:
            raise SubmissionError(feed_id, f"no receipt: {e}") from e

        if receipt["status"] != 1:
            raise SubmissionError(feed_id, f"transaction {tx_hash} failed")
        return tx_hash
