"""Shared test fixtures."""

import time

import pytest

from validator.src.errors import ConnectivityError, SubmissionError
from validator.src.Feed import Feed
from validator.src.LedgerClient import ValidatorState

VALIDATOR_ADDRESS = "0x000000000000000000000000000000000000dEaD"


class FakeLedger:
    """In-memory ledger recording every transaction."""

    def __init__(self, active: bool = False, allowance: int = 0) -> None:
        self.address = VALIDATOR_ADDRESS
        self.active = active
        self.allowance = allowance
        self.stake = 0
        self.feeds: dict[str, Feed] = {}
        self.feed_order: list[str] = []
        self.transactions: list[tuple] = []
        self.submissions: list[tuple] = []
        self.reject_feeds: set[str] = set()
        self.unreachable = False
        self.activate_on_register = True
        self.feed_list_error: Exception | None = None

    def add_feed(self, feed_id: str, name: str, description: str = "", **kwargs) -> Feed:
        feed = Feed(
            feed_id=feed_id,
            name=name,
            description=description,
            current_value=kwargs.get("current_value", 0),
            timestamp=kwargs.get("timestamp", int(time.time())),
            confidence=kwargs.get("confidence", 0),
            active=kwargs.get("active", True),
        )
        self.feeds[feed_id] = feed
        self.feed_order.append(feed_id)
        return feed

    def _check(self) -> None:
        if self.unreachable:
            raise ConnectivityError("connection refused")

    def get_active_feed_ids(self) -> list[str]:
        self._check()
        if self.feed_list_error is not None:
            raise self.feed_list_error
        return list(self.feed_order)

    def get_data_feed(self, feed_id: str) -> Feed:
        self._check()
        return self.feeds[feed_id]

    def get_validator(self, address: str) -> ValidatorState:
        self._check()
        return ValidatorState(
            address=address,
            stake=self.stake,
            reputation=100,
            active=self.active,
            validations_count=len(self.submissions),
            successful_validations=len(self.submissions),
        )

    def token_allowance(self, owner: str) -> int:
        self._check()
        return self.allowance

    def approve_stake(self, amount_wei: int) -> str:
        self._check()
        self.transactions.append(("approve", amount_wei))
        self.allowance = amount_wei
        return "0xapprove"

    def register_validator(self, stake_wei: int) -> str:
        self._check()
        self.transactions.append(("register", stake_wei))
        if self.activate_on_register:
            self.active = True
            self.stake = stake_wei
        return "0xregister"

    def submit_validation(self, feed_id, scaled_value, source_label, metadata_json=None) -> str:
        self._check()
        if feed_id in self.reject_feeds:
            raise SubmissionError(feed_id, "execution reverted")
        self.transactions.append(("submit", feed_id))
        self.submissions.append((feed_id, scaled_value, source_label, metadata_json))
        return "0xsubmit"


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()
