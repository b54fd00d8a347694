"""Feed: Ledger feed records, category resolution and price symbols.

Feeds are owned by the oracle contract; the agent only reads them. A feed's
category is resolved once per cycle from its name and description and picks
the acquisition strategy used to produce a value for it.

.. code-block:: python

    >>> FeedCategory.resolve("BTC/USD", "Bitcoin spot price")
    <FeedCategory.CRYPTO: 'crypto'>
    >>> PriceSymbol.from_string("eth/usd")
    PriceSymbol('eth', 'usd')
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import Enum

from .scaling import unscale

# Feed values and data points older than this are unusable.
FRESHNESS_THRESHOLD_SECONDS = 3600


@dataclass(frozen=True)
class Feed:
    """A data feed as stored on the oracle ledger.

    :ivar feed_id: 0x-prefixed bytes32 feed key.
    :ivar name: Human readable feed name (often the market question).
    :ivar description: Free-text feed description.
    :ivar current_value: Last accepted value, scaled by 10,000.
    :ivar timestamp: Unix timestamp of the last accepted value.
    :ivar confidence: Confidence of the last accepted value (0-100).
    :ivar active: Whether the feed accepts submissions.
    """

    feed_id: str
    name: str
    description: str
    current_value: int
    timestamp: int
    confidence: int
    active: bool

    @property
    def unscaled_value(self) -> float:
        """Return the current value as a decimal."""
        return unscale(self.current_value)

    def is_usable(self, now: float | None = None) -> bool:
        """Check whether the on-ledger value can be relied on.

        :param now: Current unix time (defaults to ``time.time()``).
        :returns: True if the feed is active and its value is fresh.
        """
        if now is None:
            now = time.time()
        return self.active and (now - self.timestamp) < FRESHNESS_THRESHOLD_SECONDS


class FeedCategory(str, Enum):
    """Acquisition category of a feed."""

    CRYPTO = "crypto"
    SPORTS = "sports"
    ELECTION = "election"
    WEATHER = "weather"
    GENERIC = "generic"

    @classmethod
    def resolve(cls, name: str, description: str = "") -> FeedCategory:
        """Resolve the category of a feed from its name and description.

        The first category with a matching keyword wins, in declaration order.

        :param name: Feed name.
        :param description: Feed description.
        :returns: Resolved category, GENERIC if nothing matched.
        """
        text = f"{name} {description}".lower()
        for category, keywords in _CATEGORY_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return category
        return cls.GENERIC


_CATEGORY_KEYWORDS: tuple[tuple[FeedCategory, tuple[str, ...]], ...] = (
    (FeedCategory.CRYPTO, ("crypto", "bitcoin", "ethereum", "price", "btc", "eth")),
    (FeedCategory.SPORTS, ("sport", "game", "match")),
    (FeedCategory.ELECTION, ("election", "vote", "politic")),
    (FeedCategory.WEATHER, ("weather", "temperature", "climate")),
)

# Asset tickers recognised inside free text.
KNOWN_SYMBOLS = ("BTC", "ETH", "BNB", "SOL", "ADA", "DOT", "MATIC", "LINK", "AVAX", "UNI")
SYMBOL_PATTERN = re.compile(r"\b(" + "|".join(KNOWN_SYMBOLS) + r")\b", re.IGNORECASE)
PAIR_PATTERN = re.compile(r"\b([A-Za-z]{2,10})\s*/\s*([A-Za-z]{3,5})\b")

ASSET_NAMES = {
    "bitcoin": "btc",
    "ethereum": "eth",
    "solana": "sol",
    "cardano": "ada",
    "polkadot": "dot",
    "chainlink": "link",
    "avalanche": "avax",
}


class PriceSymbol:
    """A base/quote price symbol such as ``btc/usd``.

    :ivar base: Base asset symbol (lowercase).
    :ivar quote: Quote currency symbol (lowercase).
    """

    def __init__(self, base: str, quote: str = "usd") -> None:
        self.base = base.lower()
        self.quote = quote.lower()

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"

    def __repr__(self) -> str:
        return f"PriceSymbol({self.base!r}, {self.quote!r})"

    def __hash__(self) -> int:
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PriceSymbol):
            return NotImplemented
        return str(self) == str(other)

    @classmethod
    def from_string(cls, symbol: str) -> PriceSymbol:
        """Parse a symbol string in format "base/quote".

        :param symbol: Symbol string like "btc/usd".
        :returns: New PriceSymbol instance.
        :raises ValueError: If the format is invalid.
        """
        parts = [part.strip() for part in symbol.lower().split("/")]
        if len(parts) != 2 or not all(parts):
            raise ValueError(
                f"Invalid symbol format '{symbol}'. Expected 'base/quote' (e.g., 'btc/usd')"
            )
        return cls(parts[0], parts[1])

    @classmethod
    def from_text(cls, text: str) -> PriceSymbol | None:
        """Extract a price symbol from free text such as a feed name.

        Tries an explicit ``BASE/QUOTE`` pair first, then a known ticker,
        then a known asset name. Tickers and names are quoted in USD.

        :param text: Free text to search.
        :returns: Extracted symbol, or None if nothing recognisable was found.

        .. code-block:: python

            >>> PriceSymbol.from_text("Will BTC reach $100k?")
            PriceSymbol('btc', 'usd')
        """
        pair_match = PAIR_PATTERN.search(text)
        if pair_match:
            return cls(pair_match.group(1), pair_match.group(2))

        symbol_match = SYMBOL_PATTERN.search(text)
        if symbol_match:
            return cls(symbol_match.group(1))

        lowered = text.lower()
        for asset_name, symbol in ASSET_NAMES.items():
            if asset_name in lowered:
                return cls(symbol)
        return None
