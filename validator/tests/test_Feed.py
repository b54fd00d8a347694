"""Unit tests for Feed, FeedCategory, PriceSymbol and scaling."""

import pytest

from validator.src.Feed import FRESHNESS_THRESHOLD_SECONDS, Feed, FeedCategory, PriceSymbol
from validator.src.scaling import scale, unscale

NOW = 1_700_000_000


def make_feed(**overrides) -> Feed:
    fields = {
        "feed_id": "0x" + "ab" * 32,
        "name": "BTC/USD",
        "description": "Bitcoin price",
        "current_value": 610_250_000,
        "timestamp": NOW - 60,
        "confidence": 95,
        "active": True,
    }
    fields.update(overrides)
    return Feed(**fields)


class TestFeed:
    """Test Feed usability and unscaling."""

    def test_unscaled_value(self) -> None:
        assert make_feed().unscaled_value == 61025.0

    def test_usable_when_active_and_fresh(self) -> None:
        assert make_feed().is_usable(now=NOW)

    def test_inactive_not_usable(self) -> None:
        assert not make_feed(active=False).is_usable(now=NOW)

    def test_stale_not_usable(self) -> None:
        feed = make_feed(timestamp=NOW - FRESHNESS_THRESHOLD_SECONDS)
        assert not feed.is_usable(now=NOW)

    def test_just_fresh(self) -> None:
        feed = make_feed(timestamp=NOW - FRESHNESS_THRESHOLD_SECONDS + 1)
        assert feed.is_usable(now=NOW)


class TestFeedCategory:
    """Test keyword category resolution."""

    @pytest.mark.parametrize(
        "name,description,expected",
        [
            ("BTC/USD", "", FeedCategory.CRYPTO),
            ("Will Bitcoin close above 70k?", "", FeedCategory.CRYPTO),
            ("Champions League final", "Goals scored in the match", FeedCategory.SPORTS),
            ("US Senate", "Election vote share", FeedCategory.ELECTION),
            ("London", "Max temperature tomorrow", FeedCategory.WEATHER),
            ("Box office", "Opening weekend revenue", FeedCategory.GENERIC),
        ],
    )
    def test_resolve(self, name: str, description: str, expected: FeedCategory) -> None:
        assert FeedCategory.resolve(name, description) == expected

    def test_case_insensitive(self) -> None:
        assert FeedCategory.resolve("ELECTION turnout") == FeedCategory.ELECTION

    def test_first_category_wins(self) -> None:
        """Crypto keywords take precedence over later categories."""
        assert FeedCategory.resolve("Crypto sports tokens") == FeedCategory.CRYPTO


class TestPriceSymbol:
    """Test PriceSymbol parsing."""

    def test_from_string(self) -> None:
        symbol = PriceSymbol.from_string(" ETH / USD ")
        assert symbol == PriceSymbol("eth", "usd")
        assert str(symbol) == "eth/usd"

    @pytest.mark.parametrize("bad", ["btcusd", "btc/", "/usd", "a/b/c"])
    def test_from_string_invalid(self, bad: str) -> None:
        with pytest.raises(ValueError, match="Invalid symbol format"):
            PriceSymbol.from_string(bad)

    def test_hashable(self) -> None:
        assert len({PriceSymbol("BTC"), PriceSymbol("btc", "usd")}) == 1

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("SOL/EUR spot", PriceSymbol("sol", "eur")),
            ("Will ETH flip BTC?", PriceSymbol("eth")),
            ("Cardano price index", PriceSymbol("ada")),
        ],
    )
    def test_from_text(self, text: str, expected: PriceSymbol) -> None:
        assert PriceSymbol.from_text(text) == expected

    def test_from_text_nothing(self) -> None:
        assert PriceSymbol.from_text("Total rainfall in mm") is None


class TestScaling:
    """Test fixed-point conversion."""

    @pytest.mark.parametrize("value", [0.0, 1.0, 0.0001, 61025.5, 3.1416, 123456.789, 99999.9999])
    def test_round_trip(self, value: float) -> None:
        assert unscale(scale(value)) == value

    def test_scale_rounds(self) -> None:
        assert scale(1.00005) in (10000, 10001)
        assert scale(2.5) == 25000

    def test_non_finite_rejected(self) -> None:
        for value in (float("nan"), float("inf"), float("-inf")):
            with pytest.raises(ValueError):
                scale(value)
