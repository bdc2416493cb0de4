"""Tests for the Figure Markets provider."""

import asyncio
from decimal import Decimal

import httpx

from marketpulse.constants import ErrorKind, Period, ProviderStatus
from marketpulse.services.market_data.figure_markets_client import FigureMarketsProvider

MARKETS_RESPONSE = {
    "data": [
        {
            "symbol": "BTC-USD",
            "midMarketPrice": "50000.5",
            "lastTradedPrice": "50001",
            "percentageChange24h": "2.5",
        },
        {
            "symbol": "HASH-USD",
            "midMarketPrice": None,
            "lastTradedPrice": "0.025",
            "percentageChange24h": "-1.2",
        },
        {"symbol": "ETH-USD", "midMarketPrice": "abc", "percentageChange24h": "1"},
        {"symbol": "FIGR_HELOC-USD", "midMarketPrice": "1.01", "percentageChange24h": "0"},
        {"symbol": "BTC-EUR", "midMarketPrice": "46000", "percentageChange24h": "2"},
    ]
}


def make_provider(status_code=200, payload=None, seen=None) -> FigureMarketsProvider:
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=MARKETS_RESPONSE if payload is None else payload)

    return FigureMarketsProvider(
        base_url="https://figure.test/api/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestFetchQuotes:
    """Tests for fetch_quotes."""

    def test_parses_usd_markets(self):
        """Quotes come from -USD markets, falling back through the price fields."""
        seen = []
        provider = make_provider(seen=seen)

        result = asyncio.run(
            provider.fetch_quotes(frozenset({"BTC", "HASH", "SOL"}), Period.DAY)
        )

        assert result.status == ProviderStatus.SUCCESS
        assert str(seen[0].url) == "https://figure.test/api/v1/markets"
        btc = result.quote_for("BTC")
        assert btc.price == Decimal("50000.5")
        assert btc.change_percent == 2.5
        assert btc.source == "figure_markets"
        assert result.quote_for("HASH").price == Decimal("0.025")
        assert result.quote_for("HASH").change_percent == -1.2
        assert result.quote_for("SOL") is None

    def test_unparsable_entry_is_symbol_error(self):
        """One bad entry does not fail the whole response."""
        result = asyncio.run(make_provider().fetch_quotes(frozenset({"BTC", "ETH"}), Period.DAY))

        assert result.status == ProviderStatus.SUCCESS
        assert result.quote_for("ETH") is None
        assert result.symbol_errors == {"ETH": ErrorKind.PARSE_ERROR}

    def test_non_finite_change_is_symbol_error(self):
        payload = {
            "data": [
                {"symbol": "BTC-USD", "midMarketPrice": "50000", "percentageChange24h": "NaN"},
                {"symbol": "ETH-USD", "midMarketPrice": "2500", "percentageChange24h": "1.0"},
            ]
        }

        result = asyncio.run(
            make_provider(payload=payload).fetch_quotes(frozenset({"BTC", "ETH"}), Period.DAY)
        )

        assert result.quote_for("BTC") is None
        assert result.symbol_errors == {"BTC": ErrorKind.PARSE_ERROR}
        assert result.quote_for("ETH").change_percent == 1.0

    def test_lowercase_symbols(self):
        result = asyncio.run(make_provider().fetch_quotes(frozenset({"btc"}), Period.DAY))

        assert result.quote_for("BTC") is not None

    def test_server_error(self):
        result = asyncio.run(
            make_provider(status_code=503).fetch_quotes(frozenset({"BTC"}), Period.DAY)
        )

        assert result.status == ProviderStatus.FAILURE
        assert result.error_kind == ErrorKind.HTTP_ERROR

    def test_rate_limited(self):
        result = asyncio.run(
            make_provider(status_code=429).fetch_quotes(frozenset({"BTC"}), Period.DAY)
        )

        assert result.error_kind == ErrorKind.RATE_LIMITED

    def test_unexpected_payload(self):
        result = asyncio.run(
            make_provider(payload={"markets": []}).fetch_quotes(frozenset({"BTC"}), Period.DAY)
        )

        assert result.status == ProviderStatus.FAILURE
        assert result.error_kind == ErrorKind.PARSE_ERROR

    def test_non_json_body(self):
        """A 200 response that is not JSON is a parse error, not an HTTP error."""

        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        provider = FigureMarketsProvider(
            base_url="https://figure.test/api/v1",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        result = asyncio.run(provider.fetch_quotes(frozenset({"BTC"}), Period.DAY))

        assert result.status == ProviderStatus.FAILURE
        assert result.error_kind == ErrorKind.PARSE_ERROR

    def test_no_symbols_requested(self):
        seen = []

        result = asyncio.run(make_provider(seen=seen).fetch_quotes(frozenset(), Period.DAY))

        assert result.status == ProviderStatus.SUCCESS
        assert seen == []


class TestFetchHistory:
    """Tests for fetch_history."""

    def test_history_unsupported(self):
        assert asyncio.run(make_provider().fetch_history("BTC", Period.DAY)) is None
