"""Tests for the fetch orchestrator."""

import asyncio
import logging
import time
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from marketpulse.constants import CycleStatus, ErrorKind, Period, ProviderStatus
from marketpulse.services.exceptions import ProviderConfigurationError, ProviderUnreachable
from marketpulse.services.market_data.coingecko_client import CoinGeckoProvider
from marketpulse.services.market_data.figure_markets_client import FigureMarketsProvider
from marketpulse.services.market_data.orchestrator import FetchOrchestrator
from marketpulse.services.market_data.quote_store import QuoteStore
from tests.conftest import NOW, StubProvider, hourly_points, make_quote


def make_orchestrator(providers, store=None, **kwargs) -> FetchOrchestrator:
    options = {
        "precedence": [p.name for p in providers],
        "deadline": 1.0,
        "max_retries": 0,
        "backoff_multiplier": 0,
        "backoff_max": 0,
    }
    options.update(kwargs)
    return FetchOrchestrator(providers, store or QuoteStore(), **options)


def unreachable(name="a"):
    return ProviderUnreachable(name, "connection refused")


class RaisingProvider(StubProvider):
    """Provider whose fetch raises instead of returning a failure result."""

    async def fetch_quotes(self, symbols, period):
        raise TypeError("unhashable type: 'list'")


def figure_markets(*replies) -> FigureMarketsProvider:
    """Figure Markets client answering successive requests with (status, payload) pairs."""
    pending = iter(replies)

    def handler(request):
        status_code, payload = next(pending)
        return httpx.Response(status_code, json=payload)

    return FigureMarketsProvider(
        base_url="https://figure.test/api/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def coingecko(payload) -> CoinGeckoProvider:
    def handler(request):
        return httpx.Response(200, json=payload)

    return CoinGeckoProvider(
        base_url="https://coingecko.test/api/v3",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


BTC_MARKET = {
    "data": [{"symbol": "BTC-USD", "midMarketPrice": "50000", "percentageChange24h": "2"}]
}


class TestConfiguration:
    """Tests for orchestrator construction."""

    def test_requires_providers(self):
        with pytest.raises(ProviderConfigurationError):
            FetchOrchestrator([], QuoteStore())

    def test_rejects_duplicate_names(self):
        with pytest.raises(ProviderConfigurationError):
            FetchOrchestrator([StubProvider("a"), StubProvider("a")], QuoteStore())

    def test_providers_sorted_by_precedence(self):
        """Providers missing from the precedence list go last."""
        orchestrator = FetchOrchestrator(
            [StubProvider("c"), StubProvider("b"), StubProvider("a")],
            QuoteStore(),
            precedence=["a", "b"],
        )

        assert [p.name for p in orchestrator.providers] == ["a", "b", "c"]


class TestRunCycle:
    """Tests for run_cycle."""

    def test_partial_failure_uses_fallback(self):
        """Primary down, secondary answers: BTC comes from the secondary."""
        primary = StubProvider("a", error=unreachable())
        secondary = StubProvider("b", quotes={"BTC": ("50000", 2.0)})
        orchestrator = make_orchestrator([primary, secondary])

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.overall_status == CycleStatus.PARTIAL_FAILURE
        assert report.provider_status == {
            "a": ProviderStatus.FAILURE,
            "b": ProviderStatus.SUCCESS,
        }
        quote = orchestrator.store.latest("BTC")
        assert quote.price == Decimal("50000")
        assert quote.change_percent == 2.0
        assert quote.source == "b"
        assert report.provider_results["a"].error_kind == ErrorKind.UNREACHABLE

    def test_all_succeeded_primary_wins(self):
        """When several providers quote a symbol, precedence decides."""
        primary = StubProvider("a", quotes={"BTC": ("50000", 2.0)})
        secondary = StubProvider("b", quotes={"BTC": ("49000", 1.0), "ETH": ("2500", 0.5)})
        orchestrator = make_orchestrator([primary, secondary])

        report = asyncio.run(orchestrator.run_cycle({"BTC", "ETH"}))

        assert report.overall_status == CycleStatus.ALL_SUCCEEDED
        assert report.merged_quotes["BTC"].source == "a"
        assert report.merged_quotes["ETH"].source == "b"
        assert report.persistent_failure is False

    def test_total_failure_keeps_previous_quotes(self):
        """A cycle where nothing is quoted never clears the store."""
        store = QuoteStore()
        store.publish([make_quote("BTC", 48000, timestamp=NOW - timedelta(minutes=1))])
        orchestrator = make_orchestrator(
            [StubProvider("a", error=unreachable()), StubProvider("b", error=unreachable("b"))],
            store,
        )

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.overall_status == CycleStatus.TOTAL_FAILURE
        assert report.persistent_failure is True
        assert report.unpriced_symbols == frozenset({"BTC"})
        assert store.latest("BTC").price == Decimal("48000")

    def test_unpriced_symbol_keeps_previous_quote(self):
        store = QuoteStore()
        store.publish([make_quote("ETH", 2400, timestamp=NOW - timedelta(minutes=1))])
        orchestrator = make_orchestrator([StubProvider("a", quotes={"BTC": ("50000", 1.0)})], store)

        report = asyncio.run(orchestrator.run_cycle({"BTC", "ETH"}))

        assert report.overall_status == CycleStatus.ALL_SUCCEEDED
        assert report.unpriced_symbols == frozenset({"ETH"})
        assert store.latest("ETH").price == Decimal("2400")
        assert store.latest("BTC").price == Decimal("50000")

    def test_slow_provider_times_out(self):
        """A provider past the deadline is a Timeout; the cycle does not wait for it."""
        slow = StubProvider("a", quotes={"BTC": ("1", 0.0)}, delay=5.0)
        fast = StubProvider("b", quotes={"BTC": ("50000", 2.0)})
        orchestrator = make_orchestrator([slow, fast], deadline=0.05)

        started = time.monotonic()
        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert time.monotonic() - started < 2.0
        assert report.provider_status["a"] == ProviderStatus.TIMEOUT
        assert report.overall_status == CycleStatus.PARTIAL_FAILURE
        assert orchestrator.store.latest("BTC").source == "b"

    def test_older_quote_rejected(self):
        """A cycle carrying older data than the store does not regress it."""
        store = QuoteStore()
        store.publish([make_quote("BTC", 51000, timestamp=NOW)])
        stale = StubProvider("a", quotes={"BTC": ("50000", 2.0, NOW - timedelta(minutes=5))})
        orchestrator = make_orchestrator([stale], store)

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.rejected_symbols == frozenset({"BTC"})
        assert store.latest("BTC").price == Decimal("51000")

    def test_symbols_upper_cased(self):
        provider = StubProvider("a", quotes={"BTC": ("50000", 2.0)})
        orchestrator = make_orchestrator([provider])

        asyncio.run(orchestrator.run_cycle(["btc"]))

        assert provider.requested == [frozenset({"BTC"})]

    def test_unexpected_error_recorded_as_failure(self):
        """A provider raising an unexpected error does not abort the cycle."""
        primary = StubProvider("a", quotes={"BTC": ("50000", 2.0)})
        orchestrator = make_orchestrator([primary, RaisingProvider("b")])

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.overall_status == CycleStatus.PARTIAL_FAILURE
        assert report.provider_status["b"] == ProviderStatus.FAILURE
        assert report.provider_results["b"].error_kind == ErrorKind.PARSE_ERROR
        assert orchestrator.store.latest("BTC").source == "a"


class TestRealClients:
    """Cycles driven through the HTTP clients against mocked endpoints."""

    def test_malformed_fallback_payload(self):
        """A fallback entry with an unusable id leaves the primary's quote published."""
        figure = figure_markets((200, BTC_MARKET))
        gecko = coingecko([{"id": ["bitcoin"], "current_price": 48000}])
        orchestrator = make_orchestrator([figure, gecko])

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.overall_status == CycleStatus.ALL_SUCCEEDED
        quote = orchestrator.store.latest("BTC")
        assert quote.price == Decimal("50000")
        assert quote.source == "figure_markets"

    def test_fallback_after_primary_outage(self):
        """Fallback data observed before the primary's last fetch still replaces it."""
        updated = (datetime.now(UTC) - timedelta(seconds=55)).isoformat()
        figure = figure_markets((200, BTC_MARKET), (503, {"error": "unavailable"}))
        gecko = coingecko([{"id": "bitcoin", "current_price": 48000, "last_updated": updated}])
        orchestrator = make_orchestrator([figure, gecko])

        asyncio.run(orchestrator.run_cycle({"BTC"}))
        first = orchestrator.store.latest("BTC")
        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert first.source == "figure_markets"
        assert report.provider_status["figure_markets"] == ProviderStatus.FAILURE
        assert report.rejected_symbols == frozenset()
        quote = orchestrator.store.latest("BTC")
        assert quote.price == Decimal("48000")
        assert quote.source == "coingecko"
        assert quote.observed_at < first.timestamp <= quote.timestamp


class TestRetries:
    """Tests for retry behaviour."""

    def test_failed_provider_retried(self):
        """Only the failed provider is fetched again."""
        flaky = StubProvider("a", quotes={"BTC": ("50000", 2.0)}, error=unreachable(), fail_times=1)
        steady = StubProvider("b", quotes={"ETH": ("2500", 1.0)})
        orchestrator = make_orchestrator([flaky, steady], max_retries=2)

        report = asyncio.run(orchestrator.run_cycle({"BTC", "ETH"}))

        assert report.attempts == 2
        assert flaky.calls == 2
        assert steady.calls == 1
        assert report.overall_status == CycleStatus.ALL_SUCCEEDED
        assert report.persistent_failure is False

    def test_retries_bounded(self):
        """A provider that keeps failing is tried max_retries + 1 times."""
        broken = StubProvider("a", error=unreachable())
        steady = StubProvider("b", quotes={"BTC": ("50000", 2.0)})
        orchestrator = make_orchestrator([broken, steady], max_retries=2)

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.attempts == 3
        assert broken.calls == 3
        assert report.overall_status == CycleStatus.PARTIAL_FAILURE
        assert report.persistent_failure is True

    def test_single_publish_after_retries(self):
        """Retries publish once, at the end of the cycle."""
        flaky = StubProvider("a", quotes={"BTC": ("50000", 2.0)}, error=unreachable(), fail_times=1)
        store = QuoteStore()
        events = []
        store.subscribe(events.append)
        orchestrator = make_orchestrator([flaky], store, max_retries=1)

        asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert len(events) == 1
        assert events[0].cycle_id == 1


class TestCycleEvents:
    """Tests for the per-cycle event."""

    def test_one_event_per_cycle(self):
        orchestrator = make_orchestrator(
            [StubProvider("a", error=unreachable()), StubProvider("b", quotes={"BTC": ("1", 0.0)})]
        )
        events = []
        orchestrator.add_listener(events.append)

        asyncio.run(orchestrator.run_cycle({"BTC"}))
        asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert [e.cycle_id for e in events] == [1, 2]
        assert events[0].overall_status == CycleStatus.PARTIAL_FAILURE
        assert events[0].provider_status == {
            "a": ProviderStatus.FAILURE,
            "b": ProviderStatus.SUCCESS,
        }
        assert orchestrator.last_report.cycle_id == 2

    def test_event_logged(self, caplog):
        """The cycle event is logged with structured extra data."""
        orchestrator = make_orchestrator([StubProvider("a", quotes={"BTC": ("1", 0.0)})])

        with caplog.at_level(logging.INFO, logger="marketpulse.cycles"):
            asyncio.run(orchestrator.run_cycle({"BTC"}))

        records = [r for r in caplog.records if r.name == "marketpulse.cycles"]
        assert len(records) == 1
        assert records[0].cycle_event == {
            "cycle_id": 1,
            "overall_status": "AllSucceeded",
            "provider_status": {"a": "Success"},
        }

    def test_failing_listener_does_not_break_cycle(self):
        orchestrator = make_orchestrator([StubProvider("a", quotes={"BTC": ("1", 0.0)})])

        def broken(event):
            raise RuntimeError("boom")

        orchestrator.add_listener(broken)

        report = asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert report.overall_status == CycleStatus.ALL_SUCCEEDED

    def test_remove_listener(self):
        orchestrator = make_orchestrator([StubProvider("a", quotes={"BTC": ("1", 0.0)})])
        events = []
        remove = orchestrator.add_listener(events.append)
        remove()

        asyncio.run(orchestrator.run_cycle({"BTC"}))

        assert events == []


class TestFetchHistory:
    """Tests for fetch_history."""

    def test_falls_back_to_next_provider(self):
        """Providers without history are skipped in precedence order."""
        primary = StubProvider("a")
        secondary = StubProvider("b", history={"BTC": hourly_points([100, 110, 120])})
        orchestrator = make_orchestrator([primary, secondary])

        series = asyncio.run(orchestrator.fetch_history("btc", Period.DAY))

        assert series.source == "b"
        assert [p.price for p in series.points] == [Decimal("100"), Decimal("110"), Decimal("120")]
        assert primary.history_calls == [("BTC", Period.DAY)]
        assert orchestrator.store.history("BTC", Period.DAY) is series

    def test_no_history_anywhere(self):
        orchestrator = make_orchestrator([StubProvider("a"), StubProvider("b")])

        assert asyncio.run(orchestrator.fetch_history("BTC", Period.DAY)) is None

    def test_slow_history_skipped(self):
        slow = StubProvider("a", history={"BTC": hourly_points([1])}, delay=5.0)
        fast = StubProvider("b", history={"BTC": hourly_points([2])})
        orchestrator = make_orchestrator([slow, fast], deadline=0.05)

        series = asyncio.run(orchestrator.fetch_history("BTC", Period.DAY))

        assert series.source == "b"


class TestClose:
    """Tests for aclose."""

    def test_closes_providers(self):
        providers = [StubProvider("a"), StubProvider("b")]
        orchestrator = make_orchestrator(providers)

        asyncio.run(orchestrator.aclose())

        assert all(p.closed for p in providers)
