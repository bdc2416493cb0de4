"""Shared test fixtures and stub providers."""

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from marketpulse.constants import Period
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.market_data.base_provider import QuoteProvider, RawQuotes
from marketpulse.services.market_data.currency_service import CurrencyService
from marketpulse.services.market_data.orchestrator import FetchOrchestrator
from marketpulse.services.market_data.quote_store import QuoteStore
from marketpulse.services.market_data.types import HistorySeries, Quote
from marketpulse.services.portfolio.holdings_service import HoldingsService
from marketpulse.services.shared.kv_store import InMemoryKeyValueStore

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


def make_quote(
    symbol: str,
    price: str | int | float,
    change: float = 0.0,
    timestamp: datetime | None = None,
    source: str = "stub",
) -> Quote:
    return Quote(
        symbol=symbol,
        price=Decimal(str(price)),
        change_percent=change,
        timestamp=timestamp or NOW,
        source=source,
    )


def make_series(
    symbol: str,
    prices: list[str | int | float],
    period: Period = Period.DAY,
    end: datetime = NOW,
    source: str = "stub",
    fetched_at: datetime | None = None,
) -> HistorySeries:
    """Series with one point per granularity step, the last one at ``end``."""
    step = period.granularity
    count = len(prices)
    points = [(end - step * (count - 1 - i), Decimal(str(p))) for i, p in enumerate(prices)]
    return HistorySeries.bounded(symbol, period, points, source, fetched_at or NOW)


class StubProvider(QuoteProvider):
    """In-process provider with scripted quotes, failures and delays."""

    def __init__(
        self,
        name: str,
        quotes: dict[str, tuple] | None = None,
        error: Exception | None = None,
        fail_times: int | None = None,
        delay: float = 0.0,
        history: dict[str, list[tuple[datetime, Decimal]]] | None = None,
    ):
        self.name = name
        self.quotes = quotes or {}
        self.error = error
        self.fail_times = fail_times
        self.delay = delay
        self.history = history or {}
        self.calls = 0
        self.requested: list[frozenset[str]] = []
        self.history_calls: list[tuple[str, Period]] = []
        self.closed = False

    async def _fetch_quotes(self, symbols: frozenset[str], period: Period) -> RawQuotes:
        self.calls += 1
        self.requested.append(symbols)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None and (self.fail_times is None or self.calls <= self.fail_times):
            raise self.error
        quotes = []
        for symbol in symbols:
            if symbol in self.quotes:
                price, change, *rest = self.quotes[symbol]
                timestamp = rest[0] if rest else NOW
                quotes.append(make_quote(symbol, price, change, timestamp, self.name))
        return quotes, {}

    async def _fetch_history(self, symbol: str, period: Period) -> list[tuple[datetime, Decimal]]:
        self.history_calls.append((symbol, period))
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.history.get(symbol, []))

    async def aclose(self) -> None:
        self.closed = True


def hourly_points(prices: list[str | int | float], end: datetime = NOW):
    return [(end - timedelta(hours=len(prices) - 1 - i), Decimal(str(p))) for i, p in enumerate(prices)]


def rates_transport(rates: dict[str, float] | None = None, status_code: int = 200):
    """Mock exchange rate API answering /latest."""
    payload = {"amount": 1.0, "base": "USD", "date": "2024-01-15", "rates": rates or {}}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


def build_engine(
    providers: list[QuoteProvider],
    symbols: list[str] | None = None,
    rates: dict[str, float] | None = None,
    kv_store: InMemoryKeyValueStore | None = None,
) -> DashboardEngine:
    orchestrator = FetchOrchestrator(
        providers,
        QuoteStore(),
        precedence=[p.name for p in providers],
        deadline=1.0,
        max_retries=0,
        backoff_multiplier=0,
    )
    currency = CurrencyService(
        supported=["USD", "EUR"],
        default="USD",
        base_url="https://rates.test",
        client=httpx.AsyncClient(transport=rates_transport(rates if rates is not None else {"EUR": 0.92})),
    )
    return DashboardEngine(
        orchestrator,
        HoldingsService(kv_store or InMemoryKeyValueStore()),
        currency,
        symbols=symbols if symbols is not None else ["BTC", "ETH"],
        default_period=Period.DAY,
    )


@pytest.fixture
def store():
    """Empty quote store."""
    return QuoteStore()
