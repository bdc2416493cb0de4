"""Dashboard engine - the facade the HTTP layer talks to.

Wires providers, the fetch orchestrator, the quote store, holdings, currency
selection and the per-card period controller, and implements the inbound
operations:

- add_holding / edit_holding / remove_holding
- select_period / cycle_period
- select_currency

plus the read models (quotes, portfolio snapshot, cards, last cycle report)
and the polling loop.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from marketpulse.config import settings
from marketpulse.constants import PORTFOLIO_SYMBOL, Period
from marketpulse.services.display.period_controller import CardState, PeriodController
from marketpulse.services.market_data.currency_service import CurrencyService
from marketpulse.services.market_data.orchestrator import FetchOrchestrator
from marketpulse.services.market_data.providers import ProviderRegistry
from marketpulse.services.market_data.quote_store import QuoteStore, StoreEvent
from marketpulse.services.market_data.types import FetchCycleReport, HistorySeries, Quote
from marketpulse.services.portfolio.aggregator import PortfolioAggregator
from marketpulse.services.portfolio.holdings_service import HoldingsService
from marketpulse.services.portfolio.valuation_types import Holding, PortfolioSnapshot
from marketpulse.services.shared.kv_store import InMemoryKeyValueStore, SqlKeyValueStore

logger = logging.getLogger(__name__)

PortfolioListener = Callable[[PortfolioSnapshot | None], None]


class DashboardEngine:
    """Live market data and portfolio state for one dashboard.

    Example:
        engine = DashboardEngine.from_settings()
        await engine.refresh()
        engine.add_holding("BTC", "0.5")
        engine.portfolio_snapshot().total_value
    """

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        holdings: HoldingsService,
        currency: CurrencyService,
        symbols: list[str] | None = None,
        default_period: Period | None = None,
    ):
        self._orchestrator = orchestrator
        self._store: QuoteStore = orchestrator.store
        self._holdings = holdings
        self._currency = currency
        self._symbols = [s.upper() for s in (symbols if symbols is not None else settings.symbols)]
        self._controller = PeriodController(
            self._store,
            orchestrator.fetch_history,
            default_period or Period(settings.default_period),
        )
        for symbol in self._symbols:
            self._controller.register_card(symbol, symbol)
        self._controller.register_card(
            PORTFOLIO_SYMBOL, PORTFOLIO_SYMBOL, loader=self.portfolio_history
        )

        self._portfolio: PortfolioSnapshot | None = None
        self._listeners: list[PortfolioListener] = []
        self._poll_task: asyncio.Task | None = None

        self._holdings.subscribe(self._on_holdings_changed)
        self._store.subscribe(self._on_store_event)
        self._recompute()

    @classmethod
    def from_settings(cls, session_factory: sessionmaker | None = None) -> "DashboardEngine":
        """Build an engine from application settings.

        Holdings go to the database when a session factory is given and to an
        in-memory store otherwise.

        Raises:
            ProviderConfigurationError: If a provider is unknown or misconfigured
        """
        providers = ProviderRegistry.build_enabled()
        orchestrator = FetchOrchestrator(providers, QuoteStore())
        kv_store = (
            SqlKeyValueStore(session_factory)
            if session_factory is not None
            else InMemoryKeyValueStore()
        )
        logger.info(
            "Dashboard engine configured with providers: %s",
            ", ".join(p.name for p in orchestrator.providers),
        )
        return cls(orchestrator, HoldingsService(kv_store), CurrencyService())

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    @property
    def orchestrator(self) -> FetchOrchestrator:
        return self._orchestrator

    @property
    def store(self) -> QuoteStore:
        return self._store

    @property
    def controller(self) -> PeriodController:
        return self._controller

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    @property
    def last_report(self) -> FetchCycleReport | None:
        return self._orchestrator.last_report

    @property
    def currency(self) -> str:
        """Currency values are actually shown in (USD until a rate is known)."""
        return self._currency.convert(Decimal("1"))[1]

    @property
    def selected_currency(self) -> str:
        return self._currency.selected

    @property
    def supported_currencies(self) -> list[str]:
        return list(self._currency.supported)

    def tracked_symbols(self) -> list[str]:
        """Dashboard symbols plus any held symbol not already on the dashboard."""
        extra = sorted(s for s in self._holdings.holdings if s not in self._symbols)
        return self._symbols + extra

    def convert(self, amount: Decimal) -> tuple[Decimal, str]:
        return self._currency.convert(amount)

    def quotes(self) -> list[Quote]:
        """Latest quotes in the display currency, PF last when it can be priced."""
        snapshot = self._store.snapshot()
        result = []
        for symbol in self.tracked_symbols():
            quote = snapshot.latest(symbol)
            if quote is not None:
                price, _ = self._currency.convert(quote.price)
                result.append(dataclasses.replace(quote, price=price))
        if self._portfolio is not None:
            result.append(self._portfolio.as_quote())
        return result

    def portfolio_snapshot(self) -> PortfolioSnapshot | None:
        return self._portfolio

    def holdings(self) -> list[Holding]:
        return self._holdings.list_holdings()

    def cards(self) -> list[CardState]:
        return self._controller.cards()

    def card(self, card_id: str) -> CardState:
        return self._controller.card(card_id.upper())

    def subscribe(self, listener: PortfolioListener) -> Callable[[], None]:
        """Register a listener called after every portfolio recompute."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    def add_holding(self, symbol: str, quantity: object) -> Holding | None:
        return self._holdings.add_holding(symbol, quantity)

    def edit_holding(self, symbol: str, quantity: object) -> Holding | None:
        return self._holdings.edit_holding(symbol, quantity)

    def remove_holding(self, symbol: str) -> bool:
        return self._holdings.remove_holding(symbol)

    def select_period(self, card_id: str, period: Period | str) -> CardState:
        return self._controller.select_period(card_id.upper(), period)

    def cycle_period(self, card_id: str) -> CardState:
        return self._controller.cycle_period(card_id.upper())

    def select_currency(self, code: str) -> str:
        selected = self._currency.select(code)
        self._recompute()
        return selected

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def refresh(self, include_rates: bool = True) -> FetchCycleReport:
        """Run one fetch cycle (and refresh exchange rates alongside it)."""
        if include_rates:
            report, _ = await asyncio.gather(
                self._orchestrator.run_cycle(self.tracked_symbols()),
                self._currency.refresh(),
            )
            # Rates may have changed without a quote publish
            self._recompute()
            return report
        return await self._orchestrator.run_cycle(self.tracked_symbols())

    async def history(self, symbol: str, period: Period) -> HistorySeries | None:
        """Series for one symbol, from the store when cached."""
        symbol = symbol.upper()
        if symbol == PORTFOLIO_SYMBOL:
            return await self.portfolio_history(symbol, period)
        cached = self._store.history(symbol, period)
        if cached is not None:
            return cached
        return await self._orchestrator.fetch_history(symbol, period)

    async def portfolio_history(self, symbol: str, period: Period) -> HistorySeries | None:
        """Aggregate series for the current holdings, fetched concurrently."""
        holdings = self._holdings.holdings
        if not holdings:
            return None
        symbols = sorted(holdings)
        series = await asyncio.gather(
            *(self._orchestrator.fetch_history(s, period) for s in symbols)
        )
        by_symbol = {s: h for s, h in zip(symbols, series, strict=True) if h is not None}
        return PortfolioAggregator.history(holdings, by_symbol, period)

    def load_cards(self) -> None:
        """Start loading every card's current period."""
        for card in self._controller.cards():
            self._controller.reload(card.card_id)

    async def run(self, interval: float | None = None) -> None:
        """Poll providers forever; a failing cycle is logged and the loop goes on."""
        interval = interval if interval is not None else settings.refresh_interval_seconds
        while True:
            try:
                await self.refresh()
            except Exception:
                logger.exception("Refresh cycle failed")
            await asyncio.sleep(interval)

    def start(self, interval: float | None = None) -> asyncio.Task:
        """Start the polling loop and the initial card loads on the running loop."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(
                self.run(interval), name="dashboard-poll"
            )
            self.load_cards()
        return self._poll_task

    async def aclose(self) -> None:
        """Stop polling, cancel card loads and close provider clients."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            await asyncio.gather(self._poll_task, return_exceptions=True)
            self._poll_task = None
        await self._controller.cancel_all()
        await self._orchestrator.aclose()
        await self._currency.aclose()
        logger.info("Dashboard engine closed")

    # ------------------------------------------------------------------
    # Portfolio recompute
    # ------------------------------------------------------------------

    def _on_holdings_changed(self, holdings: dict[str, Decimal]) -> None:
        self._recompute()

    def _on_store_event(self, event: StoreEvent) -> None:
        if event.kind == "quotes":
            self._recompute()

    def _recompute(self) -> None:
        code = self.currency
        self._portfolio = PortfolioAggregator.snapshot(
            self._holdings.holdings,
            self._store.snapshot(),
            currency=code,
            rate=self._currency.rate(code),
        )
        for listener in list(self._listeners):
            try:
                listener(self._portfolio)
            except Exception:
                logger.exception("Portfolio listener failed")
