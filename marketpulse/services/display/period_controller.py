"""Per-card period selection and history loading.

Each card shows one symbol's series for its selected period. Selecting a new
period invalidates the cached series for that period, cancels the card's
in-flight load and starts a new one. Until the new series arrives the card
keeps showing its last good series; if the load fails that series stays and
is flagged stale.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from marketpulse.constants import Period
from marketpulse.services.exceptions import MarketPulseError, UnknownCard
from marketpulse.services.market_data.quote_store import QuoteStore
from marketpulse.services.market_data.types import HistorySeries

logger = logging.getLogger(__name__)

HistoryLoader = Callable[[str, Period], Awaitable[HistorySeries | None]]
CardListener = Callable[["CardState"], None]


@dataclass(frozen=True)
class CardState:
    """What the presentation layer needs to draw one card."""

    card_id: str
    symbol: str
    period: Period
    series: HistorySeries | None
    stale: bool
    loading: bool
    last_error: str | None = None


@dataclass
class _Card:
    card_id: str
    symbol: str
    period: Period
    loader: HistoryLoader
    series: HistorySeries | None = None
    stale: bool = False
    last_error: str | None = None
    task: asyncio.Task | None = field(default=None, repr=False)

    def view(self) -> CardState:
        return CardState(
            card_id=self.card_id,
            symbol=self.symbol,
            period=self.period,
            series=self.series,
            stale=self.stale,
            loading=self.task is not None and not self.task.done(),
            last_error=self.last_error,
        )


class PeriodController:
    """State machine over the configured periods, one per card.

    ``select_period`` is synchronous: it schedules the load on the running
    event loop and returns immediately. Use ``wait_idle`` as the completion
    signal.

    Usage:
        controller = PeriodController(store, orchestrator.fetch_history)
        controller.register_card("BTC", "BTC")
        controller.select_period("BTC", Period.WEEK)
        await controller.wait_idle("BTC")
    """

    def __init__(
        self,
        store: QuoteStore,
        loader: HistoryLoader,
        default_period: Period = Period.DAY,
    ) -> None:
        self._store = store
        self._loader = loader
        self._default_period = default_period
        self._cards: dict[str, _Card] = {}
        self._listeners: list[CardListener] = []

    def subscribe(self, listener: CardListener) -> Callable[[], None]:
        """Register a listener called whenever a card's state changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def register_card(
        self,
        card_id: str,
        symbol: str,
        period: Period | None = None,
        loader: HistoryLoader | None = None,
    ) -> CardState:
        """Add a card; an existing card with the same id is kept as is."""
        if card_id in self._cards:
            return self._cards[card_id].view()

        card = _Card(
            card_id=card_id,
            symbol=symbol.upper(),
            period=period or self._default_period,
            loader=loader or self._loader,
        )
        cached = self._store.history(card.symbol, card.period)
        if cached is not None:
            card.series = cached
        self._cards[card_id] = card
        return card.view()

    def unregister_card(self, card_id: str) -> None:
        card = self._cards.pop(card_id, None)
        if card is not None and card.task is not None:
            card.task.cancel()

    def has_card(self, card_id: str) -> bool:
        return card_id in self._cards

    def card(self, card_id: str) -> CardState:
        return self._get(card_id).view()

    def cards(self) -> list[CardState]:
        return [card.view() for card in self._cards.values()]

    def _get(self, card_id: str) -> _Card:
        card = self._cards.get(card_id)
        if card is None:
            raise UnknownCard(card_id)
        return card

    def select_period(self, card_id: str, period: Period | str) -> CardState:
        """Switch a card to a period and start loading its series.

        Selecting the period a card already shows, with nothing loading and
        fresh data, changes nothing.

        Raises:
            UnknownCard: If no card has this id
            ValueError: If the period is not one of the configured periods
        """
        card = self._get(card_id)
        period = Period(period)

        is_current = (
            period == card.period
            and card.series is not None
            and card.series.period == period
            and not card.stale
        )
        if is_current and (card.task is None or card.task.done()):
            return card.view()

        logger.info("Card %s: %s -> %s", card_id, card.period.value, period.value)
        card.period = period
        self._store.invalidate_history(card.symbol, period)
        self._start_load(card)
        self._notify(card)
        return card.view()

    def cycle_period(self, card_id: str) -> CardState:
        """Advance a card to the next period (24H -> 1W -> 1M -> 24H)."""
        card = self._get(card_id)
        return self.select_period(card_id, card.period.next())

    def reload(self, card_id: str) -> CardState:
        """Reload a card's current period without changing it."""
        card = self._get(card_id)
        self._start_load(card)
        return card.view()

    def _start_load(self, card: _Card) -> None:
        if card.task is not None and not card.task.done():
            card.task.cancel()
        loop = asyncio.get_running_loop()
        card.task = loop.create_task(
            self._load(card, card.period), name=f"card:{card.card_id}:{card.period.value}"
        )

    async def _load(self, card: _Card, period: Period) -> None:
        error: str | None = None
        try:
            series = await card.loader(card.symbol, period)
        except MarketPulseError as e:
            series = None
            error = str(e)

        if card.period != period:
            # Superseded by a later selection
            return

        if series is None or series.is_empty:
            card.stale = card.series is not None
            card.last_error = error or f"No {period.value} history for {card.symbol}"
            logger.warning(
                "Card %s: %s load failed, keeping %s",
                card.card_id,
                period.value,
                "last good series (stale)" if card.stale else "empty state",
            )
        else:
            card.series = series
            card.stale = False
            card.last_error = None

        card.task = None
        self._notify(card)

    def _notify(self, card: _Card) -> None:
        view = card.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Card listener failed for %s", card.card_id)

    async def wait_idle(self, card_id: str | None = None) -> None:
        """Wait until the card (or every card) has no load in flight."""
        while True:
            cards = [self._get(card_id)] if card_id is not None else list(self._cards.values())
            tasks = [c.task for c in cards if c.task is not None and not c.task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every in-flight load (page teardown)."""
        tasks = [c.task for c in self._cards.values() if c.task is not None and not c.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for card in self._cards.values():
            card.task = None
