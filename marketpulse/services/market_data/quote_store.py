"""Process-wide cache of the latest quote per symbol and history per period.

The orchestrator is the single writer. Every publish builds new mappings and
swaps one reference, so a reader holding a ``StoreSnapshot`` always sees a
complete state: the one before the publish or the one after it.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from marketpulse.constants import Period
from marketpulse.services.market_data.types import HistorySeries, Quote

logger = logging.getLogger(__name__)

HistoryKey = tuple[str, Period]


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the store at one point in time."""

    version: int
    quotes: Mapping[str, Quote]
    history: Mapping[HistoryKey, HistorySeries]

    def latest(self, symbol: str) -> Quote | None:
        return self.quotes.get(symbol.upper())

    def series(self, symbol: str, period: Period) -> HistorySeries | None:
        return self.history.get((symbol.upper(), period))


@dataclass(frozen=True)
class StoreEvent:
    """Notification sent to subscribers after a publish changed the store."""

    kind: str  # 'quotes', 'history' or 'invalidate'
    symbols: frozenset[str]
    version: int
    cycle_id: int | None = None
    period: Period | None = None


@dataclass(frozen=True)
class PublishResult:
    """Which quotes a publish accepted and which it rejected as out of date."""

    accepted: frozenset[str]
    rejected: frozenset[str]


Subscriber = Callable[[StoreEvent], None]


class QuoteStore:
    """Single-writer, multi-reader quote and history cache.

    ``latest`` never regresses to an older timestamp: a quote older than the
    stored one for the same symbol is rejected, which protects against
    overlapping cycles completing out of order.

    Usage:
        store = QuoteStore()
        unsubscribe = store.subscribe(lambda event: print(event.symbols))
        store.publish([quote], cycle_id=1)
        store.latest("BTC")
    """

    def __init__(self) -> None:
        self._state = StoreSnapshot(
            version=0,
            quotes=MappingProxyType({}),
            history=MappingProxyType({}),
        )
        self._subscribers: list[Subscriber] = []

    def snapshot(self) -> StoreSnapshot:
        """Return the current consistent view."""
        return self._state

    def latest(self, symbol: str) -> Quote | None:
        return self._state.latest(symbol)

    def history(self, symbol: str, period: Period) -> HistorySeries | None:
        return self._state.series(symbol, period)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback run after each publish; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, quotes: Iterable[Quote], cycle_id: int | None = None) -> PublishResult:
        """Publish a cycle's merged quotes.

        Args:
            quotes: Quotes to store; at most one per symbol
            cycle_id: Cycle that produced them, passed on to subscribers

        Returns:
            PublishResult listing accepted and rejected symbols
        """
        current = self._state
        updated = dict(current.quotes)
        accepted: set[str] = set()
        rejected: set[str] = set()

        for quote in quotes:
            stored = updated.get(quote.symbol)
            if stored is not None and quote.timestamp < stored.timestamp:
                logger.info(
                    "Rejected %s quote from cycle %s: %s is older than stored %s",
                    quote.symbol,
                    cycle_id,
                    quote.timestamp.isoformat(),
                    stored.timestamp.isoformat(),
                )
                rejected.add(quote.symbol)
                continue
            updated[quote.symbol] = quote
            accepted.add(quote.symbol)

        result = PublishResult(accepted=frozenset(accepted), rejected=frozenset(rejected))
        if not accepted:
            return result

        self._state = StoreSnapshot(
            version=current.version + 1,
            quotes=MappingProxyType(updated),
            history=current.history,
        )
        self._notify(
            StoreEvent(
                kind="quotes",
                symbols=result.accepted,
                version=self._state.version,
                cycle_id=cycle_id,
            )
        )
        return result

    def publish_history(self, series: HistorySeries) -> bool:
        """Replace the cached series for (symbol, period) wholesale.

        Returns:
            False if a series fetched later is already stored
        """
        current = self._state
        key = (series.symbol, series.period)
        stored = current.history.get(key)
        if stored is not None and series.fetched_at < stored.fetched_at:
            logger.info("Rejected stale %s/%s series", series.symbol, series.period.value)
            return False

        history = dict(current.history)
        history[key] = series
        self._state = StoreSnapshot(
            version=current.version + 1,
            quotes=current.quotes,
            history=MappingProxyType(history),
        )
        self._notify(
            StoreEvent(
                kind="history",
                symbols=frozenset({series.symbol}),
                version=self._state.version,
                period=series.period,
            )
        )
        return True

    def invalidate_history(self, symbol: str, period: Period) -> None:
        """Drop the cached series for (symbol, period) so the next read must refetch."""
        current = self._state
        key = (symbol.upper(), period)
        if key not in current.history:
            return

        history = dict(current.history)
        del history[key]
        self._state = StoreSnapshot(
            version=current.version + 1,
            quotes=current.quotes,
            history=MappingProxyType(history),
        )
        self._notify(
            StoreEvent(
                kind="invalidate",
                symbols=frozenset({key[0]}),
                version=self._state.version,
                period=period,
            )
        )

    def _notify(self, event: StoreEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Store subscriber failed on %s event", event.kind)
