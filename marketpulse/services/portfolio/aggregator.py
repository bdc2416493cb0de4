"""Portfolio aggregation - single source of truth for the synthetic PF instrument.

Everything here is a pure derivation from holdings and quote data; nothing is
stored. Values are computed in USD and converted with the given rate.
"""

import logging
from bisect import bisect_right
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from marketpulse.constants import PORTFOLIO_SOURCE, PORTFOLIO_SYMBOL, Currency, Period
from marketpulse.services.market_data.types import HistorySeries, Quote
from marketpulse.services.portfolio.valuation_types import ConstituentValue, PortfolioSnapshot

logger = logging.getLogger(__name__)


class QuoteLookup(Protocol):
    def latest(self, symbol: str) -> Quote | None: ...


class PortfolioAggregator:
    """Derives the portfolio snapshot and its history series.

    Example:
        snapshot = PortfolioAggregator.snapshot({"BTC": Decimal("0.5")}, store.snapshot())
        snapshot.total_value  # Decimal("25000.0") with BTC at 50000
    """

    @staticmethod
    def snapshot(
        holdings: Mapping[str, Decimal],
        quotes: QuoteLookup,
        currency: str = Currency.USD,
        rate: Decimal | None = None,
    ) -> PortfolioSnapshot | None:
        """Value the holdings against the latest quotes.

        The change percent is value-weighted:
        sum(quantity * price * change) / sum(quantity * price) over priced holdings.

        Args:
            holdings: Symbol -> quantity; zero quantities are ignored
            quotes: Anything with ``latest(symbol)``, normally a StoreSnapshot
            currency: Display currency of the result
            rate: USD -> currency rate (1 when omitted)

        Returns:
            PortfolioSnapshot, or None when no holding is priced
        """
        rate = rate if rate is not None else Decimal("1")
        priced: list[tuple[str, Decimal, Quote]] = []
        unpriced: set[str] = set()

        for symbol, quantity in sorted(holdings.items()):
            if quantity <= 0:
                continue
            quote = quotes.latest(symbol)
            if quote is None:
                unpriced.add(symbol)
                continue
            priced.append((symbol, quantity, quote))

        total_usd = sum((q * quote.price for _, q, quote in priced), Decimal("0"))
        if not priced or total_usd <= 0:
            if unpriced:
                logger.debug("Portfolio has no priced holdings (unpriced: %s)", sorted(unpriced))
            return None

        weighted_change = sum(
            (q * quote.price * Decimal(str(quote.change_percent)) for _, q, quote in priced),
            Decimal("0"),
        )

        constituents = tuple(
            ConstituentValue(
                symbol=symbol,
                quantity=quantity,
                price=quote.price * rate,
                value=quantity * quote.price * rate,
                change_percent=quote.change_percent,
                weight=(quantity * quote.price) / total_usd,
                source=quote.source,
                timestamp=quote.timestamp,
            )
            for symbol, quantity, quote in priced
        )

        return PortfolioSnapshot(
            total_value=total_usd * rate,
            change_percent=float(weighted_change / total_usd),
            constituents=constituents,
            unpriced=frozenset(unpriced),
            currency=currency,
            as_of=max(quote.timestamp for _, _, quote in priced),
        )

    @staticmethod
    def history(
        holdings: Mapping[str, Decimal],
        series_by_symbol: Mapping[str, HistorySeries],
        period: Period,
    ) -> HistorySeries | None:
        """Build the portfolio's value series for a period.

        Each constituent is forward-filled onto the union of timestamps. The
        series starts once every constituent with data has a first point, so
        the early part is never missing a holding.

        Returns:
            HistorySeries for PF, or None when no constituent has data
        """
        usable = {
            symbol: series
            for symbol, series in series_by_symbol.items()
            if holdings.get(symbol, Decimal("0")) > 0 and not series.is_empty
        }
        if not usable:
            return None

        start = max(series.points[0].timestamp for series in usable.values())
        timestamps = sorted(
            {p.timestamp for series in usable.values() for p in series.points if p.timestamp >= start}
        )

        lookups = {
            symbol: ([p.timestamp for p in series.points], [p.price for p in series.points])
            for symbol, series in usable.items()
        }

        points: list[tuple[datetime, Decimal]] = []
        for ts in timestamps:
            total = Decimal("0")
            for symbol, (times, prices) in lookups.items():
                # Forward-fill: last known price at or before ts
                index = bisect_right(times, ts) - 1
                total += holdings[symbol] * prices[index]
            points.append((ts, total))

        return HistorySeries.bounded(
            symbol=PORTFOLIO_SYMBOL,
            period=period,
            points=points,
            source=PORTFOLIO_SOURCE,
            fetched_at=max(series.fetched_at for series in usable.values()),
        )
