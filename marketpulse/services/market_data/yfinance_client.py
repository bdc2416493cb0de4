"""YFinance quote provider.

yfinance has its own HTTP handling, so this doesn't inherit from
AsyncHTTPClient. Its calls block, so each one runs in a worker thread and
only immutable results cross back into the event loop.
"""

import asyncio
import logging
from datetime import UTC, datetime
from decimal import Decimal

import yfinance as yf

from marketpulse.constants import KNOWN_CRYPTO, ErrorKind, Period, ProviderName
from marketpulse.services.exceptions import ProviderUnreachable
from marketpulse.services.market_data.base_provider import (
    QuoteProvider,
    RawQuotes,
    to_decimal,
    to_percent,
)
from marketpulse.services.market_data.types import Quote

logger = logging.getLogger(__name__)

# Period -> (yfinance period, interval); the series is trimmed to the lookback afterwards
HISTORY_PARAMS: dict[Period, tuple[str, str]] = {
    Period.DAY: ("5d", "1h"),
    Period.WEEK: ("1mo", "1h"),
    Period.MONTH: ("3mo", "1d"),
}


class YFinanceProvider(QuoteProvider):
    """Quote provider backed by Yahoo Finance.

    Usage:
        provider = YFinanceProvider()
        result = await provider.fetch_quotes(frozenset({"FIGR"}), Period.DAY)
    """

    name = ProviderName.YFINANCE

    @staticmethod
    def _to_native(symbol: str) -> str:
        return f"{symbol}-USD" if symbol in KNOWN_CRYPTO else symbol

    async def _fetch_quotes(self, symbols: frozenset[str], period: Period) -> RawQuotes:
        return await asyncio.to_thread(self._fetch_quotes_blocking, symbols)

    def _fetch_quotes_blocking(self, symbols: frozenset[str]) -> RawQuotes:
        quotes: list[Quote] = []
        symbol_errors: dict[str, str] = {}
        failures = 0

        for symbol in sorted(symbols):
            try:
                fast_info = yf.Ticker(self._to_native(symbol)).fast_info
                last_price = fast_info.last_price
                previous_close = fast_info.previous_close
            except Exception as e:
                # yfinance raises arbitrary exception types for network and lookup errors
                logger.error(f"Error fetching price for {symbol}: {e}")
                failures += 1
                continue

            if last_price is None:
                logger.warning(f"No price found for {symbol}")
                continue

            try:
                price = to_decimal(last_price)
                close = float(previous_close) if previous_close else 0.0
                change = to_percent((float(last_price) - close) / close * 100) if close else 0.0
            except (TypeError, ValueError) as e:
                logger.warning(f"Unparsable yfinance data for {symbol}: {e}")
                symbol_errors[symbol] = ErrorKind.PARSE_ERROR
                continue

            quotes.append(
                Quote(
                    symbol=symbol,
                    price=price,
                    change_percent=change,
                    timestamp=self.now(),
                    source=self.name,
                )
            )

        if failures == len(symbols):
            raise ProviderUnreachable(self.name, "every symbol lookup failed")
        return quotes, symbol_errors

    async def _fetch_history(
        self, symbol: str, period: Period
    ) -> list[tuple[datetime, Decimal]]:
        return await asyncio.to_thread(self._fetch_history_blocking, symbol, period)

    def _fetch_history_blocking(
        self, symbol: str, period: Period
    ) -> list[tuple[datetime, Decimal]]:
        yf_period, interval = HISTORY_PARAMS[period]
        try:
            history = yf.Ticker(self._to_native(symbol)).history(period=yf_period, interval=interval)
        except Exception as e:
            raise ProviderUnreachable(self.name, f"history for {symbol}: {e}") from e

        if history.empty:
            logger.warning(f"No historical data for {symbol}")
            return []

        results = []
        for idx, row in history.iterrows():
            close_price = row.get("Close")
            if close_price is None or close_price != close_price or close_price <= 0:
                continue
            ts = idx.to_pydatetime()
            ts = ts.astimezone(UTC) if ts.tzinfo else ts.replace(tzinfo=UTC)
            results.append((ts, Decimal(str(close_price))))

        logger.info(f"Fetched {len(results)} historical prices for {symbol}")
        return results
