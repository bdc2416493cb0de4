"""Figure Markets exchange client.

Primary quote source for the dashboard. The exchange lists crypto markets
as ``<SYMBOL>-USD`` pairs and publishes mid-market prices with a 24 hour
percentage change. It does not offer a history endpoint we rely on.
"""

import logging
from datetime import datetime
from decimal import Decimal

import httpx

from marketpulse.config import settings
from marketpulse.constants import ErrorKind, Period, ProviderName
from marketpulse.services.exceptions import ProviderError, ProviderParseError
from marketpulse.services.market_data.base_provider import (
    QuoteProvider,
    RawQuotes,
    to_decimal,
    to_percent,
)
from marketpulse.services.market_data.types import Quote
from marketpulse.services.shared.http_client import AsyncHTTPClient

logger = logging.getLogger(__name__)

QUOTE_CURRENCY_SUFFIX = "-USD"

# Fields to try for the price, in order of preference
PRICE_FIELDS = ["midMarketPrice", "lastTradedPrice", "bestBid"]


class FigureMarketsProvider(AsyncHTTPClient, QuoteProvider):
    """Quote provider backed by the Figure Markets public markets endpoint.

    Usage:
        provider = FigureMarketsProvider()
        result = await provider.fetch_quotes(frozenset({"HASH", "BTC"}), Period.DAY)
    """

    name = ProviderName.FIGURE_MARKETS

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.figure_markets_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers={"Accept": "application/json"},
            client=client,
        )

    async def _fetch_quotes(self, symbols: frozenset[str], period: Period) -> RawQuotes:
        payload = await self.get_json("/markets")

        markets = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(markets, list):
            raise ProviderParseError(self.name, "markets payload has no data list")

        fetched_at = self.now()
        quotes: list[Quote] = []
        symbol_errors: dict[str, str] = {}

        for market in markets:
            market_symbol = str(market.get("symbol", "")) if isinstance(market, dict) else ""
            if not market_symbol.endswith(QUOTE_CURRENCY_SUFFIX):
                continue
            symbol = market_symbol.removesuffix(QUOTE_CURRENCY_SUFFIX).upper()
            if symbol not in symbols:
                continue

            try:
                price = self._extract_price(market)
                change = to_percent(market.get("percentageChange24h"))
            except (TypeError, ValueError) as e:
                logger.warning(f"Unparsable Figure Markets entry for {symbol}: {e}")
                symbol_errors[symbol] = ErrorKind.PARSE_ERROR
                continue

            quotes.append(
                Quote(
                    symbol=symbol,
                    price=price,
                    change_percent=change,
                    timestamp=fetched_at,
                    source=self.name,
                )
            )

        return quotes, symbol_errors

    @staticmethod
    def _extract_price(market: dict) -> Decimal:
        for field in PRICE_FIELDS:
            if market.get(field) not in (None, "", "0"):
                return to_decimal(market[field])
        raise ValueError("no price field")

    async def _fetch_history(
        self, symbol: str, period: Period
    ) -> list[tuple[datetime, Decimal]]:
        raise ProviderError(self.name, ErrorKind.UNSUPPORTED)
