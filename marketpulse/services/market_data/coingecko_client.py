"""CoinGecko API client for cryptocurrency quotes and history.

Fallback crypto source behind Figure Markets, and the history source for
crypto cards.
"""

import asyncio
import logging
import time
from datetime import UTC, datetime
from decimal import Decimal

import httpx

from marketpulse.config import settings
from marketpulse.constants import ErrorKind, Period, ProviderName
from marketpulse.services.exceptions import ProviderParseError
from marketpulse.services.market_data.base_provider import (
    QuoteProvider,
    RawQuotes,
    to_decimal,
    to_percent,
)
from marketpulse.services.market_data.types import Quote
from marketpulse.services.shared.http_client import AsyncHTTPClient

logger = logging.getLogger(__name__)

# Symbol to CoinGecko ID mapping for the dashboard's cryptocurrencies
SYMBOL_TO_ID: dict[str, str] = {
    "HASH": "hash-2",
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
    "LTC": "litecoin",
    "DOGE": "dogecoin",
    "ADA": "cardano",
    "LINK": "chainlink",
    "AVAX": "avalanche-2",
    "USDC": "usd-coin",
    "USDT": "tether",
}

# Period -> change field on /coins/markets and days for /market_chart
CHANGE_FIELDS: dict[Period, str] = {
    Period.DAY: "price_change_percentage_24h_in_currency",
    Period.WEEK: "price_change_percentage_7d_in_currency",
    Period.MONTH: "price_change_percentage_30d_in_currency",
}
CHART_DAYS: dict[Period, int] = {
    Period.DAY: 1,
    Period.WEEK: 7,
    Period.MONTH: 30,
}


class CoinGeckoProvider(AsyncHTTPClient, QuoteProvider):
    """Quote provider for cryptocurrencies backed by CoinGecko.

    Usage:
        provider = CoinGeckoProvider()
        result = await provider.fetch_quotes(frozenset({"BTC", "ETH"}), Period.WEEK)
        series = await provider.fetch_history("BTC", Period.DAY)
    """

    name = ProviderName.COINGECKO

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        min_request_interval: float = 0.0,
        symbol_ids: dict[str, str] | None = None,
    ):
        """Initialize CoinGecko provider.

        Args:
            api_key: Optional demo API key for higher rate limits
            base_url: Override for the public API endpoint
            timeout: Per-request timeout in seconds
            client: Shared httpx client (tests inject a mock transport)
            min_request_interval: Seconds to keep between requests
            symbol_ids: Extra symbol to coin ID mappings for this instance
        """
        self.api_key = api_key if api_key is not None else settings.coingecko_api_key
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key
        super().__init__(
            base_url=base_url or settings.coingecko_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers=headers,
            client=client,
        )
        self._last_request_time: float = 0
        self._min_request_interval = min_request_interval
        self.symbol_ids = {
            **SYMBOL_TO_ID,
            **{symbol.upper(): coin_id for symbol, coin_id in (symbol_ids or {}).items()},
        }

    async def _rate_limit(self) -> None:
        """Enforce spacing between requests without blocking the loop."""
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._min_request_interval:
            await asyncio.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.monotonic()

    def _symbol_to_id(self, symbol: str) -> str:
        """Convert cryptocurrency symbol to CoinGecko ID.

        Args:
            symbol: Crypto symbol (e.g., "BTC", "ETH")

        Returns:
            CoinGecko coin ID (e.g., "bitcoin", "ethereum")
        """
        upper_symbol = symbol.upper()
        if upper_symbol in self.symbol_ids:
            return self.symbol_ids[upper_symbol]
        # Fallback: convert to lowercase (works for many coins)
        return symbol.lower()

    async def _fetch_quotes(self, symbols: frozenset[str], period: Period) -> RawQuotes:
        symbol_to_id_map = {s: self._symbol_to_id(s) for s in symbols}
        id_to_symbol = {v: k for k, v in symbol_to_id_map.items()}

        await self._rate_limit()
        result = await self.get_json(
            "/coins/markets",
            params={
                "vs_currency": "usd",
                "ids": ",".join(sorted(symbol_to_id_map.values())),
                "price_change_percentage": "24h,7d,30d",
            },
        )
        if not isinstance(result, list):
            raise ProviderParseError(self.name, "markets payload is not a list")

        change_field = CHANGE_FIELDS[period]
        fetched_at = self.now()
        quotes: list[Quote] = []
        symbol_errors: dict[str, str] = {}

        for coin in result:
            coin_id = coin.get("id") if isinstance(coin, dict) else None
            symbol = id_to_symbol.get(coin_id) if isinstance(coin_id, str) else None
            if symbol is None:
                continue
            try:
                quotes.append(
                    Quote(
                        symbol=symbol,
                        price=to_decimal(coin.get("current_price")),
                        change_percent=to_percent(coin.get(change_field)),
                        timestamp=fetched_at,
                        source=self.name,
                        observed_at=self._parse_updated(coin.get("last_updated")),
                    )
                )
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Unparsable CoinGecko entry for {symbol}: {e}")
                symbol_errors[symbol] = ErrorKind.PARSE_ERROR

        logger.info(f"Fetched prices for {len(quotes)}/{len(symbols)} cryptocurrencies")
        return quotes, symbol_errors

    @staticmethod
    def _parse_updated(value: object) -> datetime | None:
        if not isinstance(value, str) or not value:
            return None
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    async def _fetch_history(
        self, symbol: str, period: Period
    ) -> list[tuple[datetime, Decimal]]:
        coin_id = self._symbol_to_id(symbol)

        await self._rate_limit()
        result = await self.get_json(
            f"/coins/{coin_id}/market_chart",
            params={"vs_currency": "usd", "days": str(CHART_DAYS[period])},
        )
        prices_data = result.get("prices") if isinstance(result, dict) else None
        if not isinstance(prices_data, list):
            raise ProviderParseError(self.name, f"market chart for {symbol} has no prices")

        history: list[tuple[datetime, Decimal]] = []
        for point in prices_data:
            try:
                timestamp_ms, price = point
                history.append(
                    (datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC), to_decimal(price))
                )
            except (TypeError, ValueError, OverflowError, OSError):
                continue

        logger.info(f"Fetched {len(history)} historical prices for {symbol}")
        return history
