"""Twelve Data REST client for stock and crypto quotes and time series."""

import logging
from datetime import UTC, datetime
from decimal import Decimal

import httpx

from marketpulse.config import settings
from marketpulse.constants import KNOWN_CRYPTO, ErrorKind, Period, ProviderName
from marketpulse.services.exceptions import (
    ProviderConfigurationError,
    ProviderParseError,
    ProviderUnreachable,
)
from marketpulse.services.market_data.base_provider import (
    QuoteProvider,
    RawQuotes,
    to_decimal,
    to_percent,
)
from marketpulse.services.market_data.types import Quote
from marketpulse.services.shared.http_client import AsyncHTTPClient

logger = logging.getLogger(__name__)

# Period -> (interval, outputsize) for /time_series
TIME_SERIES_PARAMS: dict[Period, tuple[str, int]] = {
    Period.DAY: ("1h", 24),
    Period.WEEK: ("4h", 42),
    Period.MONTH: ("1day", 30),
}

DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


class TwelveDataProvider(AsyncHTTPClient, QuoteProvider):
    """Quote provider backed by the Twelve Data ``/quote`` and ``/time_series`` endpoints.

    Crypto symbols are requested as ``BTC/USD`` pairs; everything else is
    requested as a plain ticker.

    Usage:
        provider = TwelveDataProvider(api_key="...")
        result = await provider.fetch_quotes(frozenset({"FIGR", "BTC"}), Period.DAY)
    """

    name = ProviderName.TWELVE_DATA

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.twelve_data_api_key
        if not self.api_key:
            raise ProviderConfigurationError("Twelve Data is enabled but no API key is set")
        super().__init__(
            base_url=base_url or settings.twelve_data_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers={"Accept": "application/json"},
            client=client,
        )

    @staticmethod
    def _to_native(symbol: str) -> str:
        return f"{symbol}/USD" if symbol in KNOWN_CRYPTO else symbol

    @staticmethod
    def _from_native(native: str) -> str:
        return native.split("/")[0].upper()

    @staticmethod
    def _is_error(payload: object) -> bool:
        return isinstance(payload, dict) and payload.get("status") == "error"

    async def _fetch_quotes(self, symbols: frozenset[str], period: Period) -> RawQuotes:
        natives = [self._to_native(s) for s in sorted(symbols)]
        payload = await self.get_json(
            "/quote", params={"symbol": ",".join(natives), "apikey": self.api_key}
        )

        if not isinstance(payload, dict):
            raise ProviderParseError(self.name, "quote payload is not an object")
        if self._is_error(payload):
            raise ProviderUnreachable(
                self.name, payload.get("message", "error response"), payload.get("code")
            )

        # A single-symbol request answers with the quote itself
        entries = {natives[0]: payload} if len(natives) == 1 else payload

        quotes: list[Quote] = []
        symbol_errors: dict[str, str] = {}
        fetched_at = self.now()

        for native, entry in entries.items():
            symbol = self._from_native(native)
            if self._is_error(entry):
                logger.info(f"Twelve Data has no quote for {native}: {entry.get('message')}")
                continue
            try:
                quotes.append(
                    Quote(
                        symbol=symbol,
                        price=to_decimal(entry["close"]),
                        change_percent=to_percent(entry.get("percent_change")),
                        timestamp=fetched_at,
                        source=self.name,
                        observed_at=self._parse_timestamp(entry.get("timestamp")),
                    )
                )
            except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
                logger.warning(f"Unparsable Twelve Data quote for {native}: {e}")
                symbol_errors[symbol] = ErrorKind.PARSE_ERROR

        return quotes, symbol_errors

    @staticmethod
    def _parse_timestamp(value: object) -> datetime | None:
        if value in (None, ""):
            return None
        return datetime.fromtimestamp(int(value), tz=UTC)

    async def _fetch_history(
        self, symbol: str, period: Period
    ) -> list[tuple[datetime, Decimal]]:
        interval, outputsize = TIME_SERIES_PARAMS[period]
        payload = await self.get_json(
            "/time_series",
            params={
                "symbol": self._to_native(symbol),
                "interval": interval,
                "outputsize": outputsize,
                "timezone": "UTC",
                "apikey": self.api_key,
            },
        )

        if self._is_error(payload):
            raise ProviderUnreachable(
                self.name, payload.get("message", "error response"), payload.get("code")
            )
        values = payload.get("values") if isinstance(payload, dict) else None
        if not isinstance(values, list):
            raise ProviderParseError(self.name, f"time series for {symbol} has no values")

        points: list[tuple[datetime, Decimal]] = []
        for value in values:
            try:
                points.append((self._parse_datetime(value["datetime"]), to_decimal(value["close"])))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping unparsable Twelve Data point for {symbol}: {value}")

        logger.info(f"Fetched {len(points)} {period.value} points for {symbol} from Twelve Data")
        return points

    @staticmethod
    def _parse_datetime(value: str) -> datetime:
        for fmt in DATETIME_FORMATS:
            try:
                return datetime.strptime(value, fmt).replace(tzinfo=UTC)
            except ValueError:
                continue
        raise ValueError(f"unknown datetime format: {value!r}")
