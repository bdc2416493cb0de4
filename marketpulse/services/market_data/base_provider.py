"""Base class for quote providers.

This module defines the abstract interface that every external quote source
implements. The orchestrator works with all providers uniformly through it.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from marketpulse.constants import ErrorKind, Period
from marketpulse.services.exceptions import (
    ProviderError,
    ProviderParseError,
    ProviderTimeout,
)
from marketpulse.services.market_data.types import (
    HistorySeries,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    Quote,
)
from marketpulse.services.market_data.types import ProviderTimeout as TimeoutResult
from marketpulse.services.shared.http_client import HTTPClientError, HTTPTimeoutError

logger = logging.getLogger(__name__)

# (quotes, per-symbol errors) as returned by a provider's native fetch
RawQuotes = tuple[list[Quote], dict[str, str]]


def to_decimal(value: object) -> Decimal:
    """Parse a provider price into a positive Decimal.

    Raises:
        ValueError: If the value is missing, not numeric or not positive
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a price: {value!r}")
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"not a price: {value!r}") from e
    if not price.is_finite() or price <= 0:
        raise ValueError(f"not a price: {value!r}")
    return price


def to_percent(value: object) -> float:
    """Parse a provider percent change; a missing value means no change.

    Raises:
        ValueError: If the value is not numeric or not finite
    """
    if value is None or value == "":
        return 0.0
    change = float(value)
    if not math.isfinite(change):
        raise ValueError(f"not a percent change: {value!r}")
    return change


class QuoteProvider(ABC):
    """Abstract base class for all quote providers.

    Subclasses implement ``_fetch_quotes`` and ``_fetch_history`` and may
    raise ``ProviderError`` or ``HTTPClientError`` from them. The public
    ``fetch_quotes``/``fetch_history`` never raise for ordinary network,
    HTTP or payload failures.

    Example usage:
        provider = CoinGeckoProvider()
        result = await provider.fetch_quotes(frozenset({"BTC"}), Period.DAY)
    """

    name: str = ""

    @abstractmethod
    async def _fetch_quotes(self, symbols: frozenset[str], period: Period) -> RawQuotes:
        """Fetch and translate quotes for the requested symbols."""

    @abstractmethod
    async def _fetch_history(
        self, symbol: str, period: Period
    ) -> list[tuple[datetime, Decimal]]:
        """Fetch raw (timestamp, price) points covering the period."""

    async def aclose(self) -> None:
        """Release provider resources."""

    @staticmethod
    def now() -> datetime:
        return datetime.now(UTC)

    async def fetch_quotes(self, symbols: frozenset[str], period: Period) -> ProviderResult:
        """Fetch quotes for one cycle.

        Args:
            symbols: Requested symbols
            period: Period the change percent should cover, where supported

        Returns:
            ProviderSuccess, ProviderFailure or ProviderTimeout
        """
        requested = frozenset(s.upper() for s in symbols)
        if not requested:
            return ProviderSuccess(provider=self.name)

        try:
            quotes, symbol_errors = await self._fetch_quotes(requested, period)
        except (ProviderTimeout, HTTPTimeoutError):
            logger.warning("%s timed out fetching %d symbols", self.name, len(requested))
            return TimeoutResult(provider=self.name)
        except (ProviderError, HTTPClientError) as e:
            kind = self._classify(e)
            logger.warning("%s failed (%s): %s", self.name, kind, e)
            return ProviderFailure(provider=self.name, reason=str(e), error_kind=kind)
        except Exception as e:
            # Payload translation failed in a way the client did not anticipate
            logger.exception("%s returned a payload that could not be translated", self.name)
            return ProviderFailure(
                provider=self.name,
                reason=f"{type(e).__name__}: {e}",
                error_kind=ErrorKind.PARSE_ERROR,
            )

        accepted = tuple(q for q in quotes if q.symbol in requested)
        logger.info(
            "%s returned %d/%d quotes (%d unparsable)",
            self.name,
            len(accepted),
            len(requested),
            len(symbol_errors),
        )
        return ProviderSuccess(
            provider=self.name,
            quotes=accepted,
            symbol_errors={s: r for s, r in symbol_errors.items() if s in requested},
        )

    async def fetch_history(self, symbol: str, period: Period) -> HistorySeries | None:
        """Fetch the history series for one symbol, or None on failure."""
        symbol = symbol.upper()
        try:
            raw_points = await self._fetch_history(symbol, period)
        except (ProviderError, HTTPClientError) as e:
            logger.warning("%s history for %s/%s failed: %s", self.name, symbol, period.value, e)
            return None
        except Exception:
            logger.exception(
                "%s returned a %s/%s history payload that could not be translated",
                self.name,
                symbol,
                period.value,
            )
            return None

        if not raw_points:
            logger.info("%s has no %s history for %s", self.name, period.value, symbol)
            return None

        return HistorySeries.bounded(
            symbol=symbol,
            period=period,
            points=raw_points,
            source=self.name,
            fetched_at=self.now(),
        )

    @staticmethod
    def _classify(error: Exception) -> str:
        if isinstance(error, ProviderParseError):
            return ErrorKind.PARSE_ERROR
        status_code = getattr(error, "status_code", None)
        if status_code == 429:
            return ErrorKind.RATE_LIMITED
        if isinstance(status_code, int) and status_code < 400:
            # Successful response with a body that is not JSON
            return ErrorKind.PARSE_ERROR
        if status_code is not None:
            return ErrorKind.HTTP_ERROR
        return ErrorKind.UNREACHABLE
