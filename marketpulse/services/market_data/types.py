"""Value objects for quotes, provider results and fetch cycles."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Union

from marketpulse.constants import CycleStatus, ErrorKind, Period, ProviderStatus

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class Quote:
    """A priced observation of a symbol at a point in time.

    ``timestamp`` is when the quote was fetched and orders quotes in the
    store. ``observed_at`` is the provider's own time for the price, when it
    reports one.
    """

    symbol: str
    price: Decimal
    change_percent: float
    timestamp: datetime
    source: str
    observed_at: datetime | None = None


@dataclass(frozen=True)
class ProviderSuccess:
    """Provider answered; symbols missing from quotes count as failed."""

    provider: str
    quotes: tuple[Quote, ...] = ()
    symbol_errors: dict[str, str] = field(default_factory=dict)

    status = ProviderStatus.SUCCESS

    def quote_for(self, symbol: str) -> Quote | None:
        for quote in self.quotes:
            if quote.symbol == symbol:
                return quote
        return None


@dataclass(frozen=True)
class ProviderFailure:
    """Provider could not contribute to the cycle."""

    provider: str
    reason: str
    error_kind: str = ErrorKind.UNREACHABLE

    status = ProviderStatus.FAILURE

    def quote_for(self, symbol: str) -> Quote | None:
        return None


@dataclass(frozen=True)
class ProviderTimeout:
    """Provider was still pending when the cycle deadline expired."""

    provider: str

    status = ProviderStatus.TIMEOUT

    def quote_for(self, symbol: str) -> Quote | None:
        return None


ProviderResult = Union[ProviderSuccess, ProviderFailure, ProviderTimeout]


@dataclass(frozen=True)
class HistoryPoint:
    """Single price data point."""

    timestamp: datetime
    price: Decimal


@dataclass(frozen=True)
class HistorySeries:
    """Ordered price points for one symbol and one period.

    Series are replaced wholesale on each fetch, never appended in place.
    """

    symbol: str
    period: Period
    points: tuple[HistoryPoint, ...]
    source: str
    fetched_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.points

    @property
    def last_price(self) -> Decimal | None:
        return self.points[-1].price if self.points else None

    @classmethod
    def bounded(
        cls,
        symbol: str,
        period: Period,
        points: list[tuple[datetime, Decimal]],
        source: str,
        fetched_at: datetime,
    ) -> "HistorySeries":
        """Build a series holding one point per sampling interval.

        Points outside the lookback window (anchored on the newest point) are
        dropped. Within an interval the newest point wins.
        """
        if not points:
            return cls(symbol, period, (), source, fetched_at)

        newest = max(ts for ts, _ in points)
        window_start = newest - period.lookback
        step = period.granularity

        buckets: dict[int, tuple[datetime, Decimal]] = {}
        for ts, price in points:
            if ts < window_start:
                continue
            bucket = int((ts - _EPOCH) / step)
            current = buckets.get(bucket)
            if current is None or ts >= current[0]:
                buckets[bucket] = (ts, price)

        ordered = sorted(buckets.values(), key=lambda p: p[0])[-period.max_points :]
        return cls(
            symbol=symbol,
            period=period,
            points=tuple(HistoryPoint(ts, price) for ts, price in ordered),
            source=source,
            fetched_at=fetched_at,
        )


@dataclass(frozen=True)
class FetchCycleReport:
    """Outcome of one orchestration run. Read-only after creation."""

    cycle_id: int
    started_at: datetime
    completed_at: datetime
    attempts: int
    provider_results: dict[str, ProviderResult]
    merged_quotes: dict[str, Quote]
    overall_status: CycleStatus
    unpriced_symbols: frozenset[str] = frozenset()
    rejected_symbols: frozenset[str] = frozenset()
    persistent_failure: bool = False

    @property
    def provider_status(self) -> dict[str, ProviderStatus]:
        return {name: result.status for name, result in self.provider_results.items()}

    def event(self) -> "CycleEvent":
        return CycleEvent(
            cycle_id=self.cycle_id,
            overall_status=self.overall_status,
            provider_status=self.provider_status,
        )


@dataclass(frozen=True)
class CycleEvent:
    """Structured event emitted once per fetch cycle."""

    cycle_id: int
    overall_status: CycleStatus
    provider_status: dict[str, ProviderStatus]

    def as_dict(self) -> dict:
        return {
            "cycle_id": self.cycle_id,
            "overall_status": self.overall_status.value,
            "provider_status": {name: s.value for name, s in self.provider_status.items()},
        }
