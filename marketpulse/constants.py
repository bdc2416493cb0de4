"""Application constants to avoid magic strings."""

from datetime import timedelta
from enum import Enum


class Period(str, Enum):
    """Viewing window for a card's history series.

    Each period maps to exactly one sampling granularity and one lookback length.
    """

    DAY = "24H"
    WEEK = "1W"
    MONTH = "1M"

    @property
    def granularity(self) -> timedelta:
        return _GRANULARITY[self]

    @property
    def lookback(self) -> timedelta:
        return _LOOKBACK[self]

    @property
    def max_points(self) -> int:
        """Number of sampling intervals inside the lookback window."""
        return int(self.lookback / self.granularity)

    def next(self) -> "Period":
        """Next period in the card button cycle (24H -> 1W -> 1M -> 24H)."""
        members = list(Period)
        return members[(members.index(self) + 1) % len(members)]


_GRANULARITY = {
    Period.DAY: timedelta(hours=1),
    Period.WEEK: timedelta(hours=4),
    Period.MONTH: timedelta(days=1),
}

_LOOKBACK = {
    Period.DAY: timedelta(hours=24),
    Period.WEEK: timedelta(days=7),
    Period.MONTH: timedelta(days=30),
}


class CycleStatus(str, Enum):
    """Overall outcome of one fetch cycle."""

    ALL_SUCCEEDED = "AllSucceeded"
    PARTIAL_FAILURE = "PartialFailure"
    TOTAL_FAILURE = "TotalFailure"


class ProviderStatus(str, Enum):
    """Outcome of one provider's contribution to a cycle."""

    SUCCESS = "Success"
    FAILURE = "Failure"
    TIMEOUT = "Timeout"


class ProviderName:
    """Provider identifiers used in settings and quote sources."""

    FIGURE_MARKETS = "figure_markets"
    TWELVE_DATA = "twelve_data"
    COINGECKO = "coingecko"
    YFINANCE = "yfinance"


class ErrorKind:
    """Failure reasons carried by provider results."""

    UNREACHABLE = "unreachable"
    HTTP_ERROR = "http-error"
    RATE_LIMITED = "rate-limited"
    PARSE_ERROR = "parse-error"
    UNSUPPORTED = "unsupported"


class Currency:
    """Common currency constants."""

    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    CAD = "CAD"
    CHF = "CHF"
    AUD = "AUD"


# Symbols quoted against USD as crypto pairs by providers that list both
KNOWN_CRYPTO = frozenset(
    {
        "HASH",
        "BTC",
        "ETH",
        "SOL",
        "XRP",
        "LTC",
        "DOGE",
        "ADA",
        "LINK",
        "AVAX",
        "USDC",
        "USDT",
    }
)

# Synthetic instrument derived from the user's holdings
PORTFOLIO_SYMBOL = "PF"
PORTFOLIO_NAME = "Total Portfolio"
PORTFOLIO_SOURCE = "portfolio"

# Key under which holdings are persisted in the key-value store
HOLDINGS_KEY = "portfolio/holdings"
