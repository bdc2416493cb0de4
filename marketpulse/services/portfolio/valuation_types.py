"""Value objects for portfolio valuation."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from marketpulse.constants import PORTFOLIO_SOURCE, PORTFOLIO_SYMBOL
from marketpulse.services.market_data.types import Quote


@dataclass(frozen=True)
class Holding:
    """A user-declared quantity of a symbol."""

    symbol: str
    quantity: Decimal


@dataclass(frozen=True)
class ConstituentValue:
    """Calculated values for a single priced holding."""

    symbol: str
    quantity: Decimal
    price: Decimal
    value: Decimal
    change_percent: float
    weight: Decimal  # share of total value, 0..1
    source: str
    timestamp: datetime


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Aggregate of the priced holdings. Derived on demand, never persisted."""

    total_value: Decimal
    change_percent: float
    constituents: tuple[ConstituentValue, ...]
    unpriced: frozenset[str]
    currency: str
    as_of: datetime

    def as_quote(self) -> Quote:
        """The portfolio as a synthetic instrument."""
        return Quote(
            symbol=PORTFOLIO_SYMBOL,
            price=self.total_value,
            change_percent=self.change_percent,
            timestamp=self.as_of,
            source=PORTFOLIO_SOURCE,
        )
