"""Portfolio services.

Holdings management and the synthetic Total Portfolio (PF) instrument.
"""

from .aggregator import PortfolioAggregator
from .holdings_service import HoldingsService
from .valuation_types import ConstituentValue, Holding, PortfolioSnapshot

__all__ = [
    "ConstituentValue",
    "Holding",
    "HoldingsService",
    "PortfolioAggregator",
    "PortfolioSnapshot",
]
