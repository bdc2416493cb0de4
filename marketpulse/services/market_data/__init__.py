"""External market data providers and the fetch cycle.

- FetchOrchestrator: Runs every provider concurrently per refresh cycle
- QuoteStore: Latest quote per symbol and history per period
- FigureMarketsProvider: Primary source (Figure Markets exchange)
- TwelveDataProvider: Stocks and crypto pairs (API key required)
- CoinGeckoProvider: Cryptocurrency fallback and history
- YFinanceProvider: Stock fallback and history from Yahoo Finance
- CurrencyService: Display currency and USD conversion rates

Usage:
    from marketpulse.services.market_data import FetchOrchestrator, ProviderRegistry, QuoteStore

    orchestrator = FetchOrchestrator(ProviderRegistry.build_enabled(), QuoteStore())
    report = await orchestrator.run_cycle({"BTC", "HASH"})
"""

from .base_provider import QuoteProvider
from .coingecko_client import CoinGeckoProvider
from .currency_service import CurrencyService
from .figure_markets_client import FigureMarketsProvider
from .orchestrator import FetchOrchestrator
from .providers import ProviderRegistry
from .quote_store import PublishResult, QuoteStore, StoreEvent, StoreSnapshot
from .twelve_data_client import TwelveDataProvider
from .types import (
    CycleEvent,
    FetchCycleReport,
    HistoryPoint,
    HistorySeries,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    ProviderTimeout,
    Quote,
)
from .yfinance_client import YFinanceProvider

__all__ = [
    "CoinGeckoProvider",
    "CurrencyService",
    "CycleEvent",
    "FetchCycleReport",
    "FetchOrchestrator",
    "FigureMarketsProvider",
    "HistoryPoint",
    "HistorySeries",
    "ProviderFailure",
    "ProviderRegistry",
    "ProviderResult",
    "ProviderSuccess",
    "ProviderTimeout",
    "PublishResult",
    "Quote",
    "QuoteProvider",
    "QuoteStore",
    "StoreEvent",
    "StoreSnapshot",
    "TwelveDataProvider",
    "YFinanceProvider",
]
