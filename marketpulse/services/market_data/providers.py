"""Provider registry.

Maps provider names used in settings to their client classes and builds the
enabled set for the orchestrator.
"""

import logging

from marketpulse.config import settings
from marketpulse.constants import ProviderName
from marketpulse.services.exceptions import ProviderConfigurationError
from marketpulse.services.market_data.base_provider import QuoteProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Registry for quote providers.

    Example usage:
        providers = ProviderRegistry.build_enabled(["figure_markets", "coingecko"])
        orchestrator = FetchOrchestrator(providers, store)
    """

    _providers: dict[str, type[QuoteProvider]] = {}
    _initialized: bool = False

    @classmethod
    def _ensure_initialized(cls) -> None:
        """Lazily initialize the provider registry."""
        if cls._initialized:
            return

        from marketpulse.services.market_data.coingecko_client import CoinGeckoProvider
        from marketpulse.services.market_data.figure_markets_client import FigureMarketsProvider
        from marketpulse.services.market_data.twelve_data_client import TwelveDataProvider
        from marketpulse.services.market_data.yfinance_client import YFinanceProvider

        cls._providers = {
            ProviderName.FIGURE_MARKETS: FigureMarketsProvider,
            ProviderName.TWELVE_DATA: TwelveDataProvider,
            ProviderName.COINGECKO: CoinGeckoProvider,
            ProviderName.YFINANCE: YFinanceProvider,
        }
        cls._initialized = True
        logger.info("Provider registry initialized with %d providers", len(cls._providers))

    @classmethod
    def get_provider(cls, name: str) -> QuoteProvider:
        """Create a provider instance configured from settings.

        Raises:
            ProviderConfigurationError: If the name is unknown or the provider
                cannot be configured (e.g. a missing API key)
        """
        cls._ensure_initialized()

        key = name.strip().lower()
        if key not in cls._providers:
            supported = list(cls._providers.keys())
            raise ProviderConfigurationError(
                f"Unsupported provider '{name}'. Supported: {supported}"
            )
        return cls._providers[key]()

    @classmethod
    def build_enabled(cls, names: list[str] | None = None) -> list[QuoteProvider]:
        """Create every enabled provider.

        Args:
            names: Provider names; defaults to ``settings.enabled_providers``
        """
        names = names if names is not None else settings.enabled_providers
        if not names:
            raise ProviderConfigurationError("No quote providers are enabled")
        return [cls.get_provider(name) for name in names]
