"""Exceptions raised by the market data and portfolio services.

Provider errors are raised inside provider clients and converted into
provider results before they reach the orchestrator's merge step. Holding and
currency errors are reported synchronously to the caller.
"""


class MarketPulseError(Exception):
    """Base exception for all service errors."""


class ProviderError(MarketPulseError):
    """Base exception for provider fetch errors."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class ProviderTimeout(ProviderError):
    """Provider did not answer before the deadline."""


class ProviderParseError(ProviderError):
    """Provider answered with a payload we cannot interpret."""


class ProviderUnreachable(ProviderError):
    """Provider could not be reached or answered with an HTTP error."""


class ProviderConfigurationError(MarketPulseError):
    """Provider is misconfigured. This is a programmer error and is fatal."""


class HoldingError(MarketPulseError):
    """Base exception for holdings mutations."""

    def __init__(self, symbol: str, message: str):
        super().__init__(message)
        self.symbol = symbol


class HoldingInvalidQuantity(HoldingError):
    """Quantity is negative, not finite or not a number."""

    def __init__(self, symbol: str, quantity: object):
        super().__init__(symbol, f"Invalid quantity for {symbol}: {quantity!r}")
        self.quantity = quantity


class HoldingInvalidSymbol(HoldingError):
    """Symbol is empty or reserved."""

    def __init__(self, symbol: str):
        super().__init__(symbol, f"Invalid holding symbol: {symbol!r}")


class HoldingNotFound(HoldingError):
    """No holding exists for the symbol."""

    def __init__(self, symbol: str):
        super().__init__(symbol, f"Holding not found: {symbol}")


class HoldingAlreadyExists(HoldingError):
    """A holding already exists for the symbol."""

    def __init__(self, symbol: str):
        super().__init__(symbol, f"Holding for {symbol} already exists")


class UnsupportedCurrency(MarketPulseError):
    """Display currency is not in the supported list."""

    def __init__(self, code: str):
        super().__init__(f"Unsupported currency: {code!r}")
        self.code = code


class UnknownCard(MarketPulseError):
    """No card is registered under the id."""

    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id
