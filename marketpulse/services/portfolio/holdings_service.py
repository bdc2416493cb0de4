"""Holdings service - validated add/edit/remove over a key-value store.

Holdings are persisted as a single JSON document mapping symbol to quantity
(as a decimal string). A quantity of zero is the same as no holding.
"""

import json
import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation

from marketpulse.constants import HOLDINGS_KEY, PORTFOLIO_SYMBOL
from marketpulse.services.exceptions import (
    HoldingAlreadyExists,
    HoldingInvalidQuantity,
    HoldingInvalidSymbol,
    HoldingNotFound,
)
from marketpulse.services.portfolio.valuation_types import Holding
from marketpulse.services.shared.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

HoldingsListener = Callable[[dict[str, Decimal]], None]


def parse_quantity(symbol: str, value: object) -> Decimal:
    """Parse a user-entered quantity.

    Raises:
        HoldingInvalidQuantity: If negative, not finite or not numeric
    """
    if value is None or isinstance(value, bool):
        raise HoldingInvalidQuantity(symbol, value)
    try:
        quantity = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise HoldingInvalidQuantity(symbol, value) from e
    if not quantity.is_finite() or quantity < 0:
        raise HoldingInvalidQuantity(symbol, value)
    return quantity


def normalize_symbol(symbol: object) -> str:
    """Upper-case a symbol and reject empty or reserved ones.

    Raises:
        HoldingInvalidSymbol: If empty or the portfolio's own symbol
    """
    normalized = str(symbol or "").strip().upper()
    if not normalized or normalized == PORTFOLIO_SYMBOL:
        raise HoldingInvalidSymbol(str(symbol))
    return normalized


class HoldingsService:
    """Owns the user's holdings.

    Mutations are synchronous: they validate, persist, then notify listeners
    (the dashboard recomputes the portfolio snapshot from there). Invalid
    input leaves holdings unchanged.

    Usage:
        service = HoldingsService(InMemoryKeyValueStore())
        service.add_holding("BTC", "0.5")
        service.edit_holding("BTC", "0.75")
        service.remove_holding("BTC")
    """

    def __init__(self, store: KeyValueStore, key: str = HOLDINGS_KEY) -> None:
        self._store = store
        self._key = key
        self._holdings: dict[str, Decimal] = self._load()
        self._listeners: list[HoldingsListener] = []

    def _load(self) -> dict[str, Decimal]:
        raw = self._store.get(self._key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            holdings = {
                normalize_symbol(symbol): parse_quantity(symbol, quantity)
                for symbol, quantity in data.items()
            }
        except (ValueError, AttributeError, HoldingInvalidQuantity, HoldingInvalidSymbol) as e:
            logger.error(f"Discarding unreadable holdings document: {e}")
            return {}
        # Zero quantities are equivalent to absence
        return {s: q for s, q in holdings.items() if q > 0}

    def _persist(self) -> None:
        if self._holdings:
            document = {s: str(q) for s, q in sorted(self._holdings.items())}
            self._store.set(self._key, json.dumps(document))
        else:
            self._store.delete(self._key)

    def _commit(self, holdings: dict[str, Decimal]) -> None:
        previous = self._holdings
        self._holdings = holdings
        try:
            self._persist()
        except Exception:
            self._holdings = previous
            raise
        snapshot = dict(self._holdings)
        for listener in list(self._listeners):
            listener(snapshot)

    def subscribe(self, listener: HoldingsListener) -> Callable[[], None]:
        """Register a listener called with the new holdings after each change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def holdings(self) -> dict[str, Decimal]:
        """Current holdings (a copy)."""
        return dict(self._holdings)

    def list_holdings(self) -> list[Holding]:
        return [Holding(symbol=s, quantity=q) for s, q in sorted(self._holdings.items())]

    def get(self, symbol: str) -> Decimal | None:
        return self._holdings.get(str(symbol).strip().upper())

    def add_holding(self, symbol: str, quantity: object) -> Holding | None:
        """Create a holding.

        Returns:
            The new holding, or None when the quantity is zero

        Raises:
            HoldingInvalidSymbol, HoldingInvalidQuantity, HoldingAlreadyExists
        """
        symbol = normalize_symbol(symbol)
        parsed = parse_quantity(symbol, quantity)
        if symbol in self._holdings:
            raise HoldingAlreadyExists(symbol)
        if parsed == 0:
            logger.info("Ignoring zero quantity for new holding %s", symbol)
            return None

        self._commit({**self._holdings, symbol: parsed})
        logger.info("Added holding %s: %s", symbol, parsed)
        return Holding(symbol=symbol, quantity=parsed)

    def edit_holding(self, symbol: str, quantity: object) -> Holding | None:
        """Change the quantity of an existing holding; zero removes it.

        Raises:
            HoldingInvalidSymbol, HoldingInvalidQuantity, HoldingNotFound
        """
        symbol = normalize_symbol(symbol)
        parsed = parse_quantity(symbol, quantity)
        if symbol not in self._holdings:
            raise HoldingNotFound(symbol)
        if parsed == 0:
            self.remove_holding(symbol)
            return None

        self._commit({**self._holdings, symbol: parsed})
        logger.info("Updated holding %s: %s", symbol, parsed)
        return Holding(symbol=symbol, quantity=parsed)

    def remove_holding(self, symbol: str) -> bool:
        """Remove a holding.

        Returns:
            False if there was nothing to remove
        """
        symbol = normalize_symbol(symbol)
        if symbol not in self._holdings:
            return False

        self._commit({s: q for s, q in self._holdings.items() if s != symbol})
        logger.info("Removed holding %s", symbol)
        return True
