"""Display currency selection and USD conversion rates."""

import logging
from datetime import UTC, datetime
from decimal import Decimal

import httpx

from marketpulse.config import settings
from marketpulse.constants import Currency
from marketpulse.services.exceptions import UnsupportedCurrency
from marketpulse.services.shared.http_client import AsyncHTTPClient, HTTPClientError

logger = logging.getLogger(__name__)


class CurrencyService(AsyncHTTPClient):
    """Holds the selected display currency and USD -> currency rates.

    Quotes are always stored in USD; conversion happens on read. When the
    rate for the selected currency is unknown, values stay in USD.

    Usage:
        service = CurrencyService()
        service.select("EUR")
        await service.refresh()
        amount, code = service.convert(Decimal("100"))
    """

    def __init__(
        self,
        supported: list[str] | None = None,
        default: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.exchange_rate_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers={"Accept": "application/json"},
            client=client,
        )
        self.supported = [c.upper() for c in (supported or settings.supported_currencies)]
        if Currency.USD not in self.supported:
            self.supported.insert(0, Currency.USD)
        self._selected = self._validate(default or settings.default_currency)
        self._rates: dict[str, Decimal] = {Currency.USD: Decimal("1")}
        self.rates_updated_at: datetime | None = None

    @property
    def selected(self) -> str:
        return self._selected

    def _validate(self, code: str) -> str:
        normalized = (code or "").strip().upper()
        if normalized not in self.supported:
            raise UnsupportedCurrency(code)
        return normalized

    def select(self, code: str) -> str:
        """Select the display currency.

        Raises:
            UnsupportedCurrency: If the code is not supported
        """
        self._selected = self._validate(code)
        logger.info("Display currency set to %s", self._selected)
        return self._selected

    def rate(self, code: str | None = None) -> Decimal | None:
        """USD -> code rate, or None if not known yet."""
        return self._rates.get((code or self._selected).upper())

    def set_rates(self, rates: dict[str, Decimal]) -> None:
        """Replace known rates (USD is always 1)."""
        self._rates = {Currency.USD: Decimal("1"), **{k.upper(): v for k, v in rates.items()}}
        self.rates_updated_at = datetime.now(UTC)

    def convert(self, amount: Decimal, code: str | None = None) -> tuple[Decimal, str]:
        """Convert a USD amount into the selected (or given) currency.

        Returns:
            (amount, currency) - falls back to (amount, "USD") without a rate
        """
        target = (code or self._selected).upper()
        rate = self.rate(target)
        if rate is None:
            return amount, Currency.USD
        return amount * rate, target

    async def refresh(self) -> dict[str, Decimal]:
        """Fetch USD rates for every supported currency.

        Failures are logged and the previous rates are kept.
        """
        targets = [c for c in self.supported if c != Currency.USD]
        if not targets:
            return dict(self._rates)

        try:
            payload = await self.get_json(
                "/latest", params={"from": Currency.USD, "to": ",".join(targets)}
            )
            raw_rates = payload["rates"]
            rates = {code.upper(): Decimal(str(value)) for code, value in raw_rates.items()}
        except HTTPClientError as e:
            logger.warning(f"Exchange rate refresh failed, keeping previous rates: {e}")
            return dict(self._rates)
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.warning(f"Unparsable exchange rate payload, keeping previous rates: {e}")
            return dict(self._rates)

        self.set_rates(rates)
        logger.info("Updated %d exchange rates", len(rates))
        return dict(self._rates)
