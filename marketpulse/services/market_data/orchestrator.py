"""Fetch orchestrator - runs every provider concurrently for one refresh cycle.

One cycle:
- launches all providers with a shared deadline and joins on all of them
- classifies each provider as Success, Failure or Timeout
- retries failed/timed-out providers with exponential backoff (bounded)
- merges quotes per symbol in provider precedence order
- publishes the merged quotes to the QuoteStore in one step
- emits one structured CycleEvent
"""

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from marketpulse.config import settings
from marketpulse.constants import CycleStatus, ErrorKind, Period
from marketpulse.services.exceptions import ProviderConfigurationError, ProviderError
from marketpulse.services.market_data.base_provider import QuoteProvider
from marketpulse.services.market_data.quote_store import QuoteStore
from marketpulse.services.market_data.types import (
    CycleEvent,
    FetchCycleReport,
    HistorySeries,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    ProviderTimeout,
    Quote,
)

logger = logging.getLogger(__name__)
cycle_logger = logging.getLogger("marketpulse.cycles")

CycleListener = Callable[[CycleEvent], None]


def _has_failures(results: dict[str, ProviderResult]) -> bool:
    return any(not isinstance(r, ProviderSuccess) for r in results.values())


class FetchOrchestrator:
    """Coordinates all configured providers and is the QuoteStore's only writer.

    Example:
        orchestrator = FetchOrchestrator([figure, coingecko], store)
        report = await orchestrator.run_cycle({"BTC", "HASH"})
        report.overall_status  # CycleStatus.ALL_SUCCEEDED
    """

    def __init__(
        self,
        providers: list[QuoteProvider],
        store: QuoteStore,
        precedence: list[str] | None = None,
        deadline: float | None = None,
        max_retries: int | None = None,
        backoff_multiplier: float | None = None,
        backoff_max: float | None = None,
    ):
        if not providers:
            raise ProviderConfigurationError("At least one quote provider is required")
        names = [p.name for p in providers]
        if len(set(names)) != len(names):
            raise ProviderConfigurationError(f"Duplicate provider names: {names}")

        order = precedence if precedence is not None else settings.provider_precedence
        rank = {name: i for i, name in enumerate(order)}
        # Providers missing from the precedence list go last, in the given order
        self._providers = sorted(providers, key=lambda p: rank.get(p.name, len(rank)))

        self._store = store
        self._deadline = deadline if deadline is not None else settings.fetch_deadline_seconds
        self._max_retries = max_retries if max_retries is not None else settings.max_retries
        self._backoff_multiplier = (
            backoff_multiplier
            if backoff_multiplier is not None
            else settings.retry_backoff_multiplier
        )
        self._backoff_max = (
            backoff_max if backoff_max is not None else settings.retry_backoff_max_seconds
        )

        self._cycle_ids = itertools.count(1)
        self._listeners: list[CycleListener] = []
        self._inflight: set[asyncio.Task] = set()
        self.last_report: FetchCycleReport | None = None

    @property
    def providers(self) -> list[QuoteProvider]:
        """Providers in precedence order (primary first)."""
        return list(self._providers)

    @property
    def store(self) -> QuoteStore:
        return self._store

    def add_listener(self, listener: CycleListener) -> Callable[[], None]:
        """Register a CycleEvent listener; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def run_cycle(
        self, symbols: Iterable[str], period: Period = Period.DAY
    ) -> FetchCycleReport:
        """Run one refresh cycle across all providers.

        Args:
            symbols: Symbols to quote
            period: Period the change percent should cover

        Returns:
            FetchCycleReport for the cycle
        """
        requested = frozenset(s.upper() for s in symbols)
        cycle_id = next(self._cycle_ids)
        started_at = datetime.now(UTC)
        results: dict[str, ProviderResult] = {}
        attempts = 0

        logger.info(
            "Cycle %d: fetching %d symbols from %d providers",
            cycle_id,
            len(requested),
            len(self._providers),
        )

        async def fetch_round() -> dict[str, ProviderResult]:
            nonlocal attempts
            attempts += 1
            pending = [
                p for p in self._providers if not isinstance(results.get(p.name), ProviderSuccess)
            ]
            if attempts > 1:
                logger.info(
                    "Cycle %d retry %d for %s",
                    cycle_id,
                    attempts - 1,
                    ", ".join(p.name for p in pending),
                )
            results.update(await self._fetch_round(pending, requested, period))
            return results

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._backoff_multiplier, max=self._backoff_max),
            retry=retry_if_result(_has_failures),
            # Out of retries: keep the last round's results instead of raising RetryError
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        await retrying(fetch_round)

        ordered_results = {p.name: results[p.name] for p in self._providers}
        merged = self._merge(ordered_results, requested)
        status = self._classify(ordered_results, merged)
        publish_result = self._store.publish(merged.values(), cycle_id=cycle_id)

        report = FetchCycleReport(
            cycle_id=cycle_id,
            started_at=started_at,
            completed_at=datetime.now(UTC),
            attempts=attempts,
            provider_results=ordered_results,
            merged_quotes=merged,
            overall_status=status,
            unpriced_symbols=requested - merged.keys(),
            rejected_symbols=publish_result.rejected,
            persistent_failure=status != CycleStatus.ALL_SUCCEEDED,
        )
        self._record(report)
        return report

    async def _fetch_round(
        self,
        providers: list[QuoteProvider],
        symbols: frozenset[str],
        period: Period,
    ) -> dict[str, ProviderResult]:
        """Run providers concurrently and join on all of them or the deadline."""
        tasks = {
            asyncio.create_task(p.fetch_quotes(symbols, period), name=f"quotes:{p.name}"): p
            for p in providers
        }
        if not tasks:
            return {}

        self._inflight.update(tasks)
        try:
            _, pending = await asyncio.wait(tasks, timeout=self._deadline)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            self._inflight.difference_update(tasks)

        if pending:
            # Let cancelled fetches unwind; their partial data is discarded
            await asyncio.gather(*pending, return_exceptions=True)

        results: dict[str, ProviderResult] = {}
        for task, provider in tasks.items():
            if task in pending or task.cancelled():
                logger.warning("%s missed the %.1fs deadline", provider.name, self._deadline)
                results[provider.name] = ProviderTimeout(provider=provider.name)
                continue

            error = task.exception()
            if error is None:
                results[provider.name] = task.result()
            elif isinstance(error, ProviderError):
                results[provider.name] = ProviderFailure(
                    provider=provider.name, reason=str(error), error_kind=ErrorKind.UNREACHABLE
                )
            else:
                logger.error("%s raised while fetching quotes", provider.name, exc_info=error)
                results[provider.name] = ProviderFailure(
                    provider=provider.name,
                    reason=f"{type(error).__name__}: {error}",
                    error_kind=ErrorKind.PARSE_ERROR,
                )
        return results

    def _merge(
        self, results: dict[str, ProviderResult], symbols: frozenset[str]
    ) -> dict[str, Quote]:
        """Take each symbol's quote from the first provider in precedence order that has one."""
        merged: dict[str, Quote] = {}
        for symbol in sorted(symbols):
            for provider in self._providers:
                quote = results[provider.name].quote_for(symbol)
                if quote is not None:
                    merged[symbol] = quote
                    break
        return merged

    @staticmethod
    def _classify(results: dict[str, ProviderResult], merged: dict[str, Quote]) -> CycleStatus:
        if not _has_failures(results):
            return CycleStatus.ALL_SUCCEEDED
        if merged:
            return CycleStatus.PARTIAL_FAILURE
        return CycleStatus.TOTAL_FAILURE

    def _record(self, report: FetchCycleReport) -> None:
        if self.last_report is None or report.cycle_id > self.last_report.cycle_id:
            self.last_report = report

        event = report.event()
        log = cycle_logger.info if not report.persistent_failure else cycle_logger.warning
        log(
            "Cycle %d %s after %d attempt(s): %d quoted, %d unpriced",
            report.cycle_id,
            report.overall_status.value,
            report.attempts,
            len(report.merged_quotes),
            len(report.unpriced_symbols),
            extra={"cycle_event": event.as_dict()},
        )

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Cycle listener failed for cycle %d", report.cycle_id)

    async def fetch_history(self, symbol: str, period: Period) -> HistorySeries | None:
        """Fetch one symbol's series, walking providers in precedence order.

        The first non-empty series is published to the store and returned.

        Returns:
            HistorySeries, or None if every provider failed
        """
        symbol = symbol.upper()
        for provider in self._providers:
            task = asyncio.create_task(
                provider.fetch_history(symbol, period), name=f"history:{provider.name}:{symbol}"
            )
            self._inflight.add(task)
            try:
                series = await asyncio.wait_for(task, timeout=self._deadline)
            except TimeoutError:
                logger.warning(
                    "%s history for %s/%s missed the deadline", provider.name, symbol, period.value
                )
                continue
            finally:
                self._inflight.discard(task)

            if series is not None and not series.is_empty:
                self._store.publish_history(series)
                return series

        logger.warning("No provider returned %s history for %s", period.value, symbol)
        return None

    async def aclose(self) -> None:
        """Cancel every in-flight request and close provider clients."""
        inflight = list(self._inflight)
        for task in inflight:
            task.cancel()
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)
        self._inflight.clear()

        for provider in self._providers:
            await provider.aclose()
        logger.info("Orchestrator closed (%d in-flight requests cancelled)", len(inflight))
