"""Quotes API router."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from marketpulse.constants import Period
from marketpulse.dependencies import get_engine
from marketpulse.schemas import (
    HistoryPointResponse,
    HistoryResponse,
    QuoteListResponse,
    QuoteResponse,
)
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.display.gradient import intensity
from marketpulse.services.market_data.types import HistorySeries, Quote

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


def quote_response(quote: Quote) -> QuoteResponse:
    return QuoteResponse(
        symbol=quote.symbol,
        price=quote.price,
        change_percent=quote.change_percent,
        timestamp=quote.timestamp,
        observed_at=quote.observed_at,
        source=quote.source,
        color=intensity(quote.change_percent).css(),
    )


def history_points(series: HistorySeries, engine: DashboardEngine) -> list[HistoryPointResponse]:
    """Series points converted to the display currency."""
    return [
        HistoryPointResponse(timestamp=p.timestamp, price=engine.convert(p.price)[0])
        for p in series.points
    ]


@router.get("", response_model=QuoteListResponse)
async def list_quotes(engine: DashboardEngine = Depends(get_engine)):
    """Latest quote per symbol, with the portfolio (PF) last when it can be priced."""
    report = engine.last_report
    return QuoteListResponse(
        currency=engine.currency,
        quotes=[quote_response(q) for q in engine.quotes()],
        cycle_id=report.cycle_id if report else None,
    )


@router.get("/{symbol}", response_model=QuoteResponse)
async def get_quote(symbol: str, engine: DashboardEngine = Depends(get_engine)):
    """Latest quote for one symbol."""
    for quote in engine.quotes():
        if quote.symbol == symbol.upper():
            return quote_response(quote)
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail=f"No quote for {symbol.upper()}"
    )


@router.get("/{symbol}/history", response_model=HistoryResponse)
async def get_history(
    symbol: str,
    period: Period = Query(Period.DAY, description="One of 24H, 1W, 1M"),
    engine: DashboardEngine = Depends(get_engine),
):
    """Price series for one symbol (PF for the portfolio) and period."""
    series = await engine.history(symbol, period)
    if series is None or series.is_empty:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No {period.value} history for {symbol.upper()}",
        )
    return HistoryResponse(
        symbol=series.symbol,
        period=series.period,
        currency=engine.currency,
        source=series.source,
        fetched_at=series.fetched_at,
        points=history_points(series, engine),
    )
