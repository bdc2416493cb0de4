"""Pydantic schemas for quotes and history series."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from marketpulse.constants import Period


class QuoteResponse(BaseModel):
    """Latest quote for one symbol, in the display currency."""

    symbol: str
    price: Decimal = Field(..., gt=0, description="Price in the display currency")
    change_percent: float = Field(..., description="Percent change over the period")
    timestamp: datetime = Field(..., description="When the quote was fetched")
    observed_at: datetime | None = Field(None, description="Provider's own time for the price")
    source: str = Field(..., description="Provider the quote came from, or 'portfolio'")
    color: str = Field(..., description="CSS hsl() color for the change")


class QuoteListResponse(BaseModel):
    """All quotes currently on the dashboard."""

    currency: str = Field(..., description="Currency prices are expressed in")
    quotes: list[QuoteResponse]
    cycle_id: int | None = Field(None, description="Last completed fetch cycle")


class HistoryPointResponse(BaseModel):
    """Single price data point."""

    timestamp: datetime
    price: Decimal


class HistoryResponse(BaseModel):
    """Price series for one symbol and period."""

    symbol: str
    period: Period
    currency: str
    source: str
    fetched_at: datetime
    points: list[HistoryPointResponse]
