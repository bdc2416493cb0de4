"""Pydantic schemas for dashboard cards."""

from datetime import datetime

from pydantic import BaseModel, Field

from marketpulse.constants import Period
from marketpulse.schemas.quote import HistoryPointResponse


class PeriodSelect(BaseModel):
    """Schema for selecting a card's period."""

    period: Period = Field(..., description="One of 24H, 1W, 1M")


class CardResponse(BaseModel):
    """State of one card's history view."""

    card_id: str
    symbol: str
    period: Period
    loading: bool = Field(..., description="A load for the period is in flight")
    stale: bool = Field(..., description="Series is the last good one after a failed load")
    last_error: str | None = None
    source: str | None = None
    fetched_at: datetime | None = None
    points: list[HistoryPointResponse] = Field(default_factory=list)
