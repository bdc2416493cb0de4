"""Pydantic schemas for the synthetic portfolio instrument."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from marketpulse.constants import PORTFOLIO_NAME, PORTFOLIO_SYMBOL


class ConstituentResponse(BaseModel):
    """One priced holding's contribution to the portfolio."""

    symbol: str
    quantity: Decimal
    price: Decimal
    value: Decimal
    change_percent: float
    weight: Decimal = Field(..., ge=0, le=1, description="Share of total value")
    source: str


class PortfolioResponse(BaseModel):
    """Value-weighted aggregate of the priced holdings."""

    symbol: str = PORTFOLIO_SYMBOL
    name: str = PORTFOLIO_NAME
    total_value: Decimal = Field(..., description="Total value in the display currency")
    change_percent: float = Field(..., description="Value-weighted percent change")
    currency: str
    as_of: datetime = Field(..., description="Timestamp of the newest constituent quote")
    color: str
    constituents: list[ConstituentResponse]
    unpriced: list[str] = Field(
        default_factory=list, description="Held symbols with no quote, excluded from totals"
    )
