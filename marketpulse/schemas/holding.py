"""Pydantic schemas for holdings."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class HoldingCreate(BaseModel):
    """Schema for adding a holding."""

    symbol: str = Field(..., min_length=1, max_length=20, description="Ticker symbol")
    quantity: Decimal = Field(..., description="Quantity held; zero is ignored")


class HoldingUpdate(BaseModel):
    """Schema for changing a holding's quantity; zero removes it."""

    quantity: Decimal


class Holding(BaseModel):
    """Schema for Holding responses."""

    model_config = ConfigDict(from_attributes=True)

    symbol: str
    quantity: Decimal
