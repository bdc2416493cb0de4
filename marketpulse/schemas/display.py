"""Pydantic schemas for display currency and color mapping."""

from pydantic import BaseModel, Field


class CurrencySelect(BaseModel):
    """Schema for selecting the display currency."""

    code: str = Field(..., min_length=3, max_length=3, description="ISO currency code")


class CurrencyResponse(BaseModel):
    """Selected display currency."""

    selected: str
    effective: str = Field(..., description="Currency values are shown in (USD until a rate is known)")
    supported: list[str]


class GradientResponse(BaseModel):
    """Color intensity for a percent change."""

    change_percent: float
    hue: float
    saturation: float = Field(..., ge=0, le=100)
    lightness: float = Field(..., ge=0, le=100)
    neutral: bool
    css: str
