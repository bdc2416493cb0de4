"""Pydantic schemas for API validation."""

from marketpulse.schemas.card import CardResponse, PeriodSelect
from marketpulse.schemas.cycle import CycleReportResponse, ProviderResultResponse
from marketpulse.schemas.display import CurrencyResponse, CurrencySelect, GradientResponse
from marketpulse.schemas.holding import Holding, HoldingCreate, HoldingUpdate
from marketpulse.schemas.portfolio import ConstituentResponse, PortfolioResponse
from marketpulse.schemas.quote import (
    HistoryPointResponse,
    HistoryResponse,
    QuoteListResponse,
    QuoteResponse,
)

__all__ = [
    "CardResponse",
    "ConstituentResponse",
    "CurrencyResponse",
    "CurrencySelect",
    "CycleReportResponse",
    "GradientResponse",
    "HistoryPointResponse",
    "HistoryResponse",
    "Holding",
    "HoldingCreate",
    "HoldingUpdate",
    "PeriodSelect",
    "PortfolioResponse",
    "ProviderResultResponse",
    "QuoteListResponse",
    "QuoteResponse",
]
