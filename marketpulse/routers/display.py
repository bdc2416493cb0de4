"""Display currency and color mapping API router."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from marketpulse.dependencies import get_engine
from marketpulse.schemas import CurrencyResponse, CurrencySelect, GradientResponse
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.display.gradient import intensity
from marketpulse.services.exceptions import UnsupportedCurrency

router = APIRouter(prefix="/api", tags=["display"])


def currency_response(engine: DashboardEngine, selected: str) -> CurrencyResponse:
    return CurrencyResponse(
        selected=selected,
        effective=engine.currency,
        supported=engine.supported_currencies,
    )


@router.get("/currency", response_model=CurrencyResponse)
async def get_currency(engine: DashboardEngine = Depends(get_engine)):
    """Selected and supported display currencies."""
    return currency_response(engine, engine.selected_currency)


@router.put("/currency", response_model=CurrencyResponse)
async def select_currency(data: CurrencySelect, engine: DashboardEngine = Depends(get_engine)):
    """
    Select the display currency.

    Values stay in USD until a USD rate for the currency is known.
    """
    try:
        selected = engine.select_currency(data.code)
    except UnsupportedCurrency as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return currency_response(engine, selected)


@router.get("/gradient", response_model=GradientResponse)
async def gradient(change: float = Query(..., description="Percent change, e.g. 2.5")):
    """Color intensity for a percent change."""
    color = intensity(change)
    return GradientResponse(
        change_percent=change,
        hue=color.hue,
        saturation=color.saturation,
        lightness=color.lightness,
        neutral=color.is_neutral,
        css=color.css(),
    )
