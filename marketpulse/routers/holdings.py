"""Holdings API router."""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from marketpulse.dependencies import get_engine
from marketpulse.schemas import Holding as HoldingSchema
from marketpulse.schemas import HoldingCreate, HoldingUpdate
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.exceptions import (
    HoldingAlreadyExists,
    HoldingError,
    HoldingNotFound,
)

router = APIRouter(prefix="/api/holdings", tags=["holdings"])


@router.get("", response_model=list[HoldingSchema])
async def list_holdings(engine: DashboardEngine = Depends(get_engine)):
    """Get all holdings, sorted by symbol."""
    return engine.holdings()


@router.post("", response_model=HoldingSchema | None, status_code=status.HTTP_201_CREATED)
async def add_holding(data: HoldingCreate, engine: DashboardEngine = Depends(get_engine)):
    """
    Add a holding.

    A zero quantity creates nothing and returns null.
    """
    try:
        return engine.add_holding(data.symbol, data.quantity)
    except HoldingAlreadyExists as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except HoldingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.put("/{symbol}", response_model=HoldingSchema | None)
async def edit_holding(
    symbol: str, data: HoldingUpdate, engine: DashboardEngine = Depends(get_engine)
):
    """
    Change a holding's quantity.

    A zero quantity removes the holding and returns null.
    """
    try:
        return engine.edit_holding(symbol, data.quantity)
    except HoldingNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except HoldingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{symbol}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_holding(symbol: str, engine: DashboardEngine = Depends(get_engine)):
    """Remove a holding."""
    try:
        removed = engine.remove_holding(symbol)
    except HoldingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Holding not found: {symbol.upper()}"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
