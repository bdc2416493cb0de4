"""Cards API router."""

from fastapi import APIRouter, Depends, HTTPException, status

from marketpulse.dependencies import get_engine
from marketpulse.routers.quotes import history_points
from marketpulse.schemas import CardResponse, PeriodSelect
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.display.period_controller import CardState
from marketpulse.services.exceptions import UnknownCard

router = APIRouter(prefix="/api/cards", tags=["cards"])


def card_response(card: CardState, engine: DashboardEngine) -> CardResponse:
    series = card.series
    return CardResponse(
        card_id=card.card_id,
        symbol=card.symbol,
        period=card.period,
        loading=card.loading,
        stale=card.stale,
        last_error=card.last_error,
        source=series.source if series else None,
        fetched_at=series.fetched_at if series else None,
        points=history_points(series, engine) if series else [],
    )


@router.get("", response_model=list[CardResponse])
async def list_cards(engine: DashboardEngine = Depends(get_engine)):
    """Get every card's period and series."""
    return [card_response(card, engine) for card in engine.cards()]


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(card_id: str, engine: DashboardEngine = Depends(get_engine)):
    """Get one card."""
    try:
        return card_response(engine.card(card_id), engine)
    except UnknownCard as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{card_id}/period", response_model=CardResponse)
async def select_period(
    card_id: str, data: PeriodSelect, engine: DashboardEngine = Depends(get_engine)
):
    """
    Select a card's period.

    Returns immediately with ``loading`` set; the card keeps its previous
    series until the new one arrives.
    """
    try:
        return card_response(engine.select_period(card_id, data.period), engine)
    except UnknownCard as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/{card_id}/period/next", response_model=CardResponse)
async def cycle_period(card_id: str, engine: DashboardEngine = Depends(get_engine)):
    """Advance a card to its next period (24H -> 1W -> 1M -> 24H)."""
    try:
        return card_response(engine.cycle_period(card_id), engine)
    except UnknownCard as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
