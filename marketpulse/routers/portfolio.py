"""Portfolio API router."""

from fastapi import APIRouter, Depends

from marketpulse.dependencies import get_engine
from marketpulse.schemas import ConstituentResponse, PortfolioResponse
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.display.gradient import intensity

router = APIRouter(prefix="/api/portfolio", tags=["portfolio"])


@router.get("", response_model=PortfolioResponse | None)
async def get_portfolio(engine: DashboardEngine = Depends(get_engine)):
    """
    Get the Total Portfolio (PF) aggregate.

    Returns null while no holding can be priced. Holdings without a quote are
    listed in ``unpriced`` and excluded from value and change.
    """
    snapshot = engine.portfolio_snapshot()
    if snapshot is None:
        return None

    return PortfolioResponse(
        total_value=snapshot.total_value,
        change_percent=snapshot.change_percent,
        currency=snapshot.currency,
        as_of=snapshot.as_of,
        color=intensity(snapshot.change_percent).css(),
        constituents=[
            ConstituentResponse(
                symbol=c.symbol,
                quantity=c.quantity,
                price=c.price,
                value=c.value,
                change_percent=c.change_percent,
                weight=c.weight,
                source=c.source,
            )
            for c in snapshot.constituents
        ],
        unpriced=sorted(snapshot.unpriced),
    )
