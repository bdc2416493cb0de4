"""Fetch cycle API router."""

from fastapi import APIRouter, Depends, HTTPException, status

from marketpulse.dependencies import get_engine
from marketpulse.schemas import CycleReportResponse, ProviderResultResponse
from marketpulse.services.dashboard import DashboardEngine
from marketpulse.services.market_data.types import (
    FetchCycleReport,
    ProviderFailure,
    ProviderSuccess,
)

router = APIRouter(prefix="/api/cycles", tags=["cycles"])


def report_response(report: FetchCycleReport) -> CycleReportResponse:
    providers = []
    for name, result in report.provider_results.items():
        entry = ProviderResultResponse(provider=name, status=result.status)
        if isinstance(result, ProviderSuccess):
            entry.quote_count = len(result.quotes)
            entry.symbol_errors = dict(result.symbol_errors)
        elif isinstance(result, ProviderFailure):
            entry.reason = result.reason
            entry.error_kind = result.error_kind
        providers.append(entry)

    return CycleReportResponse(
        cycle_id=report.cycle_id,
        overall_status=report.overall_status,
        started_at=report.started_at,
        completed_at=report.completed_at,
        attempts=report.attempts,
        persistent_failure=report.persistent_failure,
        providers=providers,
        quoted_symbols=sorted(report.merged_quotes),
        unpriced_symbols=sorted(report.unpriced_symbols),
        rejected_symbols=sorted(report.rejected_symbols),
    )


@router.get("/latest", response_model=CycleReportResponse)
async def latest_cycle(engine: DashboardEngine = Depends(get_engine)):
    """Report of the most recent completed fetch cycle."""
    report = engine.last_report
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No fetch cycle has completed yet"
        )
    return report_response(report)


@router.post("/refresh", response_model=CycleReportResponse)
async def refresh(engine: DashboardEngine = Depends(get_engine)):
    """Run a fetch cycle now and return its report."""
    return report_response(await engine.refresh())
