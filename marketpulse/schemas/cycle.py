"""Pydantic schemas for fetch cycle reports."""

from datetime import datetime

from pydantic import BaseModel, Field

from marketpulse.constants import CycleStatus, ProviderStatus


class ProviderResultResponse(BaseModel):
    """One provider's outcome within a cycle."""

    provider: str
    status: ProviderStatus
    quote_count: int = Field(0, description="Quotes the provider returned")
    reason: str | None = Field(None, description="Failure message")
    error_kind: str | None = Field(
        None, description="unreachable, http-error, rate-limited, parse-error or unsupported"
    )
    symbol_errors: dict[str, str] = Field(default_factory=dict)


class CycleReportResponse(BaseModel):
    """Outcome of one fetch cycle."""

    cycle_id: int
    overall_status: CycleStatus
    started_at: datetime
    completed_at: datetime
    attempts: int = Field(..., description="Fetch rounds including retries")
    persistent_failure: bool = Field(..., description="Failures remained after the last retry")
    providers: list[ProviderResultResponse]
    quoted_symbols: list[str]
    unpriced_symbols: list[str] = Field(default_factory=list)
    rejected_symbols: list[str] = Field(
        default_factory=list, description="Quotes older than the stored ones"
    )
