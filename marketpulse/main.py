"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketpulse.config import settings
from marketpulse.database import build_engine, build_session_factory
from marketpulse.routers import cards, cycles, display, holdings, portfolio, quotes
from marketpulse.services.dashboard import DashboardEngine

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the dashboard engine, start polling, and tear everything down on exit."""
    session_factory = build_session_factory(build_engine())
    engine = DashboardEngine.from_settings(session_factory)
    app.state.engine = engine
    engine.start()
    logger.info("MarketPulse started, refreshing every %.0fs", settings.refresh_interval_seconds)
    try:
        yield
    finally:
        await engine.aclose()
        app.state.engine = None


# Create FastAPI app
app = FastAPI(
    title="MarketPulse API",
    description="Live market data and portfolio aggregation",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "MarketPulse API", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(quotes.router)
app.include_router(portfolio.router)
app.include_router(holdings.router)
app.include_router(cards.router)
app.include_router(cycles.router)
app.include_router(display.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
