"""Dashboard engine dependency."""

from fastapi import HTTPException, Request, status

from marketpulse.services.dashboard import DashboardEngine


def get_engine(request: Request) -> DashboardEngine:
    """Dashboard engine created by the application lifespan.

    Example:
        @router.get("/quotes")
        def list_quotes(engine: DashboardEngine = Depends(get_engine)):
            return engine.quotes()

    Raises:
        HTTPException: If the engine has not been started
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard engine is not running",
        )
    return engine
