"""FastAPI dependencies."""

from marketpulse.dependencies.engine import get_engine

__all__ = ["get_engine"]
