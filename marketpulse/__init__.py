"""MarketPulse - live market data and portfolio aggregation."""

__version__ = "0.1.0"
