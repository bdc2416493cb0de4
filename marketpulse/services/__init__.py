"""Services layer - business logic and external integrations.

This module is organized into domain-based subpackages:
- market_data/: Quote providers, fetch orchestration, quote store, currency rates
- portfolio/: Holdings and the synthetic portfolio instrument
- display/: Color mapping and per-card period state
- shared/: HTTP client base class and key-value stores

The DashboardEngine in dashboard.py wires them together.
"""
