"""HTTP API served with FastAPI."""

from portfolio_tracker.api.app import create_app

__all__ = ["create_app"]
