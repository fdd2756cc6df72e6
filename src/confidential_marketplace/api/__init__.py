"""
API module - FastAPI router for the marketplace.
"""

from .router import get_session, router, set_session

__all__ = ["router", "set_session", "get_session"]
