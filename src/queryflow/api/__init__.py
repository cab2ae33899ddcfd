"""
API module - FastAPI endpoints.
"""

from __future__ import annotations

from .router import create_queryflow_app, get_resolver, router, set_resolver

__all__ = [
    "router",
    "set_resolver",
    "get_resolver",
    "create_queryflow_app",
]
