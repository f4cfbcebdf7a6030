"""HTTP API surface mounted under ``/api``."""

from .endpoints import analytics_router, csrf_router, health_router, waitwhile_router

__all__ = [
    "analytics_router",
    "csrf_router",
    "health_router",
    "waitwhile_router",
]
