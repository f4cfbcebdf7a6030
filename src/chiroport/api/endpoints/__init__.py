"""API endpoint modules."""

from .analytics import router as analytics_router
from .csrf import router as csrf_router
from .health import router as health_router
from .waitwhile import router as waitwhile_router

__all__ = [
    "analytics_router",
    "csrf_router",
    "health_router",
    "waitwhile_router",
]
