"""API Routers"""

from .auth import router as auth_router
from .applications import router as applications_router
from .analytics import router as analytics_router
from .live import router as live_router

__all__ = [
    "auth_router",
    "applications_router",
    "analytics_router",
    "live_router",
]
