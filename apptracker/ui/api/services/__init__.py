"""API Services"""

from .application_service import ApplicationService, get_application_service
from .auth_service import AuthService
from .dashboard_session import DashboardSession

__all__ = [
    "ApplicationService",
    "get_application_service",
    "AuthService",
    "DashboardSession",
]
