"""Dependency injection for FastAPI"""

from typing import Dict, Optional
import logging

from fastapi import Depends, Header

from .config import get_settings
from .database.record_store import RecordStore, get_record_store
from .services.application_service import ApplicationService
from .services.auth_service import AuthService

logger = logging.getLogger(__name__)


def get_store() -> RecordStore:
    """Get or create the record store (singleton pattern)"""
    settings = get_settings()
    return get_record_store(settings.db_path, poll_interval=settings.live_poll_seconds)


def get_application_service(store: RecordStore = Depends(get_store)) -> ApplicationService:
    return ApplicationService(store)


def get_auth_service(store: RecordStore = Depends(get_store)) -> AuthService:
    settings = get_settings()
    return AuthService(store, reauth_window_minutes=settings.reauth_window_minutes)


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_session(
    token: Optional[str] = Depends(bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> Dict:
    """Session of the calling user; AuthenticationError (401) if missing"""
    return auth.resolve(token)


def get_current_user_id(session: Dict = Depends(get_current_session)) -> str:
    return session["user_id"]
