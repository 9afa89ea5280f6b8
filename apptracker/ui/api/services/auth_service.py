"""Auth Service - sessions and account lifecycle"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from apptracker.errors import AuthenticationError, ReauthRequiredError
from ..database.record_store import RecordStore, get_record_store
from ..models.application_models import AuthResponse

logger = logging.getLogger(__name__)


class AuthService:
    """Register, log in (email or guest), log out and delete accounts"""

    def __init__(self, store: Optional[RecordStore] = None, reauth_window_minutes: int = 5):
        self.store = store or get_record_store()
        self.reauth_window = timedelta(minutes=reauth_window_minutes)

    def register(self, email: str, password: str) -> AuthResponse:
        user_id = self.store.create_user(email, password)
        return self._start_session(user_id)

    def login(self, email: str, password: str) -> AuthResponse:
        user_id = self.store.verify_credentials(email, password)
        logger.info(f"User {user_id} logged in")
        return self._start_session(user_id)

    def guest_login(self) -> AuthResponse:
        user_id = self.store.create_guest_user()
        return self._start_session(user_id)

    def resolve(self, token: Optional[str]) -> Dict:
        """Session for a bearer token, AuthenticationError if unknown"""
        if not token:
            raise AuthenticationError("Missing session token")
        session = self.store.get_session(token)
        if not session:
            raise AuthenticationError("Invalid or expired session token")
        return session

    def logout(self, token: str) -> None:
        """Drop the session and tear down its live subscriptions"""
        session = self.resolve(token)
        self.store.delete_session(token)
        self.store.close_subscriptions(session["user_id"], label=token)
        logger.info(f"User {session['user_id']} logged out")

    def delete_account(self, token: str, now: Optional[datetime] = None) -> None:
        """
        Delete the account behind token.

        Raises ReauthRequiredError unless the session was authenticated within
        the reauth window.
        """
        session = self.resolve(token)
        now = now or datetime.now()

        if now - session["authenticated_at"] > self.reauth_window:
            logger.warning(f"Account deletion for {session['user_id']} needs a recent login")
            raise ReauthRequiredError()

        self.store.delete_user(session["user_id"])

    def _start_session(self, user_id: str) -> AuthResponse:
        token = self.store.create_session(user_id)
        user = self.store.get_user(user_id) or {}
        return AuthResponse(
            token=token,
            user_id=user_id,
            email=user.get("email"),
            is_guest=bool(user.get("is_guest")),
        )
