"""Authentication API router"""

from fastapi import APIRouter, Depends
from typing import Dict, Optional
import logging

from ..dependencies import get_auth_service, bearer_token, get_current_session
from ..services.auth_service import AuthService
from ..models.application_models import RegisterRequest, LoginRequest, AuthResponse
from ..models.responses import ErrorResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    request: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register with email and password and start a session"""
    return auth.register(request.email, request.password)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Log in",
)
async def login(
    request: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Log in with email and password"""
    return auth.login(request.email, request.password)


@router.post(
    "/guest",
    response_model=AuthResponse,
    summary="Continue as guest",
)
async def guest_login(
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Start an anonymous session"""
    return auth.guest_login()


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Log out",
)
async def logout(
    token: Optional[str] = Depends(bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """End the session and close its live dashboard streams"""
    auth.logout(token)
    return MessageResponse(message="Logged out")


@router.delete(
    "/account",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Session missing or login too old"}},
    summary="Delete account",
)
async def delete_account(
    session: Dict = Depends(get_current_session),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Delete the account and its applications. Needs a recent login."""
    auth.delete_account(session["token"])
    return MessageResponse(message="Account deleted")
