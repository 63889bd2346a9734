"""Auth API routes: local accounts, refresh cookie and Google OAuth."""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, Query, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from cloud_drive.config import settings
from cloud_drive.database import get_db
from cloud_drive.errors import UnauthorizedError
from cloud_drive.schemas.user import LoginRequest, RegisterRequest, UserResponse
from cloud_drive.security import REFRESH_COOKIE_NAME, create_token_pair
from cloud_drive.services import responses
from cloud_drive.services.auth import (
    authenticate_user,
    refresh_access_token,
    register_user,
    resolve_google_user,
)
from cloud_drive.services.google_oauth import (
    GoogleOAuthError,
    build_authorization_url,
    exchange_code_for_profile,
    generate_state,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

OAUTH_STATE_COOKIE = "oauthState"


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        refresh_token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        REFRESH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user, tokens = await register_user(db, body)
    response = responses.created(
        {"user": UserResponse.model_validate(user).to_json(), "accessToken": tokens["accessToken"]},
        "User registered successfully",
    )
    set_refresh_cookie(response, tokens["refreshToken"])
    return response


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user, tokens = await authenticate_user(db, body)
    response = responses.success(
        {"user": UserResponse.model_validate(user).to_json(), "accessToken": tokens["accessToken"]},
        "Login successful",
    )
    set_refresh_cookie(response, tokens["refreshToken"])
    return response


@router.post("/logout")
async def logout():
    response = responses.success(message="Logged out successfully")
    clear_refresh_cookie(response)
    return response


@router.post("/refresh-token")
async def refresh_token(
    refresh_token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE_NAME),
    db: AsyncSession = Depends(get_db),
):
    """Exchange the refresh cookie for a new access token."""
    if not refresh_token:
        raise UnauthorizedError("No refresh token found")
    access_token = await refresh_access_token(db, refresh_token)
    return responses.success({"accessToken": access_token}, "Token refreshed")


@router.get("/google")
async def google_login():
    """Start the Google consent flow."""
    state = generate_state()
    response = RedirectResponse(build_authorization_url(state), status_code=302)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=600,
    )
    return response


def _login_failed_redirect() -> RedirectResponse:
    query = urlencode({"error": "Authentication failed"})
    return RedirectResponse(f"{settings.FRONTEND_URL}/login?{query}", status_code=302)


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    expected_state: Optional[str] = Cookie(None, alias=OAUTH_STATE_COOKIE),
    db: AsyncSession = Depends(get_db),
):
    """Finish the Google flow and hand the access token to the frontend."""
    if error or not code or not state or state != expected_state:
        logger.warning("Google callback rejected (error=%s, state match=%s)", error, state == expected_state)
        return _login_failed_redirect()

    try:
        profile = await exchange_code_for_profile(code)
    except GoogleOAuthError:
        return _login_failed_redirect()

    user = await resolve_google_user(db, profile)
    tokens = create_token_pair(user)

    query = urlencode({"token": tokens["accessToken"]})
    response = RedirectResponse(f"{settings.FRONTEND_URL}/oauth/callback?{query}", status_code=302)
    set_refresh_cookie(response, tokens["refreshToken"])
    response.delete_cookie(OAUTH_STATE_COOKIE)
    return response
