"""Google OAuth2 authorization-code flow (consent URL, code exchange, profile fetch)."""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from cloud_drive.config import settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = ["openid", "profile", "email"]


class GoogleOAuthError(Exception):
    pass


@dataclass
class GoogleProfile:
    id: str
    email: str
    name: str
    picture: Optional[str] = None


def generate_state() -> str:
    return secrets.token_urlsafe(24)


def build_authorization_url(state: str) -> str:
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "state": state,
        "access_type": "online",
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code_for_profile(code: str) -> GoogleProfile:
    """Trade an authorization code for an access token, then fetch the user's profile."""
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            token_response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_CALLBACK_URL,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise GoogleOAuthError("Token response did not include an access token")

            profile_response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            profile_response.raise_for_status()
            data = profile_response.json()
    except httpx.HTTPError as e:
        logger.error(f"Google OAuth exchange failed: {e}")
        raise GoogleOAuthError(str(e)) from e

    if not data.get("sub") or not data.get("email"):
        raise GoogleOAuthError("Google profile is missing id or email")

    return GoogleProfile(
        id=data["sub"],
        email=data["email"],
        name=data.get("name") or data["email"].split("@")[0],
        picture=data.get("picture"),
    )
