"""Password hashing and JWT issuing/verification."""
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from cloud_drive.config import settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
REFRESH_COOKIE_NAME = "refreshToken"


class TokenError(Exception):
    """Token is malformed, expired, signed with another key or of the wrong type."""


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _encode(payload: dict, secret: str, expires_in: timedelta) -> str:
    now = datetime.now(timezone.utc)
    claims = {**payload, "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user) -> str:
    return _encode(
        {
            "id": str(user.id),
            "email": user.email,
            "role": user.role or "user",
            "type": ACCESS_TOKEN_TYPE,
        },
        settings.JWT_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user_id) -> str:
    return _encode(
        {"id": str(user_id), "type": REFRESH_TOKEN_TYPE},
        settings.JWT_REFRESH_SECRET,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_token_pair(user) -> dict[str, str]:
    return {
        "accessToken": create_access_token(user),
        "refreshToken": create_refresh_token(user.id),
    }


def _decode(token: str, secret: str, token_type: str) -> dict:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise TokenError(str(e)) from e
    if payload.get("type") != token_type or not payload.get("id"):
        raise TokenError(f"Expected a {token_type} token")
    return payload


def decode_access_token(token: str) -> dict:
    return _decode(token, settings.JWT_SECRET, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict:
    return _decode(token, settings.JWT_REFRESH_SECRET, REFRESH_TOKEN_TYPE)
