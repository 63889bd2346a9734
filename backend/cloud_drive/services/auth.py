"""Account registration, login, token refresh and Google account resolution."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cloud_drive.config import settings
from cloud_drive.errors import BadRequestError, ForbiddenError, NotFoundError
from cloud_drive.models.user import User
from cloud_drive.schemas.user import LoginRequest, RegisterRequest
from cloud_drive.security import (
    TokenError,
    create_access_token,
    create_token_pair,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from cloud_drive.services.file_records import as_uuid
from cloud_drive.services.google_oauth import GoogleProfile

logger = logging.getLogger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, body: RegisterRequest) -> tuple[User, dict[str, str]]:
    if await get_user_by_email(db, body.email):
        raise BadRequestError("User already exists")

    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        avatar=settings.DEFAULT_AVATAR,
        auth_provider="local",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user, create_token_pair(user)


async def authenticate_user(db: AsyncSession, body: LoginRequest) -> tuple[User, dict[str, str]]:
    user = await get_user_by_email(db, body.email)
    # Same answer for unknown email, wrong password and Google-only accounts
    if user is None or not verify_password(body.password, user.password_hash):
        raise BadRequestError("Invalid credentials")
    return user, create_token_pair(user)


async def refresh_access_token(db: AsyncSession, refresh_token: str) -> str:
    try:
        payload = decode_refresh_token(refresh_token)
    except TokenError as e:
        raise ForbiddenError("Invalid refresh token") from e

    user_id = as_uuid(payload["id"])
    user = await db.get(User, user_id) if user_id else None
    if user is None:
        raise NotFoundError("User not found")
    return create_access_token(user)


async def resolve_google_user(db: AsyncSession, profile: GoogleProfile) -> User:
    """Find the account for a Google profile, linking or creating it as needed.

    Lookup order: Google id, then email. An existing account matched by email
    is linked in place instead of creating a duplicate.
    """
    result = await db.execute(select(User).where(User.google_id == profile.id))
    user = result.scalar_one_or_none()
    if user is not None:
        return user

    user = await get_user_by_email(db, profile.email)
    if user is not None:
        user.google_id = profile.id
        user.auth_provider = "google"
        user.avatar = profile.picture or user.avatar or settings.DEFAULT_AVATAR
        await db.commit()
        await db.refresh(user)
        logger.info("Linked Google account to existing user %s", user.id)
        return user

    user = User(
        name=profile.name[:50],
        email=profile.email.strip().lower(),
        google_id=profile.id,
        auth_provider="google",
        avatar=profile.picture or settings.DEFAULT_AVATAR,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created user %s from Google login", user.id)
    return user
