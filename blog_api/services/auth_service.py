"""
Auth service: registration, password login and refresh-token rotation.

Only a SHA-256 digest of the current refresh token is stored, so a leaked
database row cannot be replayed; logging in again or refreshing rotates it.
"""
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.exceptions import ConflictError, UnauthorizedError
from blog_api.models import User, UserRole
from blog_api.schemas import RegisterRequest
from blog_api.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    hash_token,
    verify_password,
)
from blog_api.services.user_service import profile_to_dict

logger = logging.getLogger(__name__)

USER_EXISTS = "A user with this email or username already exists"


async def _issue_tokens(db: AsyncSession, user: User) -> dict:
    refresh_token = create_refresh_token(user)
    user.refresh_token_hash = hash_token(refresh_token)
    await db.flush()
    return {
        "access_token": create_access_token(user),
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


async def _identity_taken(db: AsyncSession, email: str, username: str) -> bool:
    q = select(User.id).where(or_(User.email == email, User.username == username))
    return (await db.execute(q)).first() is not None


async def register(
    db: AsyncSession, data: RegisterRequest, role: UserRole = UserRole.USER
) -> dict:
    if await _identity_taken(db, data.email, data.username):
        raise ConflictError(USER_EXISTS)

    user = User(
        email=data.email,
        username=data.username,
        nickname=data.nickname or data.username[:10],
        hashed_password=hash_password(data.password),
        role=role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration.
        raise ConflictError(USER_EXISTS)
    await db.refresh(user)
    logger.info("User %d registered as %s", user.id, role.value)
    return profile_to_dict(user)


async def login(db: AsyncSession, email: str, password: str) -> dict:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        raise UnauthorizedError("Incorrect email or password")
    logger.info("User %d logged in", user.id)
    return await _issue_tokens(db, user)


async def refresh_tokens(db: AsyncSession, refresh_token: str) -> dict:
    """Exchange a valid refresh token for a new access / refresh pair."""
    user_id = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    user = await db.get(User, user_id)
    if user is None or user.refresh_token_hash != hash_token(refresh_token):
        raise UnauthorizedError("Refresh token is no longer valid")
    return await _issue_tokens(db, user)


async def logout(db: AsyncSession, user: User) -> None:
    user.refresh_token_hash = None
    await db.flush()
    logger.info("User %d logged out", user.id)
