"""
User service: profile read / update and the public profile projection.

Profiles never expose the password hash or refresh-token state.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import cache
from blog_api.database import after_commit
from blog_api.exceptions import NotFoundError
from blog_api.models import User
from blog_api.schemas import ProfileUpdate

logger = logging.getLogger(__name__)

# Embedded as the author of every post in the cached public feed.
FEED_AUTHOR_FIELDS = {"nickname", "profile_image"}


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def public_profile_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "nickname": user.nickname,
        "description": user.description,
        "profile_image": user.profile_image,
    }


def profile_to_dict(user: User) -> dict:
    data = public_profile_to_dict(user)
    data.update(
        email=user.email,
        role=user.role.value,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )
    return data


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

def get_profile(user: User) -> dict:
    """Return the signed-in user's own profile."""
    return profile_to_dict(user)


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> dict:
    """
    Apply the fields present in *data* to *user*.

    Fields missing from the request are left unchanged; fields outside
    ``ProfileUpdate`` (email, role, ...) never reach this function.
    Changing the nickname or profile image purges the cached feed once the
    update commits.
    """
    changes = data.model_dump(exclude_unset=True)
    applied = set()
    for field, value in changes.items():
        if value is None and field != "profile_image":
            continue
        if getattr(user, field) != value:
            applied.add(field)
        setattr(user, field, value)

    await db.flush()
    await db.refresh(user)
    logger.info("User %d updated profile fields %s", user.id, sorted(changes))
    if applied & FEED_AUTHOR_FIELDS:
        after_commit(db, cache.invalidate_posts)
    return profile_to_dict(user)


async def get_public_profile(db: AsyncSession, username: str) -> dict:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return public_profile_to_dict(user)
