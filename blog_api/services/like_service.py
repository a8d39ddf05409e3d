"""
Like service: one like per user per post.

Likes are only accepted on PUBLIC posts; the same rule applies when a like
is removed or listed, regardless of who owns the post.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_api.exceptions import ConflictError, NotFoundError
from blog_api.models import Like, Post, User
from blog_api.policy import Action, authorize
from blog_api.services.post_service import author_to_dict, get_post_or_404

logger = logging.getLogger(__name__)

PRIVATE_POST = "Likes are not available on private posts"


async def _get_public_post(db: AsyncSession, post_id: int) -> Post:
    post = await get_post_or_404(db, post_id)
    authorize(None, Action.INTERACT, post, PRIVATE_POST)
    return post


async def _find_like(db: AsyncSession, post_id: int, user_id: int) -> Like | None:
    result = await db.execute(
        select(Like).where(Like.post_id == post_id, Like.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def like_post(db: AsyncSession, post_id: int, user: User) -> dict:
    await _get_public_post(db, post_id)
    if await _find_like(db, post_id, user.id) is not None:
        raise ConflictError("Post already liked")

    like = Like(post_id=post_id, user_id=user.id)
    db.add(like)
    await db.flush()
    await db.refresh(like)
    logger.info("User %d liked post %d", user.id, post_id)
    return {
        "id": like.id,
        "post_id": like.post_id,
        "created_at": like.created_at.isoformat() if like.created_at else None,
        "user": author_to_dict(user),
    }


async def unlike_post(db: AsyncSession, post_id: int, user: User) -> None:
    await _get_public_post(db, post_id)
    like = await _find_like(db, post_id, user.id)
    if like is None:
        raise NotFoundError("Like not found")
    await db.delete(like)
    await db.flush()
    logger.info("User %d unliked post %d", user.id, post_id)


async def list_likes(db: AsyncSession, post_id: int) -> list[dict]:
    """Return the likes on *post_id*, oldest first, with the liking user."""
    await _get_public_post(db, post_id)
    q = (
        select(Like)
        .where(Like.post_id == post_id)
        .options(joinedload(Like.user))
        .order_by(Like.created_at, Like.id)
        .execution_options(populate_existing=True)
    )
    likes = (await db.execute(q)).scalars().all()
    return [
        {
            "id": like.id,
            "post_id": like.post_id,
            "created_at": like.created_at.isoformat() if like.created_at else None,
            "user": author_to_dict(like.user),
        }
        for like in likes
    ]
