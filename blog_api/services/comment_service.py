"""
Comment service: comments and one-level replies on a Post.

A reply references a root comment of the same post; replies to replies are
rejected.  Deleting a post or a root comment removes its replies through
the database cascade.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_api.exceptions import NotFoundError, ValidationError
from blog_api.models import Comment, User
from blog_api.policy import Action, authorize
from blog_api.schemas import CommentCreate, CommentUpdate
from blog_api.services.post_service import author_to_dict, get_post_or_404

logger = logging.getLogger(__name__)

COMMENT_NOT_FOUND = "Comment not found"


def _comment_to_dict(comment: Comment, author: User | None = None) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "post_id": comment.post_id,
        "parent_id": comment.parent_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "author": author_to_dict(author if author is not None else comment.author),
    }


async def _get_comment_or_404(db: AsyncSession, comment_id: int) -> Comment:
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(joinedload(Comment.author))
        .execution_options(populate_existing=True)
    )
    comment = (await db.execute(q)).scalar_one_or_none()
    if comment is None:
        raise NotFoundError(COMMENT_NOT_FOUND)
    return comment


async def add_comment(
    db: AsyncSession, post_id: int, data: CommentCreate, author: User
) -> dict:
    post = await get_post_or_404(db, post_id)
    authorize(author, Action.INTERACT, post, "Comments are not available on private posts")

    if data.parent_id is not None:
        parent = await db.get(Comment, data.parent_id)
        if parent is None or parent.post_id != post_id:
            raise ValidationError("Reply target does not belong to this post")
        if parent.parent_id is not None:
            raise ValidationError("Replies can only be made to top-level comments")

    comment = Comment(
        content=data.content,
        post_id=post_id,
        user_id=author.id,
        parent_id=data.parent_id,
    )
    db.add(comment)
    await db.flush()
    await db.refresh(comment)
    logger.info("User %d commented on post %d", author.id, post_id)
    return _comment_to_dict(comment, author)


async def list_comments(db: AsyncSession, post_id: int, user: User | None) -> list[dict]:
    """Return root comments oldest first, each with its replies nested."""
    post = await get_post_or_404(db, post_id)
    authorize(user, Action.READ, post, "This post is private")

    q = (
        select(Comment)
        .where(Comment.post_id == post_id, Comment.parent_id.is_(None))
        .options(
            joinedload(Comment.author),
            selectinload(Comment.replies).joinedload(Comment.author),
        )
        .order_by(Comment.created_at, Comment.id)
        .execution_options(populate_existing=True)
    )
    roots = (await db.execute(q)).unique().scalars().all()

    data = []
    for root in roots:
        item = _comment_to_dict(root)
        replies = sorted(root.replies, key=lambda c: (c.created_at, c.id))
        item["replies"] = [_comment_to_dict(reply) for reply in replies]
        data.append(item)
    return data


async def update_comment(
    db: AsyncSession, comment_id: int, data: CommentUpdate, user: User
) -> dict:
    comment = await _get_comment_or_404(db, comment_id)
    authorize(user, Action.UPDATE, comment)
    comment.content = data.content
    await db.flush()
    return _comment_to_dict(comment)


async def delete_comment(db: AsyncSession, comment_id: int, user: User) -> None:
    comment = await _get_comment_or_404(db, comment_id)
    authorize(user, Action.DELETE, comment)
    await db.delete(comment)
    await db.flush()
    logger.info("Comment %d deleted by user %d", comment_id, user.id)
