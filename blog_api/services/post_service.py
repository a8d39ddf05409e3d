"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Visibility and ownership decisions go through ``blog_api.policy``; this
  module only looks rows up and raises ``NotFoundError`` when they are
  missing.
- Public listings go through the cache-aside pattern (Redis, falling back
  to the DB).  Every write queues ``cache.invalidate_posts`` to run once
  the transaction commits.
- Relationships are ``lazy="noload"``; reads use ``joinedload`` for
  many-to-one (author, category) and ``selectinload`` for tags.  After a
  write the post is re-selected with ``populate_existing`` so server-side
  timestamps and relationships reflect the flushed state.
- Images embedded in content are uploaded to a temp folder before the post
  exists.  Creating a post is therefore a two-phase write: insert to get
  the id, then move the images into ``images/{post_id}`` and rewrite the
  content.  If anything fails after a move, the moved files are put back
  and the error propagates so ``get_db`` rolls the rows back.  Deleting a
  post removes its image folder only after the delete commits.
- Disk work runs in the threadpool so it never blocks the event loop.
- Service functions flush but do not commit.
"""
import logging
import re
from functools import partial

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_api.cache import cache, public_posts_key
from blog_api.config import settings
from blog_api.database import after_commit
from blog_api.exceptions import NotFoundError, ValidationError
from blog_api.models import Category, Comment, Like, Post, PostStatus, User
from blog_api.policy import Action, authorize, is_admin
from blog_api.schemas import PostCreate, PostUpdate
from blog_api.services import tag_service
from blog_api.storage import LocalFileStorage, post_images_url_prefix, temp_url_prefix

logger = logging.getLogger(__name__)

POST_NOT_FOUND = "Post not found"

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def author_to_dict(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "nickname": user.nickname,
        "profile_image": user.profile_image,
    }


def post_to_dict(post: Post) -> dict:
    """Serialise a Post ORM instance to a plain dict (list view)."""
    return {
        "id": post.id,
        "title": post.title,
        "description": post.description,
        "status": post.status.value,
        "created_at": _isoformat(post.created_at),
        "updated_at": _isoformat(post.updated_at),
        "user_id": post.user_id,
        "author": author_to_dict(post.author),
        "category": {"id": post.category.id, "name": post.category.name} if post.category else None,
        "tags": [{"id": t.id, "name": t.name} for t in post.tags],
    }


async def _post_detail_to_dict(db: AsyncSession, post: Post) -> dict:
    data = post_to_dict(post)
    data["content"] = post.content
    data["like_count"] = (
        await db.execute(select(func.count()).select_from(Like).where(Like.post_id == post.id))
    ).scalar_one()
    data["comment_count"] = (
        await db.execute(select(func.count()).select_from(Comment).where(Comment.post_id == post.id))
    ).scalar_one()
    return data


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def with_relations(q):
    """Eager-load author, category and tags, overwriting stale identities."""
    return q.options(
        joinedload(Post.author),
        joinedload(Post.category),
        selectinload(Post.tags),
    ).execution_options(populate_existing=True)


def newest_first(q):
    """Order a Post query newest first, with the id as a stable tie-breaker."""
    return q.order_by(Post.created_at.desc(), Post.id.desc())


async def find_post(db: AsyncSession, *criteria, load_relations: bool = False) -> Post | None:
    """
    Return the first post matching the SQLAlchemy *criteria*, or None.

    Example: ``await find_post(db, Post.id == 3, Post.user_id == user.id)``.
    """
    q = select(Post).where(*criteria)
    if load_relations:
        q = with_relations(q)
    result = await db.execute(q.limit(1))
    return result.unique().scalar_one_or_none()


async def get_post_or_404(db: AsyncSession, post_id: int, load_relations: bool = False) -> Post:
    post = await find_post(db, Post.id == post_id, load_relations=load_relations)
    if post is None:
        raise NotFoundError(POST_NOT_FOUND)
    return post


async def _get_category(db: AsyncSession, category_id: int | None) -> Category | None:
    if category_id is None:
        return None
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


# ---------------------------------------------------------------------------
# Embedded images
# ---------------------------------------------------------------------------

def referenced_temp_images(content: str) -> list[str]:
    """Return the distinct temp image names referenced in *content*, in order."""
    pattern = re.compile(re.escape(temp_url_prefix()) + r"([\w-]+\.[A-Za-z0-9]+)")
    return list(dict.fromkeys(pattern.findall(content)))


def rewrite_image_paths(content: str, post_id: int) -> str:
    """Point every temp image reference in *content* at the post's folder."""
    return content.replace(temp_url_prefix(), post_images_url_prefix(post_id))


async def _move_images(storage: LocalFileStorage, post: Post, moved: list[str]) -> None:
    """
    Move every temp image referenced by the post into its folder and
    rewrite the content.  Names are appended to *moved* as they succeed so
    the caller can undo a partial move.
    """
    for name in referenced_temp_images(post.content):
        try:
            await run_in_threadpool(storage.move_post_image, name, post.id)
        except (FileNotFoundError, ValueError):
            raise ValidationError(f"Uploaded image not found: {name}")
        moved.append(name)
    post.content = rewrite_image_paths(post.content, post.id)


async def _restore_images(storage: LocalFileStorage, post_id: int, moved: list[str]) -> None:
    for name in moved:
        await run_in_threadpool(storage.restore_post_image, name, post_id)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def count_posts(db: AsyncSession, status: PostStatus | None = None) -> int:
    """Return the number of posts, optionally restricted to *status*."""
    q = select(func.count()).select_from(Post)
    if status is not None:
        q = q.where(Post.status == status)
    return (await db.execute(q)).scalar_one()


async def list_posts_paginated(
    db: AsyncSession,
    page: int = 1,
    limit: int = settings.POST_PER_PAGE,
    is_admin: bool = False,
) -> dict:
    """
    Return one page of posts, newest first, with the total number of posts
    matching the filter.

    Non-admin callers only see PUBLIC posts.  A page past the end yields an
    empty ``posts`` list; ``total`` is unaffected by paging.
    """
    async def load() -> dict:
        conditions = [] if is_admin else [Post.status == PostStatus.PUBLIC]

        count_q = select(func.count()).select_from(Post).where(*conditions)
        total: int = (await db.execute(count_q)).scalar_one()

        offset = (page - 1) * limit
        posts = []
        # Past the end: no query, so huge offsets never reach the driver.
        if offset < total:
            posts_q = newest_first(with_relations(select(Post).where(*conditions)))
            posts_q = posts_q.offset(offset).limit(limit)
            posts = (await db.execute(posts_q)).unique().scalars().all()

        return {
            "posts": [post_to_dict(p) for p in posts],
            "total": total,
            "page": page,
            "limit": limit,
        }

    if is_admin:
        return await load()
    return await cache.get_or_load(public_posts_key(page, limit), load)


async def list_public_posts_for_user(db: AsyncSession, user_id: int) -> list[dict]:
    """Return the PUBLIC posts authored by *user_id*, newest first."""
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    q = newest_first(
        with_relations(
            select(Post).where(Post.user_id == user_id, Post.status == PostStatus.PUBLIC)
        )
    )
    posts = (await db.execute(q)).unique().scalars().all()
    return [post_to_dict(p) for p in posts]


async def get_post(db: AsyncSession, post_id: int, user: User | None) -> dict:
    """
    Return the detail dict for *post_id* as seen by *user* (None for an
    anonymous caller).
    """
    post = await get_post_or_404(db, post_id, load_relations=True)
    authorize(user, Action.READ, post, "This post is private")
    return await _post_detail_to_dict(db, post)


async def create_post(
    db: AsyncSession, data: PostCreate, author: User, storage: LocalFileStorage
) -> dict:
    category = await _get_category(db, data.category_id)
    tags = await tag_service.resolve_tags(db, data.tag_names)

    post = Post(
        title=data.title,
        description=data.description,
        content=data.content,
        status=data.status,
        user_id=author.id,
        category_id=category.id if category else None,
        tags=tags,
    )
    db.add(post)
    # The permanent image folder is keyed by the generated id.
    await db.flush()

    moved: list[str] = []
    try:
        await _move_images(storage, post, moved)
        await db.flush()
    except Exception:
        await _restore_images(storage, post.id, moved)
        raise

    logger.info("Post %d created by user %d (%d image(s))", post.id, author.id, len(moved))
    after_commit(db, cache.invalidate_posts)
    post = await get_post_or_404(db, post.id, load_relations=True)
    return await _post_detail_to_dict(db, post)


async def update_post(
    db: AsyncSession,
    post_id: int,
    data: PostUpdate,
    user: User,
    storage: LocalFileStorage,
) -> dict:
    """
    Replace every editable field of *post_id* with the values in *data*.

    Category and tags are resolved like on create; images newly referenced
    in the content are moved into the post's folder.
    """
    post = await get_post_or_404(db, post_id, load_relations=True)
    authorize(user, Action.UPDATE, post)

    category = await _get_category(db, data.category_id)
    tags = await tag_service.resolve_tags(db, data.tag_names)

    post.title = data.title
    post.description = data.description
    post.content = data.content
    post.status = data.status
    post.category_id = category.id if category else None
    post.tags = tags

    moved: list[str] = []
    try:
        await _move_images(storage, post, moved)
        await db.flush()
    except Exception:
        await _restore_images(storage, post.id, moved)
        raise

    logger.info("Post %d updated by user %d", post.id, user.id)
    after_commit(db, cache.invalidate_posts)
    post = await get_post_or_404(db, post.id, load_relations=True)
    return await _post_detail_to_dict(db, post)


async def update_post_status(
    db: AsyncSession, post_id: int, status: PostStatus, user: User
) -> None:
    post = await get_post_or_404(db, post_id)
    authorize(user, Action.UPDATE, post)
    post.status = status
    await db.flush()
    logger.info("Post %d status set to %s", post.id, status.value)
    after_commit(db, cache.invalidate_posts)


async def delete_post(
    db: AsyncSession, post_id: int, user: User, storage: LocalFileStorage
) -> None:
    """
    Delete *post_id* together with its comments, replies, likes and images.

    Dependent rows are removed by the database cascade; the image folder is
    removed once the delete commits, and kept if it rolls back.
    """
    post = await get_post_or_404(db, post_id)
    authorize(user, Action.DELETE, post, "Only the author or an administrator can delete this post")

    await db.delete(post)
    await db.flush()
    after_commit(db, partial(run_in_threadpool, storage.delete_post_images, post_id))

    logger.info(
        "Post %d deleted by %s %d", post_id, "admin" if is_admin(user) else "user", user.id
    )
    after_commit(db, cache.invalidate_posts)
