"""
Category service: CRUD and listings for the Category aggregate.

Listings carry a ``post_count``.  The public variants only count (and
only show) PUBLIC posts; the admin variants count every post.  Deleting a
category keeps its posts; the database sets their ``category_id`` to NULL.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import PUBLIC_CATEGORIES_KEY, cache
from blog_api.config import settings
from blog_api.database import after_commit
from blog_api.exceptions import ConflictError, NotFoundError
from blog_api.models import Category, Post, PostStatus
from blog_api.schemas import CategoryCreate, CategoryUpdate
from blog_api.services.post_service import newest_first, post_to_dict, with_relations

logger = logging.getLogger(__name__)

CATEGORY_NOT_FOUND = "Category not found"
CATEGORY_EXISTS = "Category already exists"


def _category_to_dict(category: Category) -> dict:
    return {"id": category.id, "name": category.name}


async def _get_category_or_404(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError(CATEGORY_NOT_FOUND)
    return category


async def _name_taken(db: AsyncSession, name: str, exclude_id: int | None = None) -> bool:
    q = select(Category.id).where(Category.name == name)
    if exclude_id is not None:
        q = q.where(Category.id != exclude_id)
    return (await db.execute(q)).first() is not None


async def _flush_unique_name(db: AsyncSession) -> None:
    # A concurrent request can take the name between the check and the flush.
    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError(CATEGORY_EXISTS)


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    if await _name_taken(db, data.name):
        raise ConflictError(CATEGORY_EXISTS)
    category = Category(name=data.name)
    db.add(category)
    await _flush_unique_name(db)
    logger.info("Category %d %r created", category.id, category.name)
    after_commit(db, cache.invalidate_posts)
    return _category_to_dict(category)


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> dict:
    category = await _get_category_or_404(db, category_id)
    if await _name_taken(db, data.name, exclude_id=category_id):
        raise ConflictError(CATEGORY_EXISTS)
    category.name = data.name
    await _flush_unique_name(db)
    logger.info("Category %d renamed to %r", category.id, category.name)
    after_commit(db, cache.invalidate_posts)
    return _category_to_dict(category)


async def delete_category(db: AsyncSession, category_id: int) -> None:
    category = await _get_category_or_404(db, category_id)
    await db.delete(category)
    await db.flush()
    logger.info("Category %d deleted", category_id)
    after_commit(db, cache.invalidate_posts)


async def list_public_categories(db: AsyncSession) -> list[dict]:
    """Return categories with at least one PUBLIC post, with that count."""
    async def load() -> list[dict]:
        q = (
            select(Category.id, Category.name, func.count(Post.id).label("post_count"))
            .join(Post, Post.category_id == Category.id)
            .where(Post.status == PostStatus.PUBLIC)
            .group_by(Category.id, Category.name)
            .order_by(Category.name)
        )
        rows = (await db.execute(q)).all()
        return [{"id": r.id, "name": r.name, "post_count": r.post_count} for r in rows]

    return await cache.get_or_load(PUBLIC_CATEGORIES_KEY, load)


async def list_categories(db: AsyncSession) -> list[dict]:
    """Return every category with its total post count (all statuses)."""
    q = (
        select(Category.id, Category.name, func.count(Post.id).label("post_count"))
        .outerjoin(Post, Post.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.name)
    )
    rows = (await db.execute(q)).all()
    return [{"id": r.id, "name": r.name, "post_count": r.post_count} for r in rows]


async def get_category_with_posts(
    db: AsyncSession,
    category_id: int,
    page: int = 1,
    limit: int = settings.POST_PER_PAGE,
    public_only: bool = True,
) -> dict:
    """
    Return the category and one page of its posts, newest first.

    A page past the end returns an empty ``posts`` list and the real ``total``
    without querying for posts.
    """
    category = await _get_category_or_404(db, category_id)

    conditions = [Post.category_id == category_id]
    if public_only:
        conditions.append(Post.status == PostStatus.PUBLIC)

    total: int = (
        await db.execute(select(func.count()).select_from(Post).where(*conditions))
    ).scalar_one()

    offset = (page - 1) * limit
    posts = []
    if offset < total:
        q = newest_first(with_relations(select(Post).where(*conditions)))
        q = q.offset(offset).limit(limit)
        posts = (await db.execute(q)).unique().scalars().all()

    data = _category_to_dict(category)
    data.update(
        posts=[post_to_dict(p) for p in posts],
        total=total,
        page=page,
        limit=limit,
    )
    return data
