"""
Tag service: find-or-create semantics keyed by the unique tag name.

Tags are never created directly by clients; they come into existence the
first time a post references them by name.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.cache import TAGS_KEY, cache
from blog_api.models import Post, PostStatus, Tag, post_tags

logger = logging.getLogger(__name__)


async def _find_tag(db: AsyncSession, name: str) -> Tag | None:
    result = await db.execute(select(Tag).where(Tag.name == name))
    return result.scalar_one_or_none()


async def create_if_not_exist_by_name(db: AsyncSession, name: str) -> Tag:
    """
    Return the tag called *name*, creating it if it does not exist yet.

    The insert is flushed immediately so a second call with the same name
    in the same transaction finds the row instead of inserting a duplicate.
    It runs in a savepoint: if another transaction inserted the same name
    first, only the savepoint is rolled back and the winner's row is
    returned.
    """
    name = name.strip()
    tag = await _find_tag(db, name)
    if tag is not None:
        return tag
    try:
        async with db.begin_nested():
            tag = Tag(name=name)
            db.add(tag)
    except IntegrityError:
        logger.info("Tag %r created concurrently, reusing it", name)
        return await _find_tag(db, name)
    logger.info("Tag %r created", name)
    return tag


async def resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """Resolve *tag_names* to Tag rows, preserving order and dropping repeats."""
    tags: list[Tag] = []
    seen: set[str] = set()
    for name in tag_names:
        key = name.strip()
        if not key or key in seen:
            continue
        seen.add(key)
        tags.append(await create_if_not_exist_by_name(db, key))
    return tags


async def list_tags(db: AsyncSession) -> list[dict]:
    """Return every tag with the number of public posts carrying it."""
    public_posts = (
        select(post_tags.c.tag_id, Post.id.label("post_id"))
        .join(Post, Post.id == post_tags.c.post_id)
        .where(Post.status == PostStatus.PUBLIC)
        .subquery()
    )
    q = (
        select(Tag.id, Tag.name, func.count(public_posts.c.post_id).label("post_count"))
        .outerjoin(public_posts, public_posts.c.tag_id == Tag.id)
        .group_by(Tag.id, Tag.name)
        .order_by(Tag.name)
    )

    async def load() -> list[dict]:
        rows = (await db.execute(q)).all()
        return [{"id": row.id, "name": row.name, "post_count": row.post_count} for row in rows]

    return await cache.get_or_load(TAGS_KEY, load)
