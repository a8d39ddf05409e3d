import inspect
import logging
from collections.abc import Callable

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blog_api.config import settings
from blog_api.middleware import install_query_counter

logger = logging.getLogger(__name__)


def enable_sqlite_foreign_keys(engine) -> None:
    """
    Turn on ``PRAGMA foreign_keys`` for every new SQLite connection.

    SQLite ignores ``ON DELETE`` clauses unless the pragma is set, and the
    post -> comments / likes cascade and the category -> post SET NULL both
    rely on the database doing the work.  No-op for other dialects.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)
enable_sqlite_foreign_keys(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Post-commit side effects
# ---------------------------------------------------------------------------

_AFTER_COMMIT = "after_commit"


def after_commit(session: AsyncSession, callback: Callable[[], object]) -> None:
    """
    Queue *callback* (no arguments, sync or async) to run once *session*
    commits.  Queuing the same callback twice runs it once; a rollback
    discards the queue.

    Used for cache purges and file removals that must not precede the
    commit of the rows they describe.
    """
    callbacks = session.info.setdefault(_AFTER_COMMIT, [])
    if callback not in callbacks:
        callbacks.append(callback)


async def commit(session: AsyncSession) -> None:
    """Commit *session*, then run the callbacks queued with ``after_commit``."""
    await session.commit()
    for callback in session.info.pop(_AFTER_COMMIT, []):
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            # Rows are already committed; side effects are best effort.
            logger.exception("After-commit callback %r failed", callback)


async def rollback(session: AsyncSession) -> None:
    session.info.pop(_AFTER_COMMIT, None)
    await session.rollback()


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise
