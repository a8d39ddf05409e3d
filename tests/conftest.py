"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped.
- Foreign keys are switched on for the test engine so ON DELETE CASCADE /
  SET NULL behave as they do on Postgres.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory.  get_storage is overridden with a storage rooted
  in pytest's tmp_path, so uploads and image moves never touch the real
  public directory.
- All tables are created fresh before each test and dropped after.
- The Redis cache is disabled by setting cache._redis = None.
- Fixtures that seed rows commit before returning: request sessions share
  the single StaticPool connection and reset it when they close.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blog_api.cache import cache
from blog_api.database import Base, commit, enable_sqlite_foreign_keys, get_db, rollback
from blog_api.dependencies import get_storage
from blog_api.main import app
from blog_api.middleware import install_query_counter
from blog_api.models import Category, Post, PostStatus, User, UserRole
from blog_api.security import create_access_token, hash_password
from blog_api.storage import LocalFileStorage

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)
enable_sqlite_foreign_keys(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

TEST_PASSWORD = "password123"
# Hashing is slow by design; reuse one digest for every seeded user.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


async def create_user(
    db: AsyncSession,
    username: str = "writer",
    role: UserRole = UserRole.USER,
) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        nickname=username[:10],
        hashed_password=TEST_PASSWORD_HASH,
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


async def create_post(
    db: AsyncSession,
    author: User,
    status: PostStatus = PostStatus.PUBLIC,
    category: Category | None = None,
    title: str = "Seeded post",
) -> Post:
    post = Post(
        title=title,
        description="Seeded description",
        content="<p>Seeded content</p>",
        status=status,
        user_id=author.id,
        category_id=category.id if category else None,
    )
    db.add(post)
    await db.commit()
    return post


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Yield a live AsyncSession for seeding data and asserting ORM state."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    """A file storage rooted in a per-test temporary directory."""
    storage = LocalFileStorage(tmp_path)
    storage.ensure_dirs()
    app.dependency_overrides[get_storage] = lambda: storage
    yield storage
    app.dependency_overrides.pop(get_storage, None)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "writer")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "reader")


@pytest_asyncio.fixture
async def async_client(storage: LocalFileStorage) -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
