from fastapi import Depends, Query
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.config import settings
from blog_api.database import get_db
from blog_api.exceptions import UnauthorizedError
from blog_api.models import User
from blog_api.policy import require_admin
from blog_api.security import decode_token
from blog_api.storage import LocalFileStorage

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination
    query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of posts per page, defaulting to ``settings.POST_PER_PAGE``,
        at most ``settings.MAX_PAGE_SIZE``.

    Out-of-range values are rejected with 400.  Any page number is
    accepted; one past the end yields an empty page.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.POST_PER_PAGE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description=f"Number of posts returned per page (max {settings.MAX_PAGE_SIZE}).",
        ),
    ) -> None:
        self.page = page
        self.limit = limit


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = decode_token(token)
    user = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError()
    return user


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    require_admin(current_user)
    return current_user


def get_storage() -> LocalFileStorage:
    return LocalFileStorage(settings.STORAGE_ROOT)
