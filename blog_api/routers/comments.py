from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import get_current_user
from blog_api.models import User
from blog_api.schemas import CommentUpdate
from blog_api.services import comment_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])

@router.patch("/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.update_comment(db, comment_id, data, current_user)

@router.delete("/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, comment_id, current_user)
