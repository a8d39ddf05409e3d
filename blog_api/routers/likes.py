from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import get_current_user
from blog_api.models import User
from blog_api.services import like_service

router = APIRouter(prefix="/api/v1/likes", tags=["likes"])

@router.post("/posts/{post_id}", status_code=201)
async def like_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await like_service.like_post(db, post_id, current_user)

@router.get("/posts/{post_id}")
async def list_likes(post_id: int, db: AsyncSession = Depends(get_db)):
    return await like_service.list_likes(db, post_id)

@router.delete("/posts/{post_id}", status_code=204)
async def unlike_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await like_service.unlike_post(db, post_id, current_user)
