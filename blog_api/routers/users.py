from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import get_current_user
from blog_api.models import User
from blog_api.schemas import ProfileResponse, ProfileUpdate, PublicProfileResponse
from blog_api.services import post_service, user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.get("/profile", response_model=ProfileResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    return user_service.get_profile(current_user)

@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_profile(db, current_user, data)

@router.get("/public/profile/{username}", response_model=PublicProfileResponse)
async def get_public_profile(username: str, db: AsyncSession = Depends(get_db)):
    return await user_service.get_public_profile(db, username)

@router.get("/{user_id}/posts")
async def list_user_posts(user_id: int, db: AsyncSession = Depends(get_db)):
    return await post_service.list_public_posts_for_user(db, user_id)
