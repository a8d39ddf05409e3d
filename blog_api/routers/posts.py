from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import (
    PaginationParams,
    get_current_admin,
    get_current_user,
    get_storage,
)
from blog_api.models import PostStatus, User
from blog_api.schemas import (
    CommentCreate,
    PostCountResponse,
    PostCreate,
    PostListResponse,
    PostStatusUpdate,
    PostUpdate,
)
from blog_api.services import comment_service, post_service
from blog_api.storage import LocalFileStorage

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])

@router.get("/public/count", response_model=PostCountResponse)
async def count_public_posts(db: AsyncSession = Depends(get_db)):
    return {"post_count": await post_service.count_posts(db, PostStatus.PUBLIC)}

@router.get("/count", response_model=PostCountResponse)
async def count_posts(
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"post_count": await post_service.count_posts(db)}

@router.get("/public", response_model=PostListResponse)
async def list_public_posts(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.list_posts_paginated(db, pagination.page, pagination.limit)

@router.get("", response_model=PostListResponse)
async def list_posts(
    pagination: PaginationParams = Depends(),
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.list_posts_paginated(
        db, pagination.page, pagination.limit, is_admin=True
    )

@router.get("/public/{post_id}")
async def get_public_post(post_id: int, db: AsyncSession = Depends(get_db)):
    return await post_service.get_post(db, post_id, None)

@router.get("/{post_id}")
async def get_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.get_post(db, post_id, current_user)

@router.post("", status_code=201)
async def create_post(
    data: PostCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    return await post_service.create_post(db, data, current_user, storage)

@router.put("/{post_id}")
async def update_post(
    post_id: int,
    data: PostUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    return await post_service.update_post(db, post_id, data, current_user, storage)

@router.patch("/{post_id}/status", status_code=204)
async def update_post_status(
    post_id: int,
    data: PostStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await post_service.update_post_status(db, post_id, data.status, current_user)

@router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
):
    await post_service.delete_post(db, post_id, current_user, storage)

@router.get("/{post_id}/comments")
async def list_comments(post_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db, post_id, None)

@router.post("/{post_id}/comments", status_code=201)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, post_id, data, current_user)
