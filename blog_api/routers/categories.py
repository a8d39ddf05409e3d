from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import PaginationParams, get_current_admin
from blog_api.models import User
from blog_api.schemas import (
    CategoryCreate,
    CategoryListResponse,
    CategoryPostsResponse,
    CategoryResponse,
    CategoryUpdate,
)
from blog_api.services import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])

@router.post("", status_code=201, response_model=CategoryResponse)
async def create_category(
    data: CategoryCreate,
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.create_category(db, data)

@router.get("/public", response_model=CategoryListResponse)
async def list_public_categories(db: AsyncSession = Depends(get_db)):
    return {"categories": await category_service.list_public_categories(db)}

@router.get("", response_model=CategoryListResponse)
async def list_categories(
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"categories": await category_service.list_categories(db)}

@router.get("/public/{category_id}", response_model=CategoryPostsResponse)
async def get_public_category(
    category_id: int,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.get_category_with_posts(
        db, category_id, pagination.page, pagination.limit, public_only=True
    )

@router.get("/{category_id}", response_model=CategoryPostsResponse)
async def get_category(
    category_id: int,
    pagination: PaginationParams = Depends(),
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.get_category_with_posts(
        db, category_id, pagination.page, pagination.limit, public_only=False
    )

@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.update_category(db, category_id, data)

@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: int,
    _: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await category_service.delete_category(db, category_id)
