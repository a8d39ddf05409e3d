from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.schemas import TagWithCount
from blog_api.services import tag_service

router = APIRouter(prefix="/api/v1/tags", tags=["tags"])

@router.get("", response_model=list[TagWithCount])
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await tag_service.list_tags(db)
