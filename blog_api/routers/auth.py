from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import get_current_user
from blog_api.models import User
from blog_api.schemas import ProfileResponse, RefreshRequest, RegisterRequest, TokenResponse
from blog_api.services import auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=ProfileResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.register(db, data)

@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    # OAuth2 form: the "username" field carries the email address.
    return await auth_service.login(db, form_data.username, form_data.password)

@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.refresh_tokens(db, data.refresh_token)

@router.post("/logout", status_code=204)
async def logout(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.logout(db, current_user)
