from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from blog_api.models import PostStatus, UserRole


# --- Auth ---

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_-]+$")
    nickname: str | None = Field(None, min_length=2, max_length=10)


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# --- User ---

class ProfileUpdate(BaseModel):
    # Unknown keys such as email or role are dropped, not rejected.
    model_config = ConfigDict(extra="ignore")

    nickname: str | None = Field(None, min_length=2, max_length=10)
    description: str | None = Field(None, max_length=200)
    profile_image: str | None = Field(None, max_length=500)


class PublicProfileResponse(BaseModel):
    id: int
    username: str
    nickname: str
    description: str
    profile_image: str | None
    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(PublicProfileResponse):
    email: str
    role: UserRole
    created_at: datetime


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class CategoryUpdate(CategoryCreate):
    pass


class CategoryResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class CategoryWithCount(CategoryResponse):
    post_count: int


class CategoryListResponse(BaseModel):
    categories: list[CategoryWithCount]


# --- Tag ---

class TagResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class TagWithCount(TagResponse):
    post_count: int


# --- Post ---

TagName = Annotated[str, Field(min_length=1, max_length=50)]


class PostBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    category_id: int | None = None
    tag_names: list[TagName] = Field(default=[], max_length=20)


class PostCreate(PostBase):
    status: PostStatus = PostStatus.PUBLIC


class PostUpdate(PostBase):
    # Full replacement: every field of the post is overwritten.
    status: PostStatus


class PostStatusUpdate(BaseModel):
    status: PostStatus


class PostCountResponse(BaseModel):
    post_count: int


class PostListResponse(BaseModel):
    posts: list
    total: int
    page: int
    limit: int


class CategoryPostsResponse(PostListResponse):
    id: int
    name: str


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)
    parent_id: int | None = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


# --- Files ---

class UploadResponse(BaseModel):
    filename: str
    url: str
