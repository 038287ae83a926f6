from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cms.query import MAX_ROW_ID

Role = Literal["admin", "editor", "user"]
UserStatus = Literal["active", "inactive"]
ArticleStatus = Literal["draft", "published", "archived"]
SettingType = Literal["text", "number", "boolean"]


# --- Pagination ---

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class MessageResponse(BaseModel):
    message: str


# --- User ---

class AuthenticatedUser(BaseModel):
    """Projection of the acting user attached to a request; never carries the digest."""

    id: int
    username: str
    email: str
    role: Role
    status: UserStatus
    avatar: str | None = None
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class UserResponse(AuthenticatedUser):
    updated_at: datetime | None = None


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)
    role: Role = "user"
    status: UserStatus = "active"
    avatar: str | None = Field(None, max_length=500)


class UserUpdate(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=100)
    email: str | None = Field(None, min_length=3, max_length=255)
    password: str | None = Field(None, min_length=1)
    role: Role | None = None
    status: UserStatus | None = None
    avatar: str | None = Field(None, max_length=500)


class UserListResponse(BaseModel):
    users: list[UserResponse]
    pagination: Pagination


# --- Auth ---

class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6)


class ProfileUpdate(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=100)
    email: str | None = Field(None, min_length=3, max_length=255)
    avatar: str | None = Field(None, max_length=500)
    current_password: str | None = None
    new_password: str | None = Field(None, min_length=6)


class TokenResponse(BaseModel):
    token: str
    user: AuthenticatedUser


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=150)
    description: str | None = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None
    created_at: datetime | None
    articles_count: int = 0


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str | None = None
    excerpt: str | None = Field(None, max_length=500)
    featured_image: str | None = Field(None, max_length=500)
    status: ArticleStatus = "draft"
    category_id: int | None = Field(None, le=MAX_ROW_ID)


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = None
    excerpt: str | None = Field(None, max_length=500)
    featured_image: str | None = Field(None, max_length=500)
    status: ArticleStatus | None = None
    category_id: int | None = Field(None, le=MAX_ROW_ID)


class ArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: str | None
    featured_image: str | None
    status: ArticleStatus
    views: int
    created_at: datetime | None
    updated_at: datetime | None
    published_at: datetime | None
    author_id: int
    author_name: str | None = None
    category_id: int | None
    category_name: str | None = None


class ArticleDetail(ArticleResponse):
    content: str | None


class ArticleListResponse(BaseModel):
    articles: list[ArticleResponse]
    pagination: Pagination


# --- Activity ---

class ActivityResponse(BaseModel):
    id: int
    user_id: int | None
    username: str | None = None
    action: str
    entity_type: str | None
    entity_id: int | None
    details: str | None = None
    ip_address: str | None
    created_at: datetime | None


class ActivityListResponse(BaseModel):
    activities: list[ActivityResponse]
    pagination: Pagination


# --- Settings ---

class SettingValue(BaseModel):
    value: str | None
    type: SettingType


class SettingUpdate(BaseModel):
    value: str | int | float | bool | None = None
    type: SettingType | None = None


# --- Dashboard ---

class StatsTotals(BaseModel):
    total_users: int
    total_articles: int
    published_articles: int
    draft_articles: int
    total_views: int
    total_categories: int


class RoleCount(BaseModel):
    role: str
    count: int


class StatusCount(BaseModel):
    status: str
    count: int


class RecentArticle(BaseModel):
    id: int
    title: str
    status: str
    created_at: datetime | None
    author_name: str | None


class TopArticle(BaseModel):
    id: int
    title: str
    views: int


class CategoryCount(BaseModel):
    id: int
    name: str
    count: int


class DashboardStats(BaseModel):
    stats: StatsTotals
    users_by_role: list[RoleCount]
    articles_by_status: list[StatusCount]
    recent_articles: list[RecentArticle]
    recent_activities: list[ActivityResponse]
    top_articles: list[TopArticle]
    articles_per_category: list[CategoryCount]
