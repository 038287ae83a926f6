from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cms.activity import ActivityRoute, records_activity
from cms.auth import require_editor
from cms.database import get_db
from cms.dependencies import PaginationParams, RowId, id_filter
from cms.errors import NotFound
from cms.schemas import (
    ArticleCreate,
    ArticleDetail,
    ArticleListResponse,
    ArticleUpdate,
    AuthenticatedUser,
    MessageResponse,
)
from cms.services import article_service

router = APIRouter(prefix="/api/articles", tags=["articles"], route_class=ActivityRoute)


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    search: str | None = None,
    status: str | None = None,
    category: str | None = None,
    author: str | None = None,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_articles(
        db,
        pagination.page_request,
        search=search,
        status=status,
        category_id=id_filter(category, "category"),
        author_id=id_filter(author, "author"),
    )


@router.get("/{ident}", response_model=ArticleDetail)
async def get_article(ident: str, db: AsyncSession = Depends(get_db)):
    article = await article_service.get_article(db, ident)
    if not article:
        raise NotFound("Article not found")
    return article


@router.post("", status_code=201, response_model=ArticleDetail)
@records_activity("create", "article")
async def create_article(
    data: ArticleCreate,
    user: AuthenticatedUser = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, data, user)


@router.put("/{article_id}", response_model=ArticleDetail)
@records_activity("update", "article")
async def update_article(
    article_id: RowId,
    data: ArticleUpdate,
    user: AuthenticatedUser = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.update_article(db, article_id, data, user)
    if not article:
        raise NotFound("Article not found")
    return article


@router.delete("/{article_id}", response_model=MessageResponse)
@records_activity("delete", "article")
async def delete_article(
    article_id: RowId,
    user: AuthenticatedUser = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
):
    if not await article_service.delete_article(db, article_id, user):
        raise NotFound("Article not found")
    return {"message": "Article deleted successfully"}
