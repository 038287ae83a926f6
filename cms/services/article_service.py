"""
Article service: business logic for the Article aggregate.

Design notes
------------
- List and detail reads join the author and category in the same statement
  (``outerjoin``), so each row already carries ``author_name`` and
  ``category_name`` and no per-row lookups are issued.
- The list endpoint's filters are assembled with ``ListQuery``; the page
  query and the count query share the exact same predicates.
- Status transitions are unrestricted.  The only side effect is that the
  first move into ``published`` stamps ``published_at``; later re-entries
  keep the original timestamp.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cms.auth import ensure_owner_or_admin
from cms.errors import Conflict, ValidationError
from cms.models import Article, Category, User
from cms.query import ListQuery, PageRequest, ident_clause, pagination_envelope
from cms.schemas import ArticleCreate, ArticleUpdate, AuthenticatedUser
from cms.services.category_service import category_exists
from cms.services.slugs import unique_slug

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Query / serialisation helpers
# ---------------------------------------------------------------------------

def _article_select():
    return (
        select(Article, User.username.label("author_name"), Category.name.label("category_name"))
        .outerjoin(User, Article.author_id == User.id)
        .outerjoin(Category, Article.category_id == Category.id)
    )


def _article_to_dict(article: Article, author_name: str | None, category_name: str | None) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "excerpt": article.excerpt,
        "featured_image": article.featured_image,
        "status": article.status,
        "views": article.views,
        "created_at": article.created_at,
        "updated_at": article.updated_at,
        "published_at": article.published_at,
        "author_id": article.author_id,
        "author_name": author_name,
        "category_id": article.category_id,
        "category_name": category_name,
    }


def _article_detail_to_dict(article: Article, author_name: str | None, category_name: str | None) -> dict:
    """Serialise an Article ORM instance to a plain dict (detail view)."""
    data = _article_to_dict(article, author_name, category_name)
    data["content"] = article.content
    return data


async def _load_detail(db: AsyncSession, article_id: int) -> dict:
    # populate_existing reloads server-side values (updated_at) after a flush.
    q = _article_select().where(Article.id == article_id).execution_options(populate_existing=True)
    article, author_name, category_name = (await db.execute(q)).one()
    return _article_detail_to_dict(article, author_name, category_name)


async def _get_orm_article(db: AsyncSession, article_id: int) -> Article | None:
    result = await db.execute(select(Article).where(Article.id == article_id))
    return result.scalar_one_or_none()


async def _check_category(db: AsyncSession, category_id: int | None) -> None:
    if category_id is not None and not await category_exists(db, category_id):
        raise ValidationError("Category not found")


async def _flush_unique(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict("An article with this slug already exists") from exc


def _apply_status(article: Article, status: str) -> None:
    article.status = status
    if status == "published" and article.published_at is None:
        article.published_at = datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    page: PageRequest,
    search: str | None = None,
    status: str | None = None,
    category_id: int | None = None,
    author_id: int | None = None,
) -> dict:
    """
    Return a filtered page of articles, newest first.

    Two SQL statements are issued:
    1. COUNT over the filtered articles.
    2. SELECT with LIMIT/OFFSET joined to author and category names.
    """
    q = (
        ListQuery(Article)
        .search(search, Article.title, Article.content)
        .equals(Article.status, status)
        .equals(Article.category_id, category_id)
        .equals(Article.author_id, author_id)
    )
    total: int = (await db.execute(q.count())).scalar_one()
    rows = (await db.execute(q.page_of(_article_select(), page))).all()

    return {
        "articles": [_article_to_dict(a, author, category) for a, author, category in rows],
        "pagination": pagination_envelope(page, total),
    }


async def get_article(db: AsyncSession, ident: str) -> dict | None:
    """
    Return the full detail dict for the article whose id or slug is *ident*,
    incrementing its view counter.  Returns None when nothing matches.
    """
    q = (
        _article_select()
        .where(ident_clause(Article, ident))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    row = (await db.execute(q)).first()
    if row is None:
        return None

    article, author_name, category_name = row
    # A view is not an edit: keep updated_at as it is.
    await db.execute(
        update(Article)
        .where(Article.id == article.id)
        .values(views=Article.views + 1, updated_at=Article.updated_at)
        .execution_options(synchronize_session=False)
    )
    data = _article_detail_to_dict(article, author_name, category_name)
    data["views"] = article.views + 1
    return data


async def create_article(db: AsyncSession, data: ArticleCreate, author: AuthenticatedUser) -> dict:
    """
    Create a new article owned by *author* and return its detail dict.

    Slug collisions (identical or equivalent titles) get a timestamp suffix.
    """
    await _check_category(db, data.category_id)

    article = Article(
        title=data.title,
        slug=await unique_slug(db, Article, data.title, fallback="article"),
        content=data.content,
        excerpt=data.excerpt,
        featured_image=data.featured_image,
        category_id=data.category_id,
        author_id=author.id,
    )
    _apply_status(article, data.status)

    db.add(article)
    await _flush_unique(db)
    logger.info("Created article id=%s slug=%r by user id=%s", article.id, article.slug, author.id)
    return await _load_detail(db, article.id)


async def update_article(
    db: AsyncSession, article_id: int, data: ArticleUpdate, user: AuthenticatedUser
) -> dict | None:
    """
    Partially update an article and return its updated detail dict.

    Returns None when the article does not exist.  Non-admins may only
    edit their own articles.  Only fields explicitly present in the payload
    are modified (``model_dump(exclude_unset=True)``).
    """
    article = await _get_orm_article(db, article_id)
    if article is None:
        return None
    ensure_owner_or_admin(user, article.author_id, "You can only edit your own articles")

    update_data = data.model_dump(exclude_unset=True)
    status = update_data.pop("status", None)
    title = update_data.pop("title", None)

    if "category_id" in update_data:
        await _check_category(db, update_data["category_id"])

    for field, value in update_data.items():
        setattr(article, field, value)

    if title:
        article.title = title
        article.slug = await unique_slug(db, Article, title, exclude_id=article.id, fallback="article")

    if status:
        _apply_status(article, status)

    await _flush_unique(db)
    return await _load_detail(db, article.id)


async def delete_article(db: AsyncSession, article_id: int, user: AuthenticatedUser) -> bool:
    """
    Delete the article identified by *article_id*.

    Returns True on success, False when the article does not exist.
    """
    result = await db.execute(select(Article.author_id).where(Article.id == article_id))
    author_id = result.scalar_one_or_none()
    if author_id is None:
        return False
    ensure_owner_or_admin(user, author_id, "You can only delete your own articles")

    await db.execute(delete(Article).where(Article.id == article_id))
    logger.info("Deleted article id=%s by user id=%s", article_id, user.id)
    return True
