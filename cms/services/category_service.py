"""
Category service: CRUD for categories.

Deleting a category never deletes articles: their ``category_id`` is set to
NULL first, so nothing depends on the store honouring ``ON DELETE SET NULL``.
"""
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cms.errors import Conflict, ValidationError
from cms.models import Article, Category
from cms.query import ident_clause
from cms.schemas import CategoryCreate, CategoryUpdate
from cms.services.slugs import unique_slug

logger = logging.getLogger(__name__)


def _articles_count():
    return (
        select(func.count(Article.id))
        .where(Article.category_id == Category.id)
        .correlate(Category)
        .scalar_subquery()
        .label("articles_count")
    )


def _category_to_dict(category: Category, articles_count: int = 0) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "created_at": category.created_at,
        "articles_count": articles_count or 0,
    }


async def _flush_unique(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise Conflict("A category with this slug already exists") from exc


async def get_categories(db: AsyncSession) -> list[dict]:
    """All categories ordered by name, each with its article count."""
    q = select(Category, _articles_count()).order_by(Category.name.asc(), Category.id.asc())
    rows = (await db.execute(q)).all()
    return [_category_to_dict(c, count) for c, count in rows]


async def get_category(db: AsyncSession, ident: str) -> dict | None:
    """Look a category up by numeric id or slug."""
    q = select(Category, _articles_count()).where(ident_clause(Category, ident)).limit(1)
    row = (await db.execute(q)).first()
    if row is None:
        return None
    category, count = row
    return _category_to_dict(category, count)


async def category_exists(db: AsyncSession, category_id: int) -> bool:
    q = select(Category.id).where(Category.id == category_id)
    return (await db.execute(q)).first() is not None


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    category = Category(
        name=data.name,
        slug=await unique_slug(db, Category, data.name, fallback="category"),
        description=data.description,
    )
    db.add(category)
    await _flush_unique(db)
    await db.refresh(category)
    logger.info("Created category id=%s slug=%r", category.id, category.slug)
    return _category_to_dict(category)


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> dict | None:
    """
    Rename and/or re-describe a category.  A new name regenerates the slug.
    Returns None when the category does not exist.
    """
    result = await db.execute(select(Category).where(Category.id == category_id))
    category = result.scalar_one_or_none()
    if category is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    if not update_data.get("name") and "description" not in update_data:
        raise ValidationError("No fields to update")

    if update_data.get("name"):
        category.name = update_data["name"]
        category.slug = await unique_slug(
            db, Category, category.name, exclude_id=category.id, fallback="category"
        )
    if "description" in update_data:
        category.description = update_data["description"]

    await _flush_unique(db)
    return await get_category(db, str(category.id))


async def delete_category(db: AsyncSession, category_id: int) -> bool:
    """Returns False when the category does not exist."""
    result = await db.execute(select(Category.id).where(Category.id == category_id))
    if result.first() is None:
        return False

    detached = await db.execute(
        update(Article).where(Article.category_id == category_id).values(category_id=None)
    )
    await db.execute(delete(Category).where(Category.id == category_id))
    logger.info("Deleted category id=%s (%d article(s) uncategorised)", category_id, detached.rowcount)
    return True
