"""
Dashboard service: aggregate statistics over users, articles and categories.

Every figure is computed straight from the store on each call.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.models import Article, Category, User
from cms.services import activity_service


async def _count(db: AsyncSession, model, *clauses) -> int:
    q = select(func.count()).select_from(model).where(*clauses)
    return (await db.execute(q)).scalar_one()


async def get_stats(db: AsyncSession) -> dict:
    total_views = (await db.execute(select(func.coalesce(func.sum(Article.views), 0)))).scalar_one()

    stats = {
        "total_users": await _count(db, User),
        "total_articles": await _count(db, Article),
        "published_articles": await _count(db, Article, Article.status == "published"),
        "draft_articles": await _count(db, Article, Article.status == "draft"),
        "total_views": int(total_views or 0),
        "total_categories": await _count(db, Category),
    }

    users_by_role = (
        await db.execute(select(User.role, func.count()).group_by(User.role).order_by(User.role))
    ).all()

    articles_by_status = (
        await db.execute(select(Article.status, func.count()).group_by(Article.status).order_by(Article.status))
    ).all()

    recent_articles = (
        await db.execute(
            select(Article.id, Article.title, Article.status, Article.created_at, User.username)
            .outerjoin(User, Article.author_id == User.id)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(5)
        )
    ).all()

    top_articles = (
        await db.execute(
            select(Article.id, Article.title, Article.views)
            .order_by(Article.views.desc(), Article.id.desc())
            .limit(5)
        )
    ).all()

    article_count = func.count(Article.id).label("count")
    per_category = (
        await db.execute(
            select(Category.id, Category.name, article_count)
            .outerjoin(Article, Article.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(article_count.desc(), Category.name)
        )
    ).all()

    return {
        "stats": stats,
        "users_by_role": [{"role": role, "count": count} for role, count in users_by_role],
        "articles_by_status": [{"status": status, "count": count} for status, count in articles_by_status],
        "recent_articles": [
            {"id": id_, "title": title, "status": status, "created_at": created_at, "author_name": author}
            for id_, title, status, created_at, author in recent_articles
        ],
        "recent_activities": await activity_service.get_recent_activities(db, limit=10),
        "top_articles": [{"id": id_, "title": title, "views": views} for id_, title, views in top_articles],
        "articles_per_category": [
            {"id": id_, "name": name, "count": count} for id_, name, count in per_category
        ],
    }
