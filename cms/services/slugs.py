"""Slug normalisation and collision handling shared by articles and categories."""
import re
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# \w is Unicode-aware, so Arabic (and other) letters survive normalisation.
_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


async def _slug_taken(db: AsyncSession, model, slug: str, exclude_id: int | None) -> bool:
    q = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        q = q.where(model.id != exclude_id)
    return (await db.execute(q.limit(1))).first() is not None


async def unique_slug(
    db: AsyncSession,
    model,
    text: str,
    *,
    exclude_id: int | None = None,
    fallback: str = "item",
) -> str:
    """
    Slugify *text* and make it unique within *model*'s table.

    A collision with another row appends a millisecond timestamp.  This is
    check-then-insert: two concurrent writers can still race to the same
    slug, in which case the unique constraint rejects the second flush.
    """
    base = slugify(text) or fallback
    if not await _slug_taken(db, model, base, exclude_id):
        return base

    token = time.time_ns() // 1_000_000
    candidate = f"{base}-{token}"
    while await _slug_taken(db, model, candidate, exclude_id):
        token += 1
        candidate = f"{base}-{token}"
    return candidate
