"""
Activity service: append-only audit log.

Entries are only ever inserted; nothing in the application updates or
deletes them.  Deleting a user keeps that user's entries with a null
``user_id`` (``ON DELETE SET NULL``).
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.models import ActivityLog, User
from cms.query import ListQuery, PageRequest, pagination_envelope

logger = logging.getLogger(__name__)


def activity_to_dict(entry: ActivityLog, username: str | None = None) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "username": username,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "details": entry.details,
        "ip_address": entry.ip_address,
        "created_at": entry.created_at,
    }


def _activity_select():
    return select(ActivityLog, User.username).outerjoin(User, ActivityLog.user_id == User.id)


async def log_activity(
    db: AsyncSession,
    *,
    user_id: int | None,
    action: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    ip_address: str | None = None,
    details: str | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_address=ip_address,
        details=details,
    )
    db.add(entry)
    await db.flush()
    logger.debug("Activity %s %s:%s by user %s", action, entity_type, entity_id, user_id)
    return entry


async def get_activities(
    db: AsyncSession,
    page: PageRequest,
    user_id: int | None = None,
    action: str | None = None,
    entity_type: str | None = None,
) -> dict:
    """Return one page of the activity log, newest first, with the acting username."""
    q = (
        ListQuery(ActivityLog)
        .equals(ActivityLog.user_id, user_id)
        .equals(ActivityLog.action, action)
        .equals(ActivityLog.entity_type, entity_type)
    )
    total: int = (await db.execute(q.count())).scalar_one()
    rows = (await db.execute(q.page_of(_activity_select(), page))).all()

    return {
        "activities": [activity_to_dict(entry, username) for entry, username in rows],
        "pagination": pagination_envelope(page, total),
    }


async def get_recent_activities(db: AsyncSession, limit: int = 10) -> list[dict]:
    q = _activity_select().order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
    rows = (await db.execute(q)).all()
    return [activity_to_dict(entry, username) for entry, username in rows]
