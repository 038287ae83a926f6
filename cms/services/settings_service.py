"""
Settings service: key/value site settings.

Values are stored as text; the ``type`` tag is advisory and only tells
clients how to render or parse the value.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cms.models import Setting
from cms.schemas import SettingUpdate

logger = logging.getLogger(__name__)


def _to_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


async def get_settings(db: AsyncSession) -> dict[str, dict]:
    result = await db.execute(select(Setting).order_by(Setting.key))
    return {s.key: {"value": s.value, "type": s.type} for s in result.scalars().all()}


async def update_settings(db: AsyncSession, updates: dict[str, SettingUpdate]) -> dict[str, dict]:
    """
    Upsert each key: existing keys get a new value (their type is kept),
    unknown keys are inserted with the supplied type, defaulting to text.
    """
    for key, data in updates.items():
        result = await db.execute(select(Setting).where(Setting.key == key))
        setting = result.scalar_one_or_none()
        if setting is not None:
            setting.value = _to_text(data.value)
        else:
            db.add(Setting(key=key, value=_to_text(data.value), type=data.type or "text"))
    await db.flush()
    logger.info("Updated settings: %s", ", ".join(sorted(updates)))
    return await get_settings(db)
