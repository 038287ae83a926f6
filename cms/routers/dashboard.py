from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cms.activity import ActivityRoute, records_activity
from cms.auth import get_current_user, require_admin
from cms.database import get_db
from cms.dependencies import ActivityPaginationParams, id_filter
from cms.errors import ValidationError
from cms.schemas import ActivityListResponse, DashboardStats, SettingUpdate, SettingValue
from cms.services import activity_service, dashboard_service, settings_service

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"], route_class=ActivityRoute)


@router.get("/stats", response_model=DashboardStats, dependencies=[Depends(get_current_user)])
async def get_stats(db: AsyncSession = Depends(get_db)):
    return await dashboard_service.get_stats(db)


@router.get("/activities", response_model=ActivityListResponse, dependencies=[Depends(require_admin)])
async def list_activities(
    user_id: str | None = None,
    action: str | None = None,
    entity_type: str | None = None,
    pagination: ActivityPaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await activity_service.get_activities(
        db,
        pagination.page_request,
        user_id=id_filter(user_id, "user_id"),
        action=action,
        entity_type=entity_type,
    )


@router.get("/settings", response_model=dict[str, SettingValue], dependencies=[Depends(require_admin)])
async def get_settings(db: AsyncSession = Depends(get_db)):
    return await settings_service.get_settings(db)


@router.put("/settings", response_model=dict[str, SettingValue], dependencies=[Depends(require_admin)])
@records_activity("update_settings", "setting")
async def update_settings(data: dict[str, SettingUpdate], db: AsyncSession = Depends(get_db)):
    if not data:
        raise ValidationError("No settings to update")
    return await settings_service.update_settings(db, data)
