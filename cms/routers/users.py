from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cms.activity import ActivityRoute, records_activity
from cms.auth import get_credentials, require_admin
from cms.database import get_db
from cms.dependencies import PaginationParams, RowId
from cms.errors import NotFound
from cms.schemas import (
    AuthenticatedUser,
    MessageResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from cms.security import CredentialVerifier
from cms.services import user_service

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    route_class=ActivityRoute,
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=UserListResponse)
async def list_users(
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_users(db, pagination.page_request, search, role, status)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: RowId, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@router.post("", status_code=201, response_model=UserResponse)
@records_activity("create", "user")
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialVerifier = Depends(get_credentials),
):
    return await user_service.create_user(db, data, credentials)


@router.put("/{user_id}", response_model=UserResponse)
@records_activity("update", "user")
async def update_user(
    user_id: RowId,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialVerifier = Depends(get_credentials),
):
    user = await user_service.update_user(db, user_id, data, credentials)
    if not user:
        raise NotFound("User not found")
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
@records_activity("delete", "user")
async def delete_user(
    user_id: RowId,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await user_service.delete_user(db, user_id, admin.id):
        raise NotFound("User not found")
    return {"message": "User deleted successfully"}
