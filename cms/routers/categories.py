from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cms.activity import ActivityRoute, records_activity
from cms.auth import require_admin
from cms.database import get_db
from cms.dependencies import RowId
from cms.errors import NotFound
from cms.schemas import CategoryCreate, CategoryResponse, CategoryUpdate, MessageResponse
from cms.services import category_service

router = APIRouter(prefix="/api/categories", tags=["categories"], route_class=ActivityRoute)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await category_service.get_categories(db)


@router.get("/{ident}", response_model=CategoryResponse)
async def get_category(ident: str, db: AsyncSession = Depends(get_db)):
    category = await category_service.get_category(db, ident)
    if not category:
        raise NotFound("Category not found")
    return category


@router.post("", status_code=201, response_model=CategoryResponse, dependencies=[Depends(require_admin)])
@records_activity("create", "category")
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    return await category_service.create_category(db, data)


@router.put("/{category_id}", response_model=CategoryResponse, dependencies=[Depends(require_admin)])
@records_activity("update", "category")
async def update_category(category_id: RowId, data: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    category = await category_service.update_category(db, category_id, data)
    if not category:
        raise NotFound("Category not found")
    return category


@router.delete("/{category_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
@records_activity("delete", "category")
async def delete_category(category_id: RowId, db: AsyncSession = Depends(get_db)):
    if not await category_service.delete_category(db, category_id):
        raise NotFound("Category not found")
    return {"message": "Category deleted successfully"}
