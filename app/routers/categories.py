from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.cache import cache
from app.database import get_db
from app.schemas import (
    CategoryCascadeResult,
    CategoryCreate,
    CategoryDetail,
    CategoryMergeReport,
    CategoryResponse,
    CategoryUpdate,
)
from app.services import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])

@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await category_service.get_categories(db)

@router.post("/merge", response_model=list[CategoryMergeReport])
async def merge_categories(db: AsyncSession = Depends(get_db)):
    reports = await category_service.merge_categories(db)
    if reports:
        await cache.invalidate_categories()
        await cache.invalidate_all_articles()
    return reports

@router.get("/{category_id}", response_model=CategoryDetail)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    category = await category_service.get_category(db, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category

@router.post("", status_code=201, response_model=CategoryResponse)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)):
    return await category_service.create_category(db, data)

@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: int, data: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    category = await category_service.update_category(db, category_id, data)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category

@router.delete("/{category_id}", response_model=CategoryCascadeResult)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    outcome = await category_service.delete_category_with_articles(db, category_id)
    await cache.invalidate_categories()
    await cache.invalidate_all_articles()
    return outcome
