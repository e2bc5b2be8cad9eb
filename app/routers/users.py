from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.cache import cache
from app.database import get_db
from app.schemas import UserCreate, UserResponse, UserDetail
from app.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.get("", response_model=list[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db)):
    return await user_service.get_users(db)

@router.get("/{user_id}", response_model=UserDetail)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

@router.post("", status_code=201, response_model=UserResponse)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    return await user_service.create_user(db, data)

@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(
    user_id: int,
    new_author_id: int | None = Query(None, description="Reassign the user's articles to this user instead of deleting them."),
    db: AsyncSession = Depends(get_db),
):
    deleted = await user_service.delete_user(db, user_id, new_author_id)
    await cache.invalidate_all_articles()
    return deleted
